"""Project-level configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


CONFIG_FILENAME = "calc123.yaml"

DEFAULT_CONFIG = {
    "logging_enabled": True,
    "logging_tail_bytes": 2_097_152,  # 2 MB
    "display_precision": 10,
    "sheet_rows": 100,
    "sheet_cols": 26,
}

DEFAULT_CONFIG_YAML = """\
# calc123 project configuration
logging_enabled: true
# logging_tail_bytes: 2097152
display_precision: 10
sheet_rows: 100
sheet_cols: 26
"""


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``calc123.yaml``, with defaults.

    Args:
        project_dir: Root of the calc123 project.

    Returns:
        Merged configuration dict.  Keys not in ``DEFAULT_CONFIG`` are kept.

    Raises:
        ValueError: If the file does not contain a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(user_config)
    return config


def write_default_config(project_dir: Path) -> Path:
    """Write a commented default ``calc123.yaml`` into *project_dir*.

    Raises:
        FileExistsError: If the config file already exists.
    """
    project_dir = Path(project_dir)
    project_dir.mkdir(parents=True, exist_ok=True)
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists():
        raise FileExistsError(f"{config_path} already exists")
    config_path.write_text(DEFAULT_CONFIG_YAML)
    return config_path
