"""Event schema for evaluation outcomes and sheet loads.

Every event is a :class:`Calc123Event`.  Callers build one with
:func:`make_formula_event` or :func:`make_sheet_event` and hand it to
:func:`emit`, which never raises.  Timestamps are UTC ISO-8601 with a
``Z`` suffix.
"""

from __future__ import annotations

import math
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    formula_evaluated = "formula_evaluated"
    formula_failed = "formula_failed"
    cell_evaluated = "cell_evaluated"
    cell_failed = "cell_failed"
    sheet_loaded = "sheet_loaded"
    sheet_load_failed = "sheet_load_failed"


# Sheet failures get their own codes; formula failures reuse the
# evaluator's error identifiers.
SHEET_NOT_FOUND = "sheet_not_found"
SHEET_INVALID = "sheet_invalid"

# Context keys an event of each type must carry to be traceable.
REQUIRED_CONTEXT: dict[EventType, tuple[str, ...]] = {
    EventType.formula_evaluated: ("tokens",),
    EventType.formula_failed: ("tokens",),
    EventType.cell_evaluated: ("label", "tokens"),
    EventType.cell_failed: ("label", "tokens"),
    EventType.sheet_loaded: ("sheet_path",),
    EventType.sheet_load_failed: ("sheet_path",),
}

TRUNCATED = "...[truncated]"
_MAX_TOKENS = 64
_MAX_TEXT = 256


def trim_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy *context*, capping token lists at 64 items and text at 256 chars.

    A capped value ends with ``"...[truncated]"`` (as an extra list item
    for lists).  Nested dicts are trimmed too.
    """
    return {key: _clip(value) for key, value in context.items()}


def _clip(value: Any) -> Any:
    if isinstance(value, dict):
        return trim_context(value)
    if isinstance(value, (list, tuple)):
        clipped = [_clip(v) for v in value[:_MAX_TOKENS]]
        return clipped + [TRUNCATED] if len(value) > _MAX_TOKENS else clipped
    if isinstance(value, str) and len(value) > _MAX_TEXT:
        return value[:_MAX_TEXT] + TRUNCATED
    return value


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class Calc123Event(BaseModel):
    """A single structured log event.

    Context is trimmed on construction.  An event missing one of the
    context keys its type requires is kept but downgraded to a warning,
    with the missing keys listed under ``_missing_attribution``.
    """

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None

    @model_validator(mode="after")
    def _check_context(self) -> "Calc123Event":
        context = trim_context(self.context)
        missing = [k for k in REQUIRED_CONTEXT.get(self.event_type, ()) if k not in context]
        if missing:
            context["_missing_attribution"] = missing
            self.level = EventLevel.warning
        self.context = context
        return self


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def make_formula_event(
    tokens: list[str],
    result: float,
    error: str,
    *,
    label: str | None = None,
) -> Calc123Event:
    """Build the event describing one evaluation outcome.

    With *label* the event is a cell event, otherwise an ad-hoc formula
    event.  A non-empty *error* makes it an error-level ``*_failed`` event
    whose ``error_code`` is the evaluator's error identifier.
    """
    # inf (after divideByZero) is logged as "inf" so the log stays strict JSON
    logged = result if math.isfinite(result) else str(result)
    context: dict[str, Any] = {"tokens": list(tokens), "result": logged}
    if label is None:
        subject = "formula"
        event_type = EventType.formula_failed if error else EventType.formula_evaluated
    else:
        context["label"] = label
        subject = f"cell {label}"
        event_type = EventType.cell_failed if error else EventType.cell_evaluated

    return Calc123Event(
        level=EventLevel.error if error else EventLevel.info,
        event_type=event_type,
        message=f"{subject} failed: {error}" if error else f"{subject} = {result}",
        context=context,
        error_code=error or None,
    )


def make_sheet_event(
    sheet_path: str | Path,
    *,
    cells: int | None = None,
    error: str | None = None,
    error_code: str | None = None,
) -> Calc123Event:
    """Build a ``sheet_loaded`` event, or ``sheet_load_failed`` when *error* is given."""
    context: dict[str, Any] = {"sheet_path": str(sheet_path)}
    if error:
        return Calc123Event(
            level=EventLevel.error,
            event_type=EventType.sheet_load_failed,
            message=error,
            context=context,
            error_code=error_code,
        )
    context["cells"] = cells
    return Calc123Event(
        level=EventLevel.info,
        event_type=EventType.sheet_loaded,
        message=f"Loaded sheet {sheet_path} ({cells} cells)",
        context=context,
    )


# ---------------------------------------------------------------------------
# Module-level sink
# ---------------------------------------------------------------------------

_sink: Any = None  # EventSink | None
_warned = False


def set_project_dir(project_dir: str | Path, config: dict[str, Any] | None = None) -> None:
    """Send events to ``<project_dir>/logs/events.ndjson``.

    *config* is the already-loaded project config; it is read from
    ``calc123.yaml`` when omitted.  With ``logging_enabled: false`` events
    are discarded.
    """
    global _sink
    from calc123.logging.sink import EventSink
    from calc123.project import load_project_config

    if config is None:
        config = load_project_config(Path(project_dir))
    if not config.get("logging_enabled", True):
        _sink = None
        return
    tail_bytes = config.get("logging_tail_bytes")
    _sink = EventSink(
        Path(project_dir),
        tail_bytes=int(tail_bytes) if tail_bytes is not None else None,
    )


def reset_sink() -> None:
    """Detach the module-level sink (events are discarded afterwards)."""
    global _sink
    _sink = None


def emit(event: Calc123Event) -> None:
    """Append *event* to the project log, if one is configured.

    **Never raises.**  The first failure in a process is reported on
    stderr; later ones are dropped silently.
    """
    global _warned
    if _sink is None:
        return
    try:
        _sink.write(event)
    except Exception as exc:
        if not _warned:
            _warned = True
            print(f"[calc123] event logging failed: {exc!r}", file=sys.stderr)
