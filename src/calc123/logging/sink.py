"""NDJSON event log under ``<project>/logs/events.ndjson``.

One JSON object per line with sorted keys.  Appends take an exclusive
``fcntl`` lock and reads a shared one, so several ``calc123`` processes
can log into the same project.  Reads only look at the last
``tail_bytes`` of the file.
"""

from __future__ import annotations

import json
import os
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from calc123.logging.events import Calc123Event, EventType

try:
    import fcntl
except ImportError:  # Windows: no advisory locks
    fcntl = None

_LOCK_EX = fcntl.LOCK_EX if fcntl is not None else 0
_LOCK_SH = fcntl.LOCK_SH if fcntl is not None else 0

DEFAULT_TAIL_BYTES = 2 * 1024 * 1024
MAX_READ_LIMIT = 2000

# Event types that carry an evaluation outcome.
_OUTCOME_TYPES = frozenset({
    EventType.formula_evaluated.value,
    EventType.formula_failed.value,
    EventType.cell_evaluated.value,
    EventType.cell_failed.value,
})


@contextmanager
def _locked(path: Path, flags: int, lock: int) -> Iterator[int]:
    fd = os.open(str(path), flags, 0o644)
    try:
        if fcntl is not None:
            fcntl.flock(fd, lock)
        yield fd
    finally:
        if fcntl is not None:
            fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


class EventSink:
    """Append-only event log for one project."""

    def __init__(self, project_dir: Path, *, tail_bytes: int | None = None) -> None:
        self.path = Path(project_dir) / "logs" / "events.ndjson"
        self.tail_bytes = tail_bytes if tail_bytes is not None else DEFAULT_TAIL_BYTES

    def write(self, event: Calc123Event) -> None:
        """Append *event* as one line."""
        line = json.dumps(event.model_dump(), sort_keys=True, default=str) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with _locked(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, _LOCK_EX) as fd:
            os.write(fd, line.encode("utf-8"))

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        label: str | None = None,
        error_code: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Return logged events, newest first, matching every given filter."""
        matches = []
        for event in reversed(self._load()):
            if level and event.get("level") != level:
                continue
            if event_type and event.get("event_type") != event_type:
                continue
            if label and event.get("context", {}).get("label") != label:
                continue
            if error_code and event.get("error_code") != error_code:
                continue
            matches.append(event)
            if len(matches) >= min(limit, MAX_READ_LIMIT):
                break
        return matches

    def outcome_counts(self) -> Counter:
        """Count evaluation outcomes by error identifier; successes count as ``"ok"``."""
        return Counter(
            event.get("error_code") or "ok"
            for event in self._load()
            if event.get("event_type") in _OUTCOME_TYPES
        )

    def _load(self) -> list[dict[str, Any]]:
        """Parse the log tail oldest first, skipping lines that are not JSON."""
        if not self.path.exists():
            return []
        with _locked(self.path, os.O_RDONLY, _LOCK_SH) as fd:
            size = os.fstat(fd).st_size
            start = max(0, size - self.tail_bytes)
            os.lseek(fd, start, os.SEEK_SET)
            data = os.read(fd, size - start)
        lines = data.decode("utf-8", errors="replace").splitlines()
        if start:
            # The first line was cut by the seek.
            lines = lines[1:]

        events = []
        for line in lines:
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

