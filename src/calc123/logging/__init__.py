"""Structured event logging for calc123.

Evaluation outcomes and sheet loads are recorded as pydantic events in a
per-project NDJSON log.  ``emit`` never raises.
"""

from calc123.logging.events import (
    SHEET_INVALID,
    SHEET_NOT_FOUND,
    Calc123Event,
    EventLevel,
    EventType,
    emit,
    make_formula_event,
    make_sheet_event,
    reset_sink,
    set_project_dir,
    trim_context,
)
from calc123.logging.sink import EventSink

__all__ = [
    "SHEET_INVALID",
    "SHEET_NOT_FOUND",
    "Calc123Event",
    "EventLevel",
    "EventSink",
    "EventType",
    "emit",
    "make_formula_event",
    "make_sheet_event",
    "reset_sink",
    "set_project_dir",
    "trim_context",
]
