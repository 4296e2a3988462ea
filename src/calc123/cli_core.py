"""Command-line interface for calc123.

Formulas are passed pre-tokenized, one argument per token.  Put ``--``
before the tokens when the first one starts with ``-``::

    calc123 eval 2 '*' '(' 3 + 4 ')'
    calc123 eval --sheet sheet.yaml -- A1 - 1
"""

from __future__ import annotations

import json
import math
from pathlib import Path

import click

from calc123 import __version__


@click.group()
@click.version_option(version=__version__, prog_name="calc123")
def main() -> None:
    """calc123 -- evaluate tokenized spreadsheet formulas."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _setup(directory: str) -> dict:
    """Load project config and attach the event sink for *directory*."""
    from calc123.logging import set_project_dir
    from calc123.project import load_project_config

    project_dir = Path(directory)
    try:
        config = load_project_config(project_dir)
    except ValueError as e:
        raise click.ClickException(str(e))
    set_project_dir(project_dir, config)
    return config


def _load_memory(sheet: str | None, config: dict):
    """Load the sheet file, or build an empty sheet of the configured size."""
    from calc123.logging import SHEET_INVALID, SHEET_NOT_FOUND, emit, make_sheet_event
    from calc123.sheet import SheetMemory, load_sheet

    rows = int(config["sheet_rows"])
    cols = int(config["sheet_cols"])
    if sheet is None:
        return SheetMemory(n_rows=rows, n_cols=cols)

    try:
        memory = load_sheet(Path(sheet), default_rows=rows, default_cols=cols)
    except FileNotFoundError as e:
        emit(make_sheet_event(sheet, error=str(e), error_code=SHEET_NOT_FOUND))
        raise click.ClickException(str(e))
    except ValueError as e:
        emit(make_sheet_event(sheet, error=str(e), error_code=SHEET_INVALID))
        raise click.ClickException(str(e))

    emit(make_sheet_event(sheet, cells=len(memory.labels())))
    return memory


def _report(tokens: list[str], result: float, error: str, config: dict, as_json: bool, label: str | None = None) -> None:
    """Print an evaluation outcome and exit non-zero on error."""
    from calc123.logging import emit, make_formula_event
    from calc123.sheet import Cell

    emit(make_formula_event(tokens, result, error, label=label))

    if as_json:
        # Non-finite results (the inf left by divideByZero) are not valid JSON
        out = {
            "tokens": tokens,
            "result": result if math.isfinite(result) else str(result),
            "error": error,
        }
        if label is not None:
            out["label"] = label
        click.echo(json.dumps(out, indent=2))
    elif error:
        click.echo(f"Error: {error}", err=True)
    else:
        display = Cell("", value=result).get_display_value(int(config["display_precision"]))
        click.echo(display)

    if error:
        import sys

        sys.exit(1)


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("tokens", nargs=-1)
@click.option("--sheet", default=None, type=click.Path(), help="YAML sheet file for cell references.")
@click.option("--project", "directory", default=".", type=click.Path(exists=True), help="Project directory.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def eval_cmd(tokens: tuple[str, ...], sheet: str | None, directory: str, as_json: bool) -> None:
    """Evaluate the tokenized formula TOKENS."""
    from calc123.formulas import evaluate_tokens

    config = _setup(directory)
    memory = _load_memory(sheet, config)
    outcome = evaluate_tokens(list(tokens), memory)
    _report(list(tokens), outcome.result, outcome.error, config, as_json)


# ---------------------------------------------------------------------------
# Cell
# ---------------------------------------------------------------------------


@main.command("cell")
@click.argument("label")
@click.option("--sheet", required=True, type=click.Path(), help="YAML sheet file.")
@click.option("--project", "directory", default=".", type=click.Path(exists=True), help="Project directory.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def cell_cmd(label: str, sheet: str, directory: str, as_json: bool) -> None:
    """Evaluate the formula stored in cell LABEL of a sheet file."""
    config = _setup(directory)
    memory = _load_memory(sheet, config)
    try:
        tokens = memory.get_cell_by_label(label).get_formula()
        outcome = memory.evaluate_cell(label)
    except ValueError as e:
        raise click.ClickException(str(e))
    _report(tokens, outcome.result, outcome.error, config, as_json, label=label)


# ---------------------------------------------------------------------------
# Init / events
# ---------------------------------------------------------------------------


@main.command("init")
@click.argument("directory", type=click.Path())
def init_cmd(directory: str) -> None:
    """Write a default calc123.yaml into DIRECTORY."""
    from calc123.project import write_default_config

    try:
        path = write_default_config(Path(directory))
    except FileExistsError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created {path}")


@main.command("events")
@click.option("--project", "directory", default=".", type=click.Path(exists=True), help="Project directory.")
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--error-code", default=None, help="Filter by error identifier, e.g. divideByZero.")
@click.option("--limit", default=20, show_default=True, help="Maximum events to show.")
@click.option("--summary", is_flag=True, help="Count evaluation outcomes per error identifier.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    error_code: str | None,
    limit: int,
    summary: bool,
    as_json: bool,
) -> None:
    """Show recent events from the project log, newest first."""
    from calc123.logging import EventSink

    config = _setup(directory)
    tail_bytes = config.get("logging_tail_bytes")
    sink = EventSink(Path(directory), tail_bytes=int(tail_bytes) if tail_bytes is not None else None)

    if summary:
        counts = sink.outcome_counts()
        if as_json:
            click.echo(json.dumps(dict(counts), indent=2, sort_keys=True))
            return
        if not counts:
            click.echo("No evaluations.")
            return
        for code, n in counts.most_common():
            click.echo(f"{n:6d}  {code}")
        return

    events = sink.read_events(
        level=level, event_type=event_type, error_code=error_code, limit=limit
    )
    if as_json:
        click.echo(json.dumps(events, indent=2))
        return
    if not events:
        click.echo("No events.")
        return
    for e in events:
        click.echo(f"{e.get('ts', '')}  {e.get('level', ''):7s} {e.get('event_type', ''):18s} {e.get('message', '')}")
