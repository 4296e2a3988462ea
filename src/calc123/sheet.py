"""In-memory sheet storage implementing the evaluator's cell resolver.

A :class:`SheetMemory` owns a fixed grid of :class:`Cell` objects addressed
by A1-style labels (``A1``, ``F2``, ``AA10``).  Each cell stores its
tokenized formula, the last computed value and the last error.

Sheets can be loaded from YAML::

    n_rows: 10
    n_cols: 5
    cells:
      A1: {formula: ["1", "+", "2"], value: 3}
      B1: {formula: ["A1", "*", "2"], value: 6}
      C1: {formula: ["B1"], error: "#CIRC!"}

Evaluating a cell (:meth:`SheetMemory.evaluate_cell`) runs its formula once
against the current values of the cells it references.  Deciding *when* to
re-evaluate dependents is up to the caller.
"""

from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any

import yaml

from calc123.formulas.evaluator import FormulaEvaluator, Outcome


# ---------------------------------------------------------------------------
# Label helpers
# ---------------------------------------------------------------------------

CELL_LABEL_RE = re.compile(r"^([A-Z]{1,3})([1-9][0-9]*)$")


def is_valid_cell_label(label: str) -> bool:
    """True for uppercase A1-style labels with a 1-based row (``A1``, ``AB12``)."""
    return isinstance(label, str) and CELL_LABEL_RE.match(label) is not None


def col_letter_to_index(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    idx = 0
    for ch in letters:
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def index_to_col_letter(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def parse_label(label: str) -> tuple[int, int]:
    """Parse 'A1' -> (row_0based, col_0based).

    Raises ValueError on bad label.
    """
    m = CELL_LABEL_RE.match(label)
    if not m:
        raise ValueError(f"Invalid cell label: {label!r}")
    col = col_letter_to_index(m.group(1))
    row = int(m.group(2)) - 1
    return row, col


def make_label(row: int, col: int) -> str:
    """Build a cell label from 0-based row/col."""
    return f"{index_to_col_letter(col)}{row + 1}"


# ---------------------------------------------------------------------------
# Cell
# ---------------------------------------------------------------------------

# Whole numbers at or beyond this magnitude use the precision format.
_MAX_INTEGER_DISPLAY = 1e15


class Cell:
    """A single sheet cell: formula tokens, cached value and error."""

    def __init__(
        self,
        label: str,
        formula: list[str] | None = None,
        value: float = 0,
        error: str = "",
    ) -> None:
        self.label = label
        self._formula: list[str] = list(formula or [])
        self._value = value
        self._error = error

    def __repr__(self) -> str:
        return (
            f"Cell({self.label!r}, formula={self._formula!r}, "
            f"value={self._value!r}, error={self._error!r})"
        )

    def get_formula(self) -> list[str]:
        return list(self._formula)

    def set_formula(self, formula: list[str]) -> None:
        self._formula = [str(t) for t in formula]

    def get_value(self) -> float:
        return self._value

    def set_value(self, value: float) -> None:
        self._value = value

    def get_error(self) -> str:
        return self._error

    def set_error(self, error: str) -> None:
        self._error = error

    def get_display_value(self, precision: int = 10) -> str:
        """Display-friendly string: the error if any, else the formatted value."""
        if self._error:
            return self._error
        val = self._value
        if isinstance(val, float):
            if math.isinf(val) or math.isnan(val):
                return str(val)
            if val == int(val) and abs(val) < _MAX_INTEGER_DISPLAY:
                return str(int(val))
            return f"{val:.{precision}g}"
        return str(val)


# ---------------------------------------------------------------------------
# SheetMemory
# ---------------------------------------------------------------------------


class SheetMemory:
    """Fixed-size grid of cells; implements the ``CellResolver`` protocol.

    Parameters
    ----------
    n_rows, n_cols : int
        Grid dimensions.  Labels outside the grid are rejected by
        :meth:`get_cell_by_label`.
    """

    def __init__(self, n_rows: int = 100, n_cols: int = 26) -> None:
        if n_rows < 1 or n_cols < 1:
            raise ValueError(f"Sheet must have at least one cell, got {n_rows}x{n_cols}")
        self.n_rows = n_rows
        self.n_cols = n_cols
        self._cells: dict[str, Cell] = {}

    # ------------------------------------------------------------------
    # CellResolver protocol implementation
    # ------------------------------------------------------------------

    def is_valid_cell_label(self, token: str) -> bool:
        return is_valid_cell_label(token)

    def get_cell_by_label(self, label: str) -> Cell:
        """Return the cell at *label*, creating an empty one on first access.

        Raises:
            ValueError: If *label* is malformed or outside the grid.
        """
        row, col = parse_label(label)
        if row >= self.n_rows or col >= self.n_cols:
            raise ValueError(
                f"Cell {label!r} is outside the {self.n_rows}x{self.n_cols} sheet"
            )
        cell = self._cells.get(label)
        if cell is None:
            cell = Cell(label)
            self._cells[label] = cell
        return cell

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_cell_formula(self, label: str, formula: list[str]) -> None:
        self.get_cell_by_label(label).set_formula(formula)

    def set_cell_value(self, label: str, value: float) -> None:
        self.get_cell_by_label(label).set_value(value)

    def set_cell_error(self, label: str, error: str) -> None:
        self.get_cell_by_label(label).set_error(error)

    def labels(self) -> list[str]:
        """Labels of all cells touched so far, in row-major order."""
        return sorted(self._cells, key=parse_label)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_cell(self, label: str, evaluator: FormulaEvaluator | None = None) -> Outcome:
        """Evaluate the formula stored at *label* and store value and error on it.

        Referenced cells contribute their *current* value; nothing is
        re-evaluated recursively.

        Args:
            label: Cell to evaluate.
            evaluator: Evaluator to reuse; a fresh one is created if omitted.

        Returns:
            The :class:`Outcome` that was stored on the cell.
        """
        cell = self.get_cell_by_label(label)
        ev = evaluator if evaluator is not None else FormulaEvaluator(self)
        ev.evaluate(cell.get_formula())
        cell.set_value(ev.result)
        cell.set_error(ev.error)
        return Outcome(result=ev.result, error=ev.error)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        default_rows: int = 100,
        default_cols: int = 26,
    ) -> "SheetMemory":
        """Build a sheet from a parsed sheet spec (see module docstring).

        Raises:
            ValueError: On malformed cell entries or labels.
        """
        memory = cls(
            n_rows=int(data.get("n_rows", default_rows)),
            n_cols=int(data.get("n_cols", default_cols)),
        )
        cells = data.get("cells") or {}
        if not isinstance(cells, dict):
            raise ValueError("'cells' must be a mapping of label -> cell spec")

        for label, spec in cells.items():
            label = str(label)
            if not isinstance(spec, dict):
                raise ValueError(f"Cell {label!r}: expected a mapping, got {type(spec).__name__}")
            cell = memory.get_cell_by_label(label)
            formula = spec.get("formula", [])
            if not isinstance(formula, list):
                raise ValueError(
                    f"Cell {label!r}: 'formula' must be a list of tokens"
                )
            cell.set_formula(formula)
            if "value" in spec:
                try:
                    cell.set_value(float(spec["value"]))
                except (TypeError, ValueError):
                    raise ValueError(f"Cell {label!r}: 'value' must be a number") from None
            if spec.get("error"):
                cell.set_error(str(spec["error"]))
        return memory


def load_sheet(path: Path, *, default_rows: int = 100, default_cols: int = 26) -> SheetMemory:
    """Load a sheet from a YAML file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not a valid sheet spec.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sheet file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Sheet file {path} must contain a mapping")
    return SheetMemory.from_dict(data, default_rows=default_rows, default_cols=default_cols)
