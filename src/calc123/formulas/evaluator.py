"""Operator-precedence evaluator for tokenized arithmetic formulas.

Supports:
- Numeric literals (anything ``float()`` accepts, except NaN)
- Cell references resolved through an injected :class:`CellResolver`
- Binary ``+ - * /`` with standard precedence, left-associative
- Parenthesised sub-expressions

Evaluation is a single left-to-right pass over two stacks (operands and
pending operators) with one token of lookahead.  Failures never escape
:meth:`FormulaEvaluator.evaluate`; they are reported through the ``error``
property using the identifiers in :mod:`calc123.formulas.errors`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, Sequence

from calc123.formulas.errors import (
    EMPTY_FORMULA,
    ENGINE_ERRORS,
    INVALID_CELL,
    INVALID_FORMULA,
    MISSING_PARENTHESES,
    FormulaDivisionError,
    FormulaError,
    FormulaOperatorError,
    FormulaRefError,
    FormulaSyntaxError,
)
from calc123.formulas.tokens import (
    CLOSE_PAREN,
    OPEN_PAREN,
    TokenKind,
    classify,
    get_operator_precedence,
    is_operator,
    parse_number,
)


# ---------------------------------------------------------------------------
# Resolver protocol
# ---------------------------------------------------------------------------


class Cell(Protocol):
    """Read-only view of a cell as seen by the evaluator."""

    def get_formula(self) -> list[str]:
        ...

    def get_error(self) -> str:
        ...

    def get_value(self) -> float:
        ...


class CellResolver(Protocol):
    """Protocol for resolving cell labels to cells.

    The evaluator only reads from the resolver; it never mutates a cell.
    """

    def is_valid_cell_label(self, token: str) -> bool:
        """Return True if *token* has the sheet's cell-label syntax."""
        ...

    def get_cell_by_label(self, label: str) -> Cell:
        """Return the cell for *label*."""
        ...


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class FormulaEvaluator:
    """Evaluates token sequences against a sheet memory.

    Usage::

        ev = FormulaEvaluator(memory)
        ev.evaluate(["2", "*", "(", "A1", "+", "3", ")"])
        if not ev.error:
            print(ev.result)

    The instance keeps only the outcome of the most recent call and is not
    safe to share between concurrent evaluations.
    """

    def __init__(self, memory: CellResolver) -> None:
        self._memory = memory
        self._error_message = ""
        self._result: float = 0

    @property
    def error(self) -> str:
        """Error identifier of the last evaluation, or ``""`` on success."""
        return self._error_message

    @property
    def result(self) -> float:
        """Result of the last evaluation.  Meaningless unless ``error`` is empty,
        except after a division by zero, where it is ``inf``.
        """
        return self._result

    def evaluate(self, formula: Sequence[str]) -> None:
        """Evaluate *formula* and store the outcome on this instance."""
        self._error_message = ""
        tokens = list(formula)

        if not tokens:
            self._error_message = EMPTY_FORMULA
            return

        if len(tokens) == 2 and tokens[0] == OPEN_PAREN and tokens[1] == CLOSE_PAREN:
            self._error_message = MISSING_PARENTHESES
            return

        # Flagged up front; the scan below re-checks and may report something
        # more specific first (e.g. a division by zero while reducing).
        if is_operator(tokens[-1]):
            self._error_message = INVALID_FORMULA

        try:
            self._result = self._evaluate_expression(tokens)
        except ENGINE_ERRORS as exc:
            import logging

            logging.getLogger(__name__).debug(
                "Formula evaluation aborted: %s", exc, exc_info=True
            )
            if isinstance(exc, FormulaError):
                self._error_message = exc.message_id
            elif not self._error_message:
                self._error_message = INVALID_FORMULA

    # ------------------------------------------------------------------
    # Core scan
    # ------------------------------------------------------------------

    def _evaluate_expression(self, tokens: list[str]) -> float:
        values: list[float] = []
        operators: list[str] = []
        last = len(tokens) - 1

        for i, token in enumerate(tokens):
            kind = classify(token, self.is_cell_reference)
            next_token = tokens[i + 1] if i < last else None

            if kind is TokenKind.number:
                number = parse_number(token)
                values.append(number)
                # "3 (" -- no operator between a number and a parenthesis
                if next_token == OPEN_PAREN:
                    self._error_message = INVALID_FORMULA
                    return number

            elif kind is TokenKind.cell_reference:
                values.append(self._get_cell_value(token))

            elif kind is TokenKind.open_paren:
                operators.append(token)

            elif kind is TokenKind.close_paren:
                while operators and operators[-1] != OPEN_PAREN:
                    self.apply_operator(operators.pop(), values)
                # Discard the matching "(" (a no-op when nothing is pending).
                if operators:
                    operators.pop()

            elif kind is TokenKind.operator:
                if next_token is not None and is_operator(next_token):
                    self._error_message = INVALID_FORMULA
                    return values[-1] if values else 0
                precedence = get_operator_precedence(token)
                while operators and precedence <= get_operator_precedence(operators[-1]):
                    self.apply_operator(operators.pop(), values)
                operators.append(token)

        if is_operator(tokens[-1]):
            self._error_message = INVALID_FORMULA
            return values[-1] if values else 0

        # A leftover "(" or an operator without two operands.
        if operators and (not is_operator(operators[-1]) or len(values) < 2):
            raise FormulaSyntaxError("unbalanced formula")

        while operators:
            self.apply_operator(operators.pop(), values)

        return values.pop() if values else 0

    def apply_operator(self, operator: str, values: list[float]) -> None:
        """Pop two operands from *values*, apply *operator*, push the result.

        Raises:
            FormulaOperatorError: *operator* is not one of ``+ - * /``.  Checked
                first, so a "(" drained from the stack always lands here.
            FormulaSyntaxError: Fewer than two operands are available.
            FormulaDivisionError: Right operand of ``/`` is zero; ``result``
                is set to ``inf`` first.
        """
        if not is_operator(operator):
            raise FormulaOperatorError(operator)
        if len(values) < 2:
            raise FormulaSyntaxError(f"missing operand for {operator!r}")
        right = values.pop()
        left = values.pop()

        if operator == "+":
            result = left + right
        elif operator == "-":
            result = left - right
        elif operator == "*":
            result = left * right
        else:
            if right == 0:
                self._result = math.inf
                raise FormulaDivisionError()
            result = left / right

        values.append(result)

    def is_cell_reference(self, token: str) -> bool:
        return self._memory.is_valid_cell_label(token)

    def _get_cell_value(self, label: str) -> float:
        """Resolve a cell reference to its current value.

        Raises:
            FormulaRefError: The cell carries an error (other than an empty
                formula), or its formula is empty.
        """
        cell = self._memory.get_cell_by_label(label)
        formula = cell.get_formula()
        error = cell.get_error()

        # Propagated errors (e.g. circular references) surface verbatim.
        if error and error != EMPTY_FORMULA:
            raise FormulaRefError(label, error)

        if not formula:
            raise FormulaRefError(label, INVALID_CELL)

        return float(cell.get_value())


# ---------------------------------------------------------------------------
# Convenience wrapper
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Outcome:
    """Result/error pair of a single evaluation."""

    result: float
    error: str

    @property
    def ok(self) -> bool:
        return not self.error


def evaluate_tokens(tokens: Sequence[str], resolver: CellResolver) -> Outcome:
    """Evaluate *tokens* with a fresh evaluator and return the outcome.

    Args:
        tokens: Pre-tokenized formula, e.g. ``["A1", "+", "2"]``.
        resolver: Sheet memory used to resolve cell references.

    Returns:
        An :class:`Outcome`; ``error`` is ``""`` on success.
    """
    evaluator = FormulaEvaluator(resolver)
    evaluator.evaluate(tokens)
    return Outcome(result=evaluator.result, error=evaluator.error)
