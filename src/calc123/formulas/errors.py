"""Error catalog and exception types for formula evaluation.

The message identifiers below are the fixed contract with callers: the
evaluator reports exactly one of them (or an error propagated verbatim from
a referenced cell) through its ``error`` property.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Error message catalog
# ---------------------------------------------------------------------------

EMPTY_FORMULA = "emptyFormula"
MISSING_PARENTHESES = "missingParentheses"
INVALID_FORMULA = "invalidFormula"
DIVIDE_BY_ZERO = "divideByZero"
INVALID_OPERATOR = "invalidOperator"
INVALID_CELL = "invalidCell"

ERROR_MESSAGES: frozenset[str] = frozenset({
    EMPTY_FORMULA,
    MISSING_PARENTHESES,
    INVALID_FORMULA,
    DIVIDE_BY_ZERO,
    INVALID_OPERATOR,
    INVALID_CELL,
})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FormulaError(Exception):
    """Base class for terminal evaluation failures.

    Attributes:
        message_id: Catalog identifier (or propagated cell error) to report.
    """

    def __init__(self, message_id: str, detail: str | None = None) -> None:
        self.message_id = message_id
        msg = f"Formula error: {message_id}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class FormulaSyntaxError(FormulaError):
    """Malformed token sequence (stray parenthesis, missing operand, ...)."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(INVALID_FORMULA, detail)


class FormulaRefError(FormulaError):
    """A referenced cell carries an error or has no formula.

    Attributes:
        label: The cell label that failed to resolve.
    """

    def __init__(self, label: str, message_id: str) -> None:
        self.label = label
        super().__init__(message_id, f"cell {label!r}")


class FormulaOperatorError(FormulaError):
    """Operator outside ``+ - * /``.

    Attributes:
        operator: The offending operator token.
    """

    def __init__(self, operator: str) -> None:
        self.operator = operator
        super().__init__(INVALID_OPERATOR, f"operator {operator!r}")


class FormulaDivisionError(FormulaError):
    """Division by a zero right operand."""

    def __init__(self) -> None:
        super().__init__(DIVIDE_BY_ZERO, "division by zero")


# Everything the evaluator treats as a terminal failure.  LookupError and
# TypeError cover resolvers that raise on unknown labels or hand back cells
# whose value is not numeric.
ENGINE_ERRORS = (FormulaError, ArithmeticError, LookupError, TypeError, ValueError)
