"""Tokenized arithmetic formula evaluation.

Public API::

    from calc123.formulas import FormulaEvaluator, evaluate_tokens
"""

from calc123.formulas.errors import (
    DIVIDE_BY_ZERO,
    EMPTY_FORMULA,
    ENGINE_ERRORS,
    ERROR_MESSAGES,
    INVALID_CELL,
    INVALID_FORMULA,
    INVALID_OPERATOR,
    MISSING_PARENTHESES,
    FormulaDivisionError,
    FormulaError,
    FormulaOperatorError,
    FormulaRefError,
    FormulaSyntaxError,
)
from calc123.formulas.evaluator import (
    Cell,
    CellResolver,
    FormulaEvaluator,
    Outcome,
    evaluate_tokens,
)
from calc123.formulas.tokens import (
    TokenKind,
    classify,
    get_operator_precedence,
    is_number,
    is_operator,
)

__all__ = [
    "Cell",
    "CellResolver",
    "DIVIDE_BY_ZERO",
    "EMPTY_FORMULA",
    "ENGINE_ERRORS",
    "ERROR_MESSAGES",
    "FormulaDivisionError",
    "FormulaError",
    "FormulaEvaluator",
    "FormulaOperatorError",
    "FormulaRefError",
    "FormulaSyntaxError",
    "INVALID_CELL",
    "INVALID_FORMULA",
    "INVALID_OPERATOR",
    "MISSING_PARENTHESES",
    "Outcome",
    "TokenKind",
    "classify",
    "evaluate_tokens",
    "get_operator_precedence",
    "is_number",
    "is_operator",
]
