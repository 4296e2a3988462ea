"""Token classification for pre-tokenized formulas.

Tokens are plain strings; their kind is re-derived from the text on every
call.  All helpers here are pure.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Callable

OPEN_PAREN = "("
CLOSE_PAREN = ")"

OPERATORS: frozenset[str] = frozenset({"+", "-", "*", "/"})

_PRECEDENCE: dict[str, int] = {
    "+": 1,
    "-": 1,
    "*": 2,
    "/": 2,
}


class TokenKind(str, Enum):
    number = "number"
    cell_reference = "cell_reference"
    operator = "operator"
    open_paren = "open_paren"
    close_paren = "close_paren"
    unknown = "unknown"


def parse_number(token: str) -> float | None:
    """Return the numeric value of *token*, or None if it is not a number.

    NaN literals are rejected so that every accepted token has a usable value.
    """
    try:
        value = float(token)
    except (TypeError, ValueError):
        return None
    if math.isnan(value):
        return None
    return value


def is_number(token: str) -> bool:
    return parse_number(token) is not None


def is_operator(token: str) -> bool:
    return token in OPERATORS


def get_operator_precedence(operator: str) -> int:
    """``+ -`` rank 1, ``* /`` rank 2; anything else (including ``(``) is 0."""
    return _PRECEDENCE.get(operator, 0)


def classify(token: str, is_cell_label: Callable[[str], bool]) -> TokenKind:
    """Classify *token* into exactly one :class:`TokenKind`.

    Numbers win over cell labels; *is_cell_label* is the resolver's label
    predicate.
    """
    if is_number(token):
        return TokenKind.number
    if is_cell_label(token):
        return TokenKind.cell_reference
    if token == OPEN_PAREN:
        return TokenKind.open_paren
    if token == CLOSE_PAREN:
        return TokenKind.close_paren
    if is_operator(token):
        return TokenKind.operator
    return TokenKind.unknown
