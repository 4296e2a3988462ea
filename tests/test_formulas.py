"""Formula evaluator tests: precedence, parentheses, malformed input, cell refs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import pytest

from calc123.formulas import (
    DIVIDE_BY_ZERO,
    EMPTY_FORMULA,
    ERROR_MESSAGES,
    INVALID_CELL,
    INVALID_FORMULA,
    INVALID_OPERATOR,
    MISSING_PARENTHESES,
    FormulaEvaluator,
    TokenKind,
    classify,
    evaluate_tokens,
    get_operator_precedence,
    is_number,
    is_operator,
)
from calc123.sheet import is_valid_cell_label


# ────────────────────────────────────────────────────────────────
# Fake resolver
# ────────────────────────────────────────────────────────────────


@dataclass
class FakeCell:
    formula: list[str] = field(default_factory=list)
    value: float = 0
    error: str = ""

    def get_formula(self) -> list[str]:
        return self.formula

    def get_error(self) -> str:
        return self.error

    def get_value(self) -> float:
        return self.value


class FakeMemory:
    """Dict-backed resolver; records every lookup."""

    def __init__(self, cells: dict[str, FakeCell] | None = None) -> None:
        self.cells = cells or {}
        self.lookups: list[str] = []

    def is_valid_cell_label(self, token: str) -> bool:
        return is_valid_cell_label(token)

    def get_cell_by_label(self, label: str) -> FakeCell:
        self.lookups.append(label)
        return self.cells.setdefault(label, FakeCell())


def _run(tokens: list[str], memory: FakeMemory | None = None) -> FormulaEvaluator:
    ev = FormulaEvaluator(memory or FakeMemory())
    ev.evaluate(tokens)
    return ev


# ────────────────────────────────────────────────────────────────
# Token classification
# ────────────────────────────────────────────────────────────────


class TestTokens:
    def test_numbers(self) -> None:
        assert is_number("3")
        assert is_number("3.25")
        assert is_number("-2")
        assert is_number("1e3")
        assert not is_number("A1")
        assert not is_number("+")
        assert not is_number("nan")

    def test_operators(self) -> None:
        for op in "+-*/":
            assert is_operator(op)
        assert not is_operator("(")
        assert not is_operator("^")

    def test_precedence(self) -> None:
        assert get_operator_precedence("+") == get_operator_precedence("-") == 1
        assert get_operator_precedence("*") == get_operator_precedence("/") == 2
        assert get_operator_precedence("(") == 0
        assert get_operator_precedence("%") == 0

    def test_classify(self) -> None:
        assert classify("42", is_valid_cell_label) is TokenKind.number
        assert classify("B7", is_valid_cell_label) is TokenKind.cell_reference
        assert classify("(", is_valid_cell_label) is TokenKind.open_paren
        assert classify(")", is_valid_cell_label) is TokenKind.close_paren
        assert classify("*", is_valid_cell_label) is TokenKind.operator
        assert classify("foo", is_valid_cell_label) is TokenKind.unknown

    def test_error_catalog(self) -> None:
        assert ERROR_MESSAGES == {
            "emptyFormula", "missingParentheses", "invalidFormula",
            "divideByZero", "invalidOperator", "invalidCell",
        }


# ────────────────────────────────────────────────────────────────
# Arithmetic
# ────────────────────────────────────────────────────────────────


class TestArithmetic:
    @pytest.mark.parametrize(
        "tokens, expected",
        [
            pytest.param(["3", "+", "4"], 7, id="add"),
            pytest.param(["2", "*", "3", "+", "4"], 10, id="mul-before-add"),
            pytest.param(["4", "+", "2", "*", "3"], 10, id="mul-before-add-right"),
            pytest.param(["(", "2", "+", "3", ")", "*", "4"], 20, id="parens"),
            pytest.param(["8", "-", "3", "-", "2"], 3, id="left-assoc-sub"),
            pytest.param(["16", "/", "4", "/", "2"], 2, id="left-assoc-div"),
            pytest.param(["7"], 7, id="single-number"),
            pytest.param(["(", "(", "1", ")", ")"], 1, id="nested-parens"),
            pytest.param(["10", "+", "2", "*", "(", "5", "+", "3", "-", "1", ")"], 24, id="mixed"),
            pytest.param(["1.5", "*", "2"], 3.0, id="decimal"),
        ],
    )
    def test_evaluate(self, tokens: list[str], expected: float) -> None:
        ev = _run(tokens)
        assert ev.error == ""
        assert ev.result == pytest.approx(expected)

    def test_idempotent(self) -> None:
        memory = FakeMemory({"A1": FakeCell(["5"], 5)})
        ev = FormulaEvaluator(memory)
        ev.evaluate(["A1", "*", "2"])
        first = (ev.result, ev.error)
        ev.evaluate(["A1", "*", "2"])
        assert (ev.result, ev.error) == first == (10, "")

    def test_default_result(self) -> None:
        ev = FormulaEvaluator(FakeMemory())
        assert ev.result == 0
        assert ev.error == ""


# ────────────────────────────────────────────────────────────────
# Structural errors
# ────────────────────────────────────────────────────────────────


class TestMalformed:
    def test_empty_formula(self) -> None:
        ev = _run([])
        assert ev.error == EMPTY_FORMULA
        assert ev.result == 0

    def test_empty_formula_keeps_previous_result(self) -> None:
        ev = FormulaEvaluator(FakeMemory())
        ev.evaluate(["6"])
        ev.evaluate([])
        assert ev.error == EMPTY_FORMULA
        assert ev.result == 6

    def test_lone_parentheses(self) -> None:
        assert _run(["(", ")"]).error == MISSING_PARENTHESES

    def test_consecutive_operators(self) -> None:
        ev = _run(["3", "+", "*", "4"])
        assert ev.error == INVALID_FORMULA
        assert ev.result == 3

    def test_trailing_operator(self) -> None:
        ev = _run(["3", "+"])
        assert ev.error == INVALID_FORMULA
        assert ev.result == 3

    def test_number_followed_by_paren(self) -> None:
        ev = _run(["3", "(", "4", ")"])
        assert ev.error == INVALID_FORMULA
        assert ev.result == 3

    def test_stray_open_paren(self) -> None:
        assert _run(["(", "3"]).error == INVALID_FORMULA

    @pytest.mark.parametrize(
        "tokens",
        [
            pytest.param(["(", "3", "+", "4"], id="one-operand-left"),
            pytest.param(["1", "+", "(", "2", "+", "3"], id="two-operands-left"),
            pytest.param(["(", "(", "1", "+", "1", ")", "*", "3"], id="nested"),
        ],
    )
    def test_unclosed_paren_drains_to_invalid_operator(self, tokens: list[str]) -> None:
        # The "(" left on the stack is applied as an operator
        assert _run(tokens).error == INVALID_OPERATOR

    def test_close_paren_on_empty_stack_is_tolerated(self) -> None:
        ev = _run(["3", ")"])
        assert ev.error == ""
        assert ev.result == 3

    def test_leading_operator_without_operand(self) -> None:
        assert _run(["+", "3"]).error == INVALID_FORMULA

    def test_missing_operand_inside_parens(self) -> None:
        assert _run(["(", "+", "3", ")"]).error == INVALID_FORMULA

    def test_error_reset_between_calls(self) -> None:
        ev = FormulaEvaluator(FakeMemory())
        ev.evaluate(["3", "+"])
        assert ev.error == INVALID_FORMULA
        ev.evaluate(["3", "+", "1"])
        assert ev.error == ""
        assert ev.result == 4


# ────────────────────────────────────────────────────────────────
# Semantic errors
# ────────────────────────────────────────────────────────────────


class TestSemantic:
    def test_divide_by_zero(self) -> None:
        ev = _run(["3", "/", "0"])
        assert ev.error == DIVIDE_BY_ZERO
        assert ev.result == math.inf

    def test_divide_by_zero_inside_parens(self) -> None:
        ev = _run(["1", "+", "(", "2", "/", "(", "1", "-", "1", ")", ")"])
        assert ev.error == DIVIDE_BY_ZERO
        assert ev.result == math.inf

    def test_divide_by_zero_wins_over_trailing_operator(self) -> None:
        ev = _run(["3", "/", "0", "+"])
        assert ev.error == DIVIDE_BY_ZERO
        assert ev.result == math.inf

    def test_apply_operator_pushes_result(self) -> None:
        ev = FormulaEvaluator(FakeMemory())
        values = [1.0, 8.0, 2.0]
        ev.apply_operator("/", values)
        assert values == [1.0, 4.0]

    def test_invalid_operator_message(self) -> None:
        from calc123.formulas import FormulaOperatorError

        ev = FormulaEvaluator(FakeMemory())
        with pytest.raises(FormulaOperatorError) as exc_info:
            ev.apply_operator("^", [2.0, 3.0])
        assert exc_info.value.message_id == INVALID_OPERATOR

    def test_unknown_operator_checked_before_operands(self) -> None:
        from calc123.formulas import FormulaOperatorError

        ev = FormulaEvaluator(FakeMemory())
        with pytest.raises(FormulaOperatorError):
            ev.apply_operator("(", [])


# ────────────────────────────────────────────────────────────────
# Cell references
# ────────────────────────────────────────────────────────────────


class TestCellReferences:
    def test_resolves_value(self) -> None:
        memory = FakeMemory({"A1": FakeCell(["4"], 4), "B2": FakeCell(["2"], 2)})
        ev = _run(["A1", "*", "B2", "+", "1"], memory)
        assert ev.error == ""
        assert ev.result == 9
        assert memory.lookups == ["A1", "B2"]

    def test_empty_cell_is_invalid(self) -> None:
        ev = _run(["A1", "+", "1"], FakeMemory())
        assert ev.error == INVALID_CELL

    def test_propagates_cell_error(self) -> None:
        memory = FakeMemory({"C3": FakeCell(["C3"], 0, "#CIRC!")})
        ev = _run(["1", "+", "C3"], memory)
        assert ev.error == "#CIRC!"

    def test_propagated_error_overrides_trailing_operator_flag(self) -> None:
        memory = FakeMemory({"C3": FakeCell(["1", "/", "0"], math.inf, DIVIDE_BY_ZERO)})
        ev = _run(["C3", "+"], memory)
        assert ev.error == DIVIDE_BY_ZERO

    def test_empty_formula_error_is_not_propagated(self) -> None:
        # A stale emptyFormula error does not hide a value once a formula exists
        memory = FakeMemory({"A1": FakeCell(["5"], 5, EMPTY_FORMULA)})
        ev = _run(["A1", "-", "2"], memory)
        assert ev.error == ""
        assert ev.result == 3

    def test_empty_formula_error_on_empty_cell(self) -> None:
        memory = FakeMemory({"A1": FakeCell([], 0, EMPTY_FORMULA)})
        assert _run(["A1"], memory).error == INVALID_CELL

    def test_resolver_is_not_mutated(self) -> None:
        cell = FakeCell(["2"], 2)
        memory = FakeMemory({"A1": cell})
        _run(["A1", "/", "0"], memory)
        assert cell == FakeCell(["2"], 2)

    def test_resolver_lookup_error_is_reported(self) -> None:
        class MissingMemory(FakeMemory):
            def get_cell_by_label(self, label: str) -> FakeCell:
                raise KeyError(label)

        ev = _run(["A1", "+", "1"], MissingMemory())
        assert ev.error == INVALID_FORMULA

    def test_non_numeric_cell_value_is_reported(self) -> None:
        memory = FakeMemory({"A1": FakeCell(["1"], None)})
        ev = _run(["A1", "+", "1"], memory)
        assert ev.error == INVALID_FORMULA

    def test_evaluate_tokens_never_raises_for_resolver_errors(self) -> None:
        class BrokenMemory(FakeMemory):
            def get_cell_by_label(self, label: str) -> FakeCell:
                raise IndexError(label)

        outcome = evaluate_tokens(["B2"], BrokenMemory())
        assert outcome.error == INVALID_FORMULA

    def test_lowercase_label_is_not_a_reference(self) -> None:
        memory = FakeMemory()
        ev = _run(["a1"], memory)
        assert memory.lookups == []
        assert ev.error == ""


# ────────────────────────────────────────────────────────────────
# evaluate_tokens
# ────────────────────────────────────────────────────────────────


class TestEvaluateTokens:
    def test_success(self) -> None:
        outcome = evaluate_tokens(["2", "*", "(", "3", "+", "4", ")"], FakeMemory())
        assert outcome.ok
        assert outcome.result == 14

    def test_failure(self) -> None:
        outcome = evaluate_tokens(["1", "/", "0"], FakeMemory())
        assert not outcome.ok
        assert outcome.error == DIVIDE_BY_ZERO
        assert outcome.result == math.inf
