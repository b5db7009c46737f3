"""Tests for the pactum expression language.

Covers:
- Parsing precedence, records, durations and conditionals
- Evaluation with null propagation and date arithmetic
- Built-in functions, including diffDurationAs truncation
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pactum.core.expression_lang import ExpressionEvalError, ExpressionParseError, evaluate, parse_expr
from pactum.core.expression_lang.builtins import diff_duration_as, make_duration, to_datetime
from pactum.core.ir.expressions import BinaryExpr, BinaryOp, DurationLiteral, RecordExpr

NOW = datetime(2017, 12, 19, 17, 38, 1, tzinfo=UTC)


def _eval(source: str, context: dict | None = None):
    return evaluate(parse_expr(source), context or {}, NOW)


# =============================================================================
# Parsing
# =============================================================================


class TestParsing:
    def test_multiplication_binds_tighter_than_addition(self) -> None:
        expr = parse_expr("1 + 2 * 3")
        assert isinstance(expr, BinaryExpr)
        assert expr.op == BinaryOp.ADD
        assert isinstance(expr.right, BinaryExpr)
        assert expr.right.op == BinaryOp.MUL

    def test_duration_literal(self) -> None:
        expr = parse_expr("9d")
        assert isinstance(expr, DurationLiteral)
        assert expr.value == 9
        assert expr.temporal_unit == "days"

    def test_record_constructor(self) -> None:
        expr = parse_expr('Response{ penalty: 1.5, note: "late" }')
        assert isinstance(expr, RecordExpr)
        assert expr.type_name == "Response"
        assert [name for name, _ in expr.fields] == ["penalty", "note"]

    def test_not_binds_looser_than_comparison(self) -> None:
        expr = parse_expr("not a == b and c")
        assert isinstance(expr, BinaryExpr)
        assert expr.op == BinaryOp.AND
        assert str(expr.left) == "not (a == b)"

    def test_negation_binds_tighter_than_multiplication(self) -> None:
        assert str(parse_expr("-a * b")) == "(-a * b)"

    def test_comparisons_do_not_chain(self) -> None:
        with pytest.raises(ExpressionParseError):
            parse_expr("1 < 2 < 3")

    def test_null_check_and_membership(self) -> None:
        assert str(parse_expr("x is not null")) == "(x != null)"
        assert str(parse_expr('unit not in ["days", "weeks"]')) == '(unit not in ["days", "weeks"])'

    def test_property_of_call_result(self) -> None:
        assert str(parse_expr("addDuration(t, 2w).year")) == '__get__(addDuration(t, 2w), "year")'

    def test_unbalanced_parenthesis_is_an_error(self) -> None:
        with pytest.raises(ExpressionParseError):
            parse_expr("(1 + 2")


# =============================================================================
# Evaluation
# =============================================================================


class TestEvaluation:
    def test_arithmetic_is_left_associative(self) -> None:
        assert _eval("2 / 9 * 7.0 / 100.0 * 200.0") == 2 / 9 * 7.0 / 100.0 * 200.0

    def test_field_reference_through_records(self) -> None:
        context = {"contract": {"penaltyDuration": {"amount": 9, "unit": "days"}}}
        assert _eval("contract.penaltyDuration.amount", context) == 9

    def test_missing_member_is_null(self) -> None:
        assert _eval("contract.nothing", {"contract": {}}) is None

    def test_null_propagates_through_arithmetic(self) -> None:
        assert _eval("x + 1", {"x": None}) is None

    def test_null_comparisons_are_false(self) -> None:
        assert _eval("x < 1", {"x": None}) is False

    def test_division_by_zero(self) -> None:
        with pytest.raises(ExpressionEvalError, match="Division by zero"):
            _eval("1 / 0")

    def test_and_short_circuits(self) -> None:
        assert _eval("false and (1 / 0)") is False

    def test_conditional_expression(self) -> None:
        assert _eval('if x > 1: "big" else: "small"', {"x": 2}) == "big"
        assert _eval('if x > 1: "big" else: "small"', {"x": 0}) == "small"

    def test_record_gets_class(self) -> None:
        assert _eval("Response{ ok: true }") == {"$class": "Response", "ok": True}

    def test_now_is_the_given_clock(self) -> None:
        assert _eval("now()") == NOW

    def test_date_plus_duration(self) -> None:
        start = datetime(2017, 12, 17, 8, 24, tzinfo=UTC)
        result = _eval("start + 2w", {"start": start})
        assert result == datetime(2017, 12, 31, 8, 24, tzinfo=UTC)

    def test_adding_string_to_number_fails(self) -> None:
        with pytest.raises(ExpressionEvalError):
            _eval('"a" + 1')

    def test_record_times_number_fails(self) -> None:
        context = {"d": {"$class": "org.accordproject.time.Duration", "amount": 9, "unit": "days"}}
        with pytest.raises(
            ExpressionEvalError, match=r"Cannot apply '\*' to org.accordproject.time.Duration and int"
        ):
            _eval("d * 2", context)

    def test_ordering_unlike_values_fails(self) -> None:
        with pytest.raises(ExpressionEvalError, match="Cannot apply '<' to str and int"):
            _eval('"a" < 1')

    def test_negating_a_string_fails(self) -> None:
        with pytest.raises(ExpressionEvalError, match="Cannot negate str"):
            _eval("-x", {"x": "a"})


# =============================================================================
# Built-in functions
# =============================================================================


class TestBuiltins:
    def test_diff_duration_truncates(self) -> None:
        start = to_datetime("2017-12-17T03:24:00-05:00")
        assert diff_duration_as(start, NOW, "days") == make_duration(2, "days")

    def test_diff_duration_truncates_toward_zero_when_negative(self) -> None:
        start = to_datetime("2017-12-17T03:24:00-05:00")
        assert diff_duration_as(NOW, start, "days")["amount"] == -2

    def test_is_before_and_after(self) -> None:
        context = {"a": datetime(2017, 1, 1, tzinfo=UTC)}
        assert _eval("isBefore(a, now())", context) is True
        assert _eval("isAfter(a, now())", context) is False

    def test_min_ignores_nulls(self) -> None:
        assert _eval("min(3.0, x, 2.0)", {"x": None}) == 2.0

    def test_unknown_function(self) -> None:
        with pytest.raises(ExpressionEvalError, match="Unknown function"):
            _eval("frobnicate(1)")

    def test_unknown_duration_unit(self) -> None:
        with pytest.raises(ExpressionEvalError):
            _eval('diffDurationAs(now(), now(), "fortnights")')
