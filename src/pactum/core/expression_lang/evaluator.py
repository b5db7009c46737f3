"""
Expression evaluator for the pactum expression language.

Evaluates expression AST nodes against a context (dict of names to values).
Pure evaluation, no I/O and no side effects. Does NOT use Python's eval();
this is a tree-walking interpreter over the closed set of AST node types.

The clock is explicit: ``now()`` returns the ``now`` argument, so identical
inputs always evaluate to identical results.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Any

from pactum.core.expression_lang.builtins import (
    FUNCTIONS,
    BuiltinError,
    is_duration,
    make_duration,
    to_timedelta,
    type_name,
)
from pactum.core.ir.expressions import (
    BinaryExpr,
    BinaryOp,
    DurationLiteral,
    Expr,
    FieldRef,
    FuncCall,
    IfExpr,
    InExpr,
    ListExpr,
    Literal,
    RecordExpr,
    UnaryExpr,
    UnaryOp,
)


class ExpressionEvalError(Exception):
    """Error during expression evaluation."""


def evaluate(expr: Expr, context: dict[str, Any], now: datetime | None = None) -> Any:
    """Evaluate an expression against a context dict.

    Args:
        expr: Parsed expression AST.
        context: Dict of name -> value. Records are nested dicts.
        now: Value returned by ``now()``; the wall clock (UTC) when omitted.

    Returns:
        The computed value.

    Raises:
        ExpressionEvalError: If evaluation fails.
    """
    clock = now if now is not None else datetime.now(UTC)
    return _interpret(expr, context, clock)


def _interpret(expr: Expr, ctx: dict[str, Any], clock: datetime) -> Any:
    """Dispatch evaluation to the appropriate handler."""
    if isinstance(expr, Literal):
        return expr.value

    if isinstance(expr, FieldRef):
        return _interpret_field_ref(expr, ctx)

    if isinstance(expr, DurationLiteral):
        return make_duration(expr.value, expr.temporal_unit)

    if isinstance(expr, BinaryExpr):
        return _interpret_binary(expr, ctx, clock)

    if isinstance(expr, UnaryExpr):
        return apply_unary(expr.op, _interpret(expr.operand, ctx, clock))

    if isinstance(expr, FuncCall):
        return _interpret_func_call(expr, ctx, clock)

    if isinstance(expr, ListExpr):
        return [_interpret(item, ctx, clock) for item in expr.items]

    if isinstance(expr, RecordExpr):
        record: dict[str, Any] = {"$class": expr.fqn or expr.type_name}
        for name, value in expr.fields:
            record[name] = _interpret(value, ctx, clock)
        return record

    if isinstance(expr, InExpr):
        return _interpret_in(expr, ctx, clock)

    if isinstance(expr, IfExpr):
        return _interpret_if(expr, ctx, clock)

    raise ExpressionEvalError(f"Unknown expression type: {type(expr).__name__}")


def _interpret_field_ref(expr: FieldRef, ctx: dict[str, Any]) -> Any:
    """Resolve a field reference against the context."""
    current: Any = ctx
    for segment in expr.path:
        current = get_member(current, segment)
    return current


def get_member(value: Any, name: str) -> Any:
    """Property access on a record; missing properties are null."""
    if isinstance(value, dict):
        return value.get(name)
    if isinstance(value, (date, datetime)) and hasattr(value, name):
        return getattr(value, name)
    return None


def _interpret_binary(expr: BinaryExpr, ctx: dict[str, Any], clock: datetime) -> Any:
    """Evaluate a binary expression."""
    # Short-circuit for logical operators
    if expr.op == BinaryOp.AND:
        left = _interpret(expr.left, ctx, clock)
        if not left:
            return left
        return _interpret(expr.right, ctx, clock)

    if expr.op == BinaryOp.OR:
        left = _interpret(expr.left, ctx, clock)
        if left:
            return left
        return _interpret(expr.right, ctx, clock)

    left = _interpret(expr.left, ctx, clock)
    right = _interpret(expr.right, ctx, clock)
    return apply_binary(expr.op, left, right)


def apply_binary(op: BinaryOp | str, left: Any, right: Any) -> Any:
    """Apply a non short-circuiting binary operator to two values.

    Shared with generated Python clause modules so both backends agree on
    null handling and on date arithmetic.

    Raises:
        ExpressionEvalError: If the operands do not support the operator.
    """
    op = BinaryOp(op)
    try:
        return _apply_binary(op, left, right)
    except BuiltinError as e:
        raise ExpressionEvalError(str(e)) from e
    except (TypeError, ValueError, OverflowError) as e:
        raise ExpressionEvalError(
            f"Cannot apply {op.value!r} to {type_name(left)} and {type_name(right)}"
        ) from e


def _apply_binary(op: BinaryOp, left: Any, right: Any) -> Any:
    # Null-safe comparisons
    if op == BinaryOp.EQ:
        return left == right
    if op == BinaryOp.NE:
        return left != right

    # Null propagation for arithmetic/comparison
    if left is None or right is None:
        if op in (BinaryOp.LT, BinaryOp.GT, BinaryOp.LE, BinaryOp.GE):
            return False
        return None

    # Arithmetic
    if op == BinaryOp.ADD:
        return _add(left, right)
    if op == BinaryOp.SUB:
        return _sub(left, right)
    if op == BinaryOp.MUL:
        return left * right
    if op == BinaryOp.DIV:
        if right == 0:
            raise ExpressionEvalError("Division by zero")
        return left / right
    if op == BinaryOp.MOD:
        if right == 0:
            raise ExpressionEvalError("Modulo by zero")
        return left % right

    # Comparison
    if op == BinaryOp.LT:
        return left < right
    if op == BinaryOp.GT:
        return left > right
    if op == BinaryOp.LE:
        return left <= right
    if op == BinaryOp.GE:
        return left >= right

    if op == BinaryOp.AND:
        return left and right
    if op == BinaryOp.OR:
        return left or right

    raise ExpressionEvalError(f"Unknown binary op: {op}")


def _add(left: Any, right: Any) -> Any:
    """Type-aware addition supporting DateTime + Duration."""
    if isinstance(left, datetime) and (is_duration(right) or isinstance(right, timedelta)):
        return left + to_timedelta(right)
    if isinstance(right, datetime) and (is_duration(left) or isinstance(left, timedelta)):
        return right + to_timedelta(left)
    if isinstance(left, str) and isinstance(right, str):
        return left + right
    if isinstance(left, str) or isinstance(right, str):
        raise ExpressionEvalError("Cannot add a String to a non-String; use concat()")
    return left + right


def _sub(left: Any, right: Any) -> Any:
    """Type-aware subtraction supporting DateTime - Duration."""
    if isinstance(left, datetime) and (is_duration(right) or isinstance(right, timedelta)):
        return left - to_timedelta(right)
    return left - right


def apply_unary(op: UnaryOp | str, value: Any) -> Any:
    """Apply a unary operator to a value."""
    op = UnaryOp(op)
    if op == UnaryOp.NOT:
        return not value
    if op == UnaryOp.NEG:
        if value is None:
            return None
        try:
            return -value
        except TypeError as e:
            raise ExpressionEvalError(f"Cannot negate {type_name(value)}") from e
    raise ExpressionEvalError(f"Unknown unary op: {op}")


def call_function(name: str, args: list[Any]) -> Any:
    """Call a built-in function by its logic-language name."""
    func = FUNCTIONS.get(name)
    if func is None:
        raise ExpressionEvalError(f"Unknown function: {name}()")
    try:
        return func(*args)
    except BuiltinError as e:
        raise ExpressionEvalError(f"{name}(): {e}") from e
    except TypeError as e:
        raise ExpressionEvalError(f"{name}(): bad arguments ({e})") from e


def _interpret_func_call(expr: FuncCall, ctx: dict[str, Any], clock: datetime) -> Any:
    """Evaluate a built-in function call (closed set, no user-defined functions)."""
    if expr.name == "now":
        if expr.args:
            raise ExpressionEvalError("now() takes no arguments")
        return clock

    # Synthetic property access on a computed value
    if expr.name == "__get__":
        target = _interpret(expr.args[0], ctx, clock)
        return get_member(target, _interpret(expr.args[1], ctx, clock))

    args = [_interpret(a, ctx, clock) for a in expr.args]
    return call_function(expr.name, args)


def _interpret_in(expr: InExpr, ctx: dict[str, Any], clock: datetime) -> bool:
    """Evaluate an 'in' / 'not in' expression."""
    val = _interpret(expr.value, ctx, clock)
    items = [_interpret(item, ctx, clock) for item in expr.items]
    result = val in items
    return not result if expr.negated else result


def _interpret_if(expr: IfExpr, ctx: dict[str, Any], clock: datetime) -> Any:
    """Evaluate an if/elif/else expression."""
    if _interpret(expr.condition, ctx, clock):
        return _interpret(expr.then_expr, ctx, clock)

    for cond, val in expr.elif_branches:
        if _interpret(cond, ctx, clock):
            return _interpret(val, ctx, clock)

    return _interpret(expr.else_expr, ctx, clock)
