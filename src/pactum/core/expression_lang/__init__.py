"""
pactum typed expression language.

Tokenizer, parser, evaluator and built-in functions shared by clause logic
and grammar formulas.

Usage:
    from pactum.core.expression_lang import parse_expr, evaluate

    expr = parse_expr("penaltyPercentage * goodsValue / 100.0")
    result = evaluate(expr, {"penaltyPercentage": 7.0, "goodsValue": 200.0})
    # result == 14.0
"""

from pactum.core.expression_lang.evaluator import ExpressionEvalError, evaluate
from pactum.core.expression_lang.parser import ExpressionParseError, parse_expr

__all__ = ["ExpressionEvalError", "ExpressionParseError", "evaluate", "parse_expr"]
