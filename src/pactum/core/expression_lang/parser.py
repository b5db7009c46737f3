"""
Expression parser for clause logic and grammar formulas.

Binary operators are parsed by binding power (weakest first)::

    or                          1
    and                         2
    not (prefix)                3
    == != < > <= >= in is       4   non-associative
    + -                         5
    * / %                       6
    - (prefix)                  7

Operands are literals (``42``, ``7.5``, ``"text"``, ``true``, ``null``),
durations (``9d``, ``2w``, ``30min``), lists, parenthesized expressions,
function calls, record constructors (``Response{ penalty: 0.0 }``) and dotted
field references. ``.name`` after a call, record or parenthesized expression
reads a property of its value.

``if c: a elif d: b else: e`` is an expression only at the top level.
Record constructors need an upper-case type name so that ``if flag { ... }``
statements stay unambiguous.
"""

from __future__ import annotations

from pactum.core.expression_lang.tokenizer import (
    ExpressionTokenError,
    Token,
    TokenKind,
    tokenize,
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


class ExpressionParseError(Exception):
    """Error during expression parsing."""

    def __init__(self, message: str, pos: int = 0) -> None:
        super().__init__(message)
        self.pos = pos


_OR = 1
_AND = 2
_NOT = 3
_COMPARE = 4
_SUM = 5
_PRODUCT = 6

_BINARY: dict[TokenKind, tuple[int, BinaryOp]] = {
    TokenKind.OR: (_OR, BinaryOp.OR),
    TokenKind.AND: (_AND, BinaryOp.AND),
    TokenKind.EQ: (_COMPARE, BinaryOp.EQ),
    TokenKind.NE: (_COMPARE, BinaryOp.NE),
    TokenKind.LT: (_COMPARE, BinaryOp.LT),
    TokenKind.GT: (_COMPARE, BinaryOp.GT),
    TokenKind.LE: (_COMPARE, BinaryOp.LE),
    TokenKind.GE: (_COMPARE, BinaryOp.GE),
    TokenKind.PLUS: (_SUM, BinaryOp.ADD),
    TokenKind.MINUS: (_SUM, BinaryOp.SUB),
    TokenKind.STAR: (_PRODUCT, BinaryOp.MUL),
    TokenKind.SLASH: (_PRODUCT, BinaryOp.DIV),
    TokenKind.PERCENT: (_PRODUCT, BinaryOp.MOD),
}

_CONSTANTS = {TokenKind.TRUE: True, TokenKind.FALSE: False, TokenKind.NULL: None}


class ExpressionParser:
    """Token cursor plus expression rules.

    ``LogicParser`` subclasses this to add statements and declarations.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 0) -> Token:
        """Token ``offset`` places ahead; EOF once past the end."""
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        tok = self.current
        self.pos = min(self.pos + 1, len(self.tokens) - 1)
        return tok

    def expect(self, kind: TokenKind) -> Token:
        if self.current.kind != kind:
            raise ExpressionParseError(
                f"Expected {kind}, got {self.current.kind} ({self.current.value!r})",
                self.current.pos,
            )
        return self.advance()

    def match(self, *kinds: TokenKind) -> Token | None:
        return self.advance() if self.current.kind in kinds else None

    # =========================================================================
    # Expressions
    # =========================================================================

    def parse_expr(self) -> Expr:
        if self.current.kind == TokenKind.IF:
            return self._parse_conditional()
        return self.parse_or_expr()

    def parse_or_expr(self) -> Expr:
        """Any expression except a top-level ``if``."""
        return self._parse_binary(0)

    def _parse_conditional(self) -> IfExpr:
        self.expect(TokenKind.IF)
        branches: list[tuple[Expr, Expr]] = [self._parse_branch()]
        while self.match(TokenKind.ELIF):
            branches.append(self._parse_branch())
        self.expect(TokenKind.ELSE)
        self.expect(TokenKind.COLON)
        (condition, then_expr), *rest = branches
        return IfExpr(
            condition=condition,
            then_expr=then_expr,
            elif_branches=rest,
            else_expr=self.parse_or_expr(),
        )

    def _parse_branch(self) -> tuple[Expr, Expr]:
        condition = self.parse_or_expr()
        self.expect(TokenKind.COLON)
        return condition, self.parse_or_expr()

    def _parse_binary(self, min_power: int) -> Expr:
        left = self._parse_prefix()
        compared = False
        while True:
            tok = self.current
            if tok.kind in (TokenKind.IS, TokenKind.IN) or (
                tok.kind == TokenKind.NOT and self.peek(1).kind == TokenKind.IN
            ):
                power = _COMPARE
            elif tok.kind in _BINARY:
                power = _BINARY[tok.kind][0]
            else:
                break
            if power <= min_power or (power == _COMPARE and compared):
                break
            left = self._parse_infix(left, power)
            compared = power == _COMPARE
        return left

    def _parse_infix(self, left: Expr, power: int) -> Expr:
        tok = self.advance()
        if tok.kind == TokenKind.IS:
            negated = self.match(TokenKind.NOT) is not None
            self.expect(TokenKind.NULL)
            return BinaryExpr(
                op=BinaryOp.NE if negated else BinaryOp.EQ,
                left=left,
                right=Literal(value=None),
            )
        if tok.kind == TokenKind.NOT:
            self.expect(TokenKind.IN)
            return InExpr(value=left, items=self._parse_list_items(), negated=True)
        if tok.kind == TokenKind.IN:
            return InExpr(value=left, items=self._parse_list_items(), negated=False)
        op = _BINARY[tok.kind][1]
        return BinaryExpr(op=op, left=left, right=self._parse_binary(power))

    def _parse_prefix(self) -> Expr:
        if self.match(TokenKind.NOT):
            return UnaryExpr(op=UnaryOp.NOT, operand=self._parse_binary(_AND))
        if self.match(TokenKind.MINUS):
            return UnaryExpr(op=UnaryOp.NEG, operand=self._parse_binary(_PRODUCT))
        return self._parse_operand()

    # =========================================================================
    # Operands
    # =========================================================================

    def _parse_operand(self) -> Expr:
        tok = self.current
        if tok.kind == TokenKind.IDENT:
            following = self.peek(1).kind
            if following == TokenKind.LPAREN:
                expr: Expr = self._parse_call()
            elif following == TokenKind.LBRACE and tok.value[:1].isupper():
                expr = self._parse_record()
            else:
                # Dotted paths stay a single reference
                return FieldRef(path=self._parse_path())
        elif tok.kind == TokenKind.LPAREN:
            self.advance()
            expr = self.parse_expr()
            self.expect(TokenKind.RPAREN)
        else:
            return self._parse_atom()

        while self.match(TokenKind.DOT):
            name = self.expect(TokenKind.IDENT).value
            expr = FuncCall(name="__get__", args=[expr, Literal(value=name)])
        return expr

    def _parse_atom(self) -> Expr:
        tok = self.current
        if tok.kind == TokenKind.LBRACKET:
            return ListExpr(items=self._parse_list_items())
        if tok.kind in _CONSTANTS:
            self.advance()
            return Literal(value=_CONSTANTS[tok.kind])
        if tok.kind == TokenKind.INT:
            self.advance()
            return Literal(value=int(tok.value))
        if tok.kind == TokenKind.FLOAT:
            self.advance()
            return Literal(value=float(tok.value))
        if tok.kind == TokenKind.STRING:
            self.advance()
            return Literal(value=tok.value)
        if tok.kind == TokenKind.DURATION:
            self.advance()
            return _duration(tok)
        raise ExpressionParseError(f"Unexpected token: {tok.kind} ({tok.value!r})", tok.pos)

    def _parse_call(self) -> FuncCall:
        name = self.expect(TokenKind.IDENT).value
        self.expect(TokenKind.LPAREN)
        args = self._parse_sequence(TokenKind.RPAREN)
        return FuncCall(name=name, args=args)

    def _parse_record(self) -> RecordExpr:
        type_name = self.expect(TokenKind.IDENT).value
        self.expect(TokenKind.LBRACE)
        fields: dict[str, Expr] = {}
        while self.current.kind != TokenKind.RBRACE:
            field = self.expect(TokenKind.IDENT)
            if field.value in fields:
                raise ExpressionParseError(
                    f"Duplicate field {field.value!r} in {type_name} constructor", field.pos
                )
            self.expect(TokenKind.COLON)
            fields[field.value] = self.parse_expr()
            if not self.match(TokenKind.COMMA):
                break
        self.expect(TokenKind.RBRACE)
        return RecordExpr(type_name=type_name, fields=list(fields.items()))

    def _parse_path(self) -> list[str]:
        path = [self.expect(TokenKind.IDENT).value]
        while self.match(TokenKind.DOT):
            path.append(self.expect(TokenKind.IDENT).value)
        return path

    def _parse_list_items(self) -> list[Expr]:
        self.expect(TokenKind.LBRACKET)
        return self._parse_sequence(TokenKind.RBRACKET)

    def _parse_sequence(self, closing: TokenKind) -> list[Expr]:
        """Comma separated expressions up to and including ``closing``."""
        items: list[Expr] = []
        if self.current.kind != closing:
            items.append(self.parse_expr())
            while self.match(TokenKind.COMMA):
                items.append(self.parse_expr())
        self.expect(closing)
        return items


def _duration(tok: Token) -> DurationLiteral:
    amount = tok.value.rstrip("abcdefghijklmnopqrstuvwxyz")
    return DurationLiteral(value=int(amount), unit=tok.value[len(amount) :])


def parse_expr(source: str) -> Expr:
    """Parse an expression string into an AST.

    Raises:
        ExpressionParseError: If the expression is invalid or has trailing tokens.
    """
    try:
        tokens = tokenize(source)
    except ExpressionTokenError as e:
        raise ExpressionParseError(str(e), e.pos) from e

    parser = ExpressionParser(tokens)
    expr = parser.parse_expr()
    if parser.current.kind != TokenKind.EOF:
        raise ExpressionParseError(
            f"Unexpected token after expression: {parser.current.value!r}",
            parser.current.pos,
        )
    return expr
