"""
Tokenizer for the pactum expression and clause logic language.

Converts source text into a sequence of typed tokens. Offsets are kept on
every token so parse errors can be reported by line and column.
"""

from __future__ import annotations

import re
from enum import StrEnum, auto
from typing import NamedTuple

from pactum.core.ir.expressions import DURATION_UNITS


class TokenKind(StrEnum):
    """Token types for the expression language."""

    # Literals
    INT = auto()
    FLOAT = auto()
    STRING = auto()

    # Identifiers and keywords
    IDENT = auto()
    TRUE = auto()
    FALSE = auto()
    NULL = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    IN = auto()
    IS = auto()
    IF = auto()
    ELIF = auto()
    ELSE = auto()

    # Statement keywords
    LET = auto()
    ENFORCE = auto()
    RETURN = auto()
    THROW = auto()
    EMIT = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    EQ = auto()
    NE = auto()
    LT = auto()
    GT = auto()
    LE = auto()
    GE = auto()
    ASSIGN = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    DOT = auto()
    COLON = auto()
    SEMI = auto()
    AT = auto()

    # Duration suffix (attached to preceding INT)
    DURATION = auto()

    # End of input
    EOF = auto()


class Token(NamedTuple):
    kind: TokenKind
    value: str
    pos: int  # offset into the source


_KEYWORDS: dict[str, TokenKind] = {
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
    "null": TokenKind.NULL,
    "and": TokenKind.AND,
    "or": TokenKind.OR,
    "not": TokenKind.NOT,
    "in": TokenKind.IN,
    "is": TokenKind.IS,
    "if": TokenKind.IF,
    "elif": TokenKind.ELIF,
    "else": TokenKind.ELSE,
    "let": TokenKind.LET,
    "enforce": TokenKind.ENFORCE,
    "return": TokenKind.RETURN,
    "throw": TokenKind.THROW,
    "emit": TokenKind.EMIT,
}

_SYMBOLS: dict[str, TokenKind] = {
    "==": TokenKind.EQ,
    "!=": TokenKind.NE,
    "<=": TokenKind.LE,
    ">=": TokenKind.GE,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "%": TokenKind.PERCENT,
    "<": TokenKind.LT,
    ">": TokenKind.GT,
    "=": TokenKind.ASSIGN,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ",": TokenKind.COMMA,
    ".": TokenKind.DOT,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMI,
    "@": TokenKind.AT,
}

_SCANNER = re.compile(
    r"""
    (?P<space>\s+)
    | (?P<comment>//[^\n]*|/\*.*?\*/)
    | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    | (?P<number>\d+(?:\.\d+)?)(?P<suffix>[A-Za-z_][A-Za-z0-9_]*)?
    | (?P<word>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<symbol>[=!<>]=|[-+*/%<>=()\[\]{},.:;@])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "t": "\t"}


class ExpressionTokenError(Exception):
    """Error during expression tokenization."""

    def __init__(self, message: str, pos: int) -> None:
        super().__init__(message)
        self.pos = pos


def _unquote(literal: str) -> str:
    return _ESCAPE.sub(lambda m: _ESCAPES.get(m[1], m[1]), literal[1:-1])


def tokenize(source: str) -> list[Token]:
    """Tokenize an expression or logic source string into a list of tokens.

    A number directly followed by a duration unit (``9d``, ``30min``) is a
    single DURATION token; any other suffix starts a new token.
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        m = _SCANNER.match(source, pos)
        if m is None:
            if source[pos] in "\"'":
                raise ExpressionTokenError("Unterminated string literal", pos)
            raise ExpressionTokenError(f"Unexpected character: {source[pos]!r}", pos)
        kind = m.lastgroup
        if kind == "symbol" and source.startswith("/*", pos):
            raise ExpressionTokenError("Unterminated block comment", pos)

        end = m.end()
        if kind == "string":
            tokens.append(Token(TokenKind.STRING, _unquote(m[0]), pos))
        elif m["number"] is not None:
            number, suffix = m["number"], m["suffix"]
            if suffix in DURATION_UNITS and "." not in number:
                tokens.append(Token(TokenKind.DURATION, number + suffix, pos))
            else:
                end = m.end("number")
                kind = TokenKind.FLOAT if "." in number else TokenKind.INT
                tokens.append(Token(kind, number, pos))
        elif kind == "word":
            tokens.append(Token(_KEYWORDS.get(m[0], TokenKind.IDENT), m[0], pos))
        elif kind == "symbol":
            tokens.append(Token(_SYMBOLS[m[0]], m[0], pos))
        pos = end

    tokens.append(Token(TokenKind.EOF, "", len(source)))
    return tokens
