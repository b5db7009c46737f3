"""
Lexer for the pactum schema language (``.model`` files).

Converts raw model text into a stream of tokens with source location
tracking. Whitespace and newlines are insignificant; ``//`` line comments
and ``/* */`` block comments are skipped.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import ModelParseError, make_parse_error


class TokenType(Enum):
    """Token types in the schema language."""

    # Literals
    IDENTIFIER = "IDENTIFIER"
    STRING = "STRING"
    NUMBER = "NUMBER"
    REGEX = "REGEX"

    # Keywords
    NAMESPACE = "namespace"
    IMPORT = "import"
    CONCEPT = "concept"
    ASSET = "asset"
    TRANSACTION = "transaction"
    EVENT = "event"
    PARTICIPANT = "participant"
    ENUM = "enum"
    ABSTRACT = "abstract"
    EXTENDS = "extends"
    IDENTIFIED = "identified"
    BY = "by"
    OPTIONAL = "optional"
    DEFAULT = "default"
    REGEX_KW = "regex"
    RANGE = "range"
    PROPERTY = "o"
    TRUE = "true"
    FALSE = "false"

    # Punctuation
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","
    DOT = "."
    STAR = "*"
    EQUALS = "="
    AT = "@"
    ARROW = "-->"

    # End of input
    EOF = "EOF"


KEYWORDS = {
    "namespace",
    "import",
    "concept",
    "asset",
    "transaction",
    "event",
    "participant",
    "enum",
    "abstract",
    "extends",
    "identified",
    "by",
    "optional",
    "default",
    "regex",
    "range",
    "o",
    "true",
    "false",
}

_PUNCTUATION = {
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
    "*": TokenType.STAR,
    "=": TokenType.EQUALS,
    "@": TokenType.AT,
}


@dataclass
class Token:
    """
    A single token of a model file.

    Attributes:
        type: Type of token
        value: String value of the token
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    type: TokenType
    value: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.value}, {self.value!r}, {self.line}:{self.column})"


_SKIP = re.compile(r"(?:\s+|//[^\n]*|/\*.*?\*/)+", re.DOTALL)
_STRING = re.compile(r'"((?:[^"\\\n]|\\.)*)"')
_REGEX = re.compile(r"/((?:[^/\\\n]|\\.)*)/")
_NUMBER = re.compile(r"-?[\d.]+(?:[eE][+-]?\d+)?")
_IDENTIFIER = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_ESCAPE = re.compile(r"\\(.)")
_ESCAPES = {"n": "\n", "t": "\t"}


class Lexer:
    """
    Lexer for the schema language.

    Scans with anchored regular expressions and keeps track of the start of
    the current line so every token carries a 1-indexed line and column.
    """

    def __init__(self, text: str, file: Path):
        self.text = text
        self.file = file
        self.pos = 0
        self.line = 1
        self.line_start = 0
        self.tokens: list[Token] = []

    @property
    def column(self) -> int:
        return self.pos - self.line_start + 1

    def error(self, message: str, line: int | None = None, column: int | None = None):
        line = self.line if line is None else line
        column = self.column if column is None else column
        lines = self.text.splitlines()
        snippet = lines[line - 1] if 0 < line <= len(lines) else None
        return make_parse_error(
            message, self.file, line, column, snippet=snippet, error_class=ModelParseError
        )

    def _move_to(self, end: int) -> None:
        newlines = self.text.count("\n", self.pos, end)
        if newlines:
            self.line += newlines
            self.line_start = self.text.rfind("\n", self.pos, end) + 1
        self.pos = end

    def _skip_blank(self) -> None:
        m = _SKIP.match(self.text, self.pos)
        if m:
            self._move_to(m.end())
        if self.text.startswith("/*", self.pos):
            raise self.error("Unterminated block comment")

    def _emit(self, token_type: TokenType, value: str, end: int) -> None:
        self.tokens.append(Token(token_type, value, self.line, self.column))
        self._move_to(end)

    def tokenize(self) -> list[Token]:
        """
        Tokenize the entire source text.

        Returns:
            List of tokens ending with EOF

        Raises:
            ModelParseError: If an unexpected character is found
        """
        text = self.text
        while True:
            self._skip_blank()
            if self.pos >= len(text):
                break
            ch = text[self.pos]

            if ch == '"':
                m = _STRING.match(text, self.pos)
                if m is None:
                    raise self.error("Unterminated string literal")
                value = _ESCAPE.sub(lambda e: _ESCAPES.get(e[1], e[1]), m[1])
                self._emit(TokenType.STRING, value, m.end())
            elif ch == "/" and self._expects_regex():
                m = _REGEX.match(text, self.pos)
                if m is None:
                    raise self.error("Unterminated regex literal")
                # ``\/`` only escapes the delimiter
                self._emit(TokenType.REGEX, m[1].replace("\\/", "/"), m.end())
            elif text.startswith("-->", self.pos):
                self._emit(TokenType.ARROW, "-->", self.pos + 3)
            elif ch.isdigit() or (ch == "-" and text[self.pos + 1 : self.pos + 2].isdigit()):
                m = _NUMBER.match(text, self.pos)
                assert m is not None
                self._emit(TokenType.NUMBER, m[0], m.end())
            elif (m := _IDENTIFIER.match(text, self.pos)) is not None:
                word = m[0]
                token_type = TokenType(word) if word in KEYWORDS else TokenType.IDENTIFIER
                self._emit(token_type, word, m.end())
            elif ch in _PUNCTUATION:
                self._emit(_PUNCTUATION[ch], ch, self.pos + 1)
            else:
                raise self.error(f"Unexpected character: {ch!r}")

        self.tokens.append(Token(TokenType.EOF, "", self.line, self.column))
        return self.tokens

    def _expects_regex(self) -> bool:
        # A slash is a regex literal only right after ``regex =``
        return (
            len(self.tokens) >= 2
            and self.tokens[-1].type == TokenType.EQUALS
            and self.tokens[-2].type == TokenType.REGEX_KW
        )


def tokenize(text: str, file: Path) -> list[Token]:
    """Tokenize model text from ``file``."""
    return Lexer(text, file).tokenize()
