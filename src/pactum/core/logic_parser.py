"""
Parser for ``.logic`` clause logic files.

Builds on the expression parser; adds the file header (namespace, imports),
the contract declaration, clause signatures and statements:

    file      → "namespace" qname ("import" qname ("." "*")?)* contract
    contract  → "contract" IDENT "over" qname ("state" qname)? "{" clause* "}"
    clause    → "clause" IDENT "(" (param ("," param)*)? ")" (":" qname)? block
    param     → IDENT ":" qname
    block     → "{" stmt* "}"
    stmt      → "let" IDENT "=" expr ";"
              | "enforce" expr ("else" ("return" | "throw") expr)? ";"
              | "set" "state" expr ";"
              | "emit" expr ";"
              | "return" expr? ";"
              | "throw" expr ";"
              | "if" expr block ("else" (block | if_stmt))?
"""

from __future__ import annotations

from pathlib import Path

from pactum.core.errors import LogicParseError, locate, make_parse_error
from pactum.core.expression_lang.parser import ExpressionParseError, ExpressionParser
from pactum.core.expression_lang.tokenizer import ExpressionTokenError, TokenKind, tokenize
from pactum.core.ir import (
    ClauseDecl,
    ContractDecl,
    EmitStmt,
    EnforceStmt,
    IfStmt,
    LetStmt,
    LogicModule,
    ParamSpec,
    ReturnStmt,
    SetStateStmt,
    Stmt,
    ThrowStmt,
)


class LogicParser(ExpressionParser):
    """Recursive descent parser for a whole ``.logic`` file."""

    def __init__(self, source: str, source_name: str = "<logic>") -> None:
        try:
            tokens = tokenize(source)
        except ExpressionTokenError as e:
            raise self._error_at(source, source_name, str(e), e.pos) from e
        super().__init__(tokens)
        self.source = source
        self.source_name = source_name

    # -- Error helpers --

    @staticmethod
    def _error_at(source: str, source_name: str, message: str, pos: int) -> LogicParseError:
        line, column, snippet = locate(source, pos)
        error = make_parse_error(
            message,
            Path(source_name),
            line,
            column,
            snippet=snippet,
            error_class=LogicParseError,
        )
        assert isinstance(error, LogicParseError)
        return error

    def error(self, message: str) -> LogicParseError:
        return self._error_at(self.source, self.source_name, message, self.current.pos)

    def line(self) -> int:
        return locate(self.source, self.current.pos)[0]

    def expect_word(self, word: str) -> None:
        """Expect a contextual keyword (an identifier with a fixed spelling)."""
        if self.current.kind != TokenKind.IDENT or self.current.value != word:
            raise self.error(f"Expected '{word}', got {self.current.value!r}")
        self.advance()

    def at_word(self, word: str) -> bool:
        return self.current.kind == TokenKind.IDENT and self.current.value == word

    # -- File structure --

    def parse_module(self) -> LogicModule:
        try:
            self.expect_word("namespace")
            namespace = self.parse_qualified_name()

            imports: list[str] = []
            while self.at_word("import"):
                self.advance()
                imports.append(self.parse_import_target())

            contract = self.parse_contract()
            if self.current.kind != TokenKind.EOF:
                raise self.error(f"Unexpected {self.current.value!r} after contract declaration")
        except ExpressionParseError as e:
            raise self._error_at(self.source, self.source_name, str(e), e.pos) from e

        return LogicModule(
            namespace=namespace,
            imports=imports,
            contract=contract,
            source_name=self.source_name,
        )

    def parse_qualified_name(self) -> str:
        parts = [self.expect(TokenKind.IDENT).value]
        while self.current.kind == TokenKind.DOT and self.peek(1).kind == TokenKind.IDENT:
            self.advance()
            parts.append(self.advance().value)
        return ".".join(parts)

    def parse_import_target(self) -> str:
        name = self.parse_qualified_name()
        if self.current.kind == TokenKind.DOT and self.peek(1).kind == TokenKind.STAR:
            self.advance()
            self.advance()
            return f"{name}.*"
        return name

    def parse_contract(self) -> ContractDecl:
        self.expect_word("contract")
        name = self.expect(TokenKind.IDENT).value
        self.expect_word("over")
        over_type = self.parse_qualified_name()
        state_type = None
        if self.at_word("state"):
            self.advance()
            state_type = self.parse_qualified_name()

        self.expect(TokenKind.LBRACE)
        clauses: list[ClauseDecl] = []
        seen: set[str] = set()
        while self.current.kind != TokenKind.RBRACE:
            if self.current.kind == TokenKind.EOF:
                raise self.error("Unterminated contract body")
            clause = self.parse_clause()
            if clause.name in seen:
                raise self.error(f"Duplicate clause '{clause.name}'")
            seen.add(clause.name)
            clauses.append(clause)
        self.expect(TokenKind.RBRACE)

        return ContractDecl(
            name=name,
            over_type=over_type,
            state_type=state_type,
            clauses=clauses,
        )

    def parse_clause(self) -> ClauseDecl:
        line = self.line()
        self.expect_word("clause")
        name = self.expect(TokenKind.IDENT).value

        self.expect(TokenKind.LPAREN)
        params: list[ParamSpec] = []
        while self.current.kind != TokenKind.RPAREN:
            param_name = self.expect(TokenKind.IDENT).value
            self.expect(TokenKind.COLON)
            params.append(ParamSpec(name=param_name, type_name=self.parse_qualified_name()))
            if not self.match(TokenKind.COMMA):
                break
        self.expect(TokenKind.RPAREN)

        return_type = None
        if self.match(TokenKind.COLON):
            return_type = self.parse_qualified_name()

        body = self.parse_block()
        return ClauseDecl(
            name=name,
            params=params,
            return_type=return_type,
            body=body,
            line=line,
        )

    # -- Statements --

    def parse_block(self) -> list[Stmt]:
        self.expect(TokenKind.LBRACE)
        body: list[Stmt] = []
        while self.current.kind != TokenKind.RBRACE:
            if self.current.kind == TokenKind.EOF:
                raise self.error("Unterminated block, expected '}'")
            body.append(self.parse_statement())
        self.expect(TokenKind.RBRACE)
        return body

    def parse_statement(self) -> Stmt:
        line = self.line()
        kind = self.current.kind

        if kind == TokenKind.LET:
            self.advance()
            name = self.expect(TokenKind.IDENT).value
            self.expect(TokenKind.ASSIGN)
            value = self.parse_expr()
            self.expect(TokenKind.SEMI)
            return LetStmt(name=name, value=value, line=line)

        if kind == TokenKind.ENFORCE:
            self.advance()
            condition = self.parse_or_expr()
            otherwise_return = None
            otherwise_throw = None
            if self.match(TokenKind.ELSE):
                if self.match(TokenKind.RETURN):
                    otherwise_return = self.parse_expr()
                elif self.match(TokenKind.THROW):
                    otherwise_throw = self.parse_expr()
                else:
                    raise self.error("Expected 'return' or 'throw' after 'enforce ... else'")
            self.expect(TokenKind.SEMI)
            return EnforceStmt(
                condition=condition,
                otherwise_return=otherwise_return,
                otherwise_throw=otherwise_throw,
                line=line,
            )

        if self.at_word("set") and self.peek(1).kind == TokenKind.IDENT and self.peek(1).value == "state":
            self.advance()
            self.advance()
            value = self.parse_expr()
            self.expect(TokenKind.SEMI)
            return SetStateStmt(value=value, line=line)

        if kind == TokenKind.EMIT:
            self.advance()
            value = self.parse_expr()
            self.expect(TokenKind.SEMI)
            return EmitStmt(value=value, line=line)

        if kind == TokenKind.RETURN:
            self.advance()
            if self.match(TokenKind.SEMI):
                return ReturnStmt(line=line)
            value = self.parse_expr()
            self.expect(TokenKind.SEMI)
            return ReturnStmt(value=value, line=line)

        if kind == TokenKind.THROW:
            self.advance()
            value = self.parse_expr()
            self.expect(TokenKind.SEMI)
            return ThrowStmt(value=value, line=line)

        if kind == TokenKind.IF:
            return self.parse_if_statement()

        raise self.error(f"Expected a statement, got {self.current.value!r}")

    def parse_if_statement(self) -> IfStmt:
        line = self.line()
        self.expect(TokenKind.IF)
        condition = self.parse_or_expr()
        then_body = self.parse_block()
        else_body: list[Stmt] = []
        if self.match(TokenKind.ELSE):
            if self.current.kind == TokenKind.IF:
                else_body = [self.parse_if_statement()]
            else:
                else_body = self.parse_block()
        return IfStmt(condition=condition, then_body=then_body, else_body=else_body, line=line)


def parse_logic(source: str, source_name: str = "<logic>") -> LogicModule:
    """
    Parse clause logic source into a ``LogicModule``.

    Type names are left as written; ``pactum.core.logic_loader`` resolves
    them against the template's models.

    Raises:
        LogicParseError: With file, line and column of the problem.
    """
    return LogicParser(source, source_name).parse_module()
