"""
Parser for the pactum schema language (``.model`` files).

Grammar:
    file        → "namespace" qname import* declaration*
    import      → "import" qname ("." "*")?
    declaration → decorator* "abstract"? kind IDENT
                  ("extends" qname | "identified" "by" IDENT)* "{" member* "}"
    kind        → "concept" | "asset" | "transaction" | "event" | "participant" | "enum"
    member      → decorator* ("o" | "-->") qname ("[" "]")? name option*
    option      → "optional" | "default" "=" literal | "regex" "=" REGEX
                | "range" "=" "[" NUMBER? "," NUMBER? "]"
    decorator   → "@" IDENT ("(" (literal ("," literal)*)? ")")?

Enum members are ``o VALUE`` without a type.
"""

from pathlib import Path

from . import ir
from .errors import ModelParseError, make_parse_error
from .lexer import Token, TokenType, tokenize

_DECLARATION_KINDS = {
    TokenType.CONCEPT: ir.DeclarationKind.CONCEPT,
    TokenType.ASSET: ir.DeclarationKind.ASSET,
    TokenType.TRANSACTION: ir.DeclarationKind.TRANSACTION,
    TokenType.EVENT: ir.DeclarationKind.EVENT,
    TokenType.PARTICIPANT: ir.DeclarationKind.PARTICIPANT,
    TokenType.ENUM: ir.DeclarationKind.ENUM,
}

# Keywords that are still valid as property names and enum values
_SOFT_KEYWORDS = {
    TokenType.NAMESPACE,
    TokenType.IMPORT,
    TokenType.CONCEPT,
    TokenType.ASSET,
    TokenType.TRANSACTION,
    TokenType.EVENT,
    TokenType.PARTICIPANT,
    TokenType.ENUM,
    TokenType.ABSTRACT,
    TokenType.EXTENDS,
    TokenType.IDENTIFIED,
    TokenType.BY,
    TokenType.OPTIONAL,
    TokenType.DEFAULT,
    TokenType.REGEX_KW,
    TokenType.RANGE,
}


class ModelParser:
    """
    Recursive descent parser for one model file.
    """

    def __init__(self, tokens: list[Token], file: Path, source: str = ""):
        """
        Initialize parser.

        Args:
            tokens: List of tokens from lexer
            file: Source file path (for error reporting)
            source: Original text, used for error snippets
        """
        self.tokens = tokens
        self.file = file
        self.source = source
        self.pos = 0

    # -- Token navigation --

    def current_token(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # Return EOF
        return self.tokens[self.pos]

    def peek_token(self, offset: int = 1) -> Token:
        """Peek ahead at token."""
        pos = self.pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]  # Return EOF
        return self.tokens[pos]

    def advance(self) -> Token:
        """Consume and return current token."""
        token = self.current_token()
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    def match(self, *token_types: TokenType) -> bool:
        return self.current_token().type in token_types

    def error(self, message: str, token: Token | None = None) -> ModelParseError:
        token = token or self.current_token()
        lines = self.source.splitlines()
        snippet = lines[token.line - 1] if 0 < token.line <= len(lines) else None
        error = make_parse_error(
            message,
            self.file,
            token.line,
            token.column,
            snippet=snippet,
            error_class=ModelParseError,
        )
        assert isinstance(error, ModelParseError)
        return error

    def expect(self, token_type: TokenType) -> Token:
        """
        Expect a specific token type and consume it.

        Raises:
            ModelParseError: If token doesn't match
        """
        token = self.current_token()
        if token.type != token_type:
            got = token.value or token.type.value
            raise self.error(f"Expected {token_type.value}, got {got!r}")
        return self.advance()

    def expect_name(self) -> Token:
        """Expect an identifier, accepting soft keywords."""
        token = self.current_token()
        if token.type == TokenType.IDENTIFIER or token.type in _SOFT_KEYWORDS:
            return self.advance()
        got = token.value or token.type.value
        raise self.error(f"Expected a name, got {got!r}")

    # -- Rules --

    def parse(self) -> ir.ModelFile:
        self.expect(TokenType.NAMESPACE)
        namespace = self.parse_qualified_name()

        imports: list[ir.ImportSpec] = []
        while self.match(TokenType.IMPORT):
            self.advance()
            imports.append(self.parse_import())

        declarations: list[ir.DeclarationSpec] = []
        seen: set[str] = set()
        while not self.match(TokenType.EOF):
            start = self.current_token()
            decl = self.parse_declaration(namespace)
            if decl.name in seen:
                raise self.error(f"Duplicate declaration '{decl.name}'", start)
            seen.add(decl.name)
            declarations.append(decl)

        return ir.ModelFile(
            namespace=namespace,
            imports=imports,
            declarations=declarations,
            source_name=str(self.file),
            source=self.source,
        )

    def parse_qualified_name(self) -> str:
        parts = [self.expect_name().value]
        while self.match(TokenType.DOT) and self.peek_token().type != TokenType.STAR:
            self.advance()
            parts.append(self.expect_name().value)
        return ".".join(parts)

    def parse_import(self) -> ir.ImportSpec:
        name = self.parse_qualified_name()
        if self.match(TokenType.DOT):
            self.advance()
            self.expect(TokenType.STAR)
            return ir.ImportSpec(namespace=name)
        namespace, _, short = name.rpartition(".")
        if not namespace:
            raise self.error(f"Import '{name}' must be fully qualified")
        return ir.ImportSpec(namespace=namespace, name=short)

    def parse_decorators(self) -> list[ir.Decorator]:
        decorators: list[ir.Decorator] = []
        while self.match(TokenType.AT):
            self.advance()
            name = self.expect_name().value
            arguments: list[str | int | float | bool] = []
            if self.match(TokenType.LPAREN):
                self.advance()
                while not self.match(TokenType.RPAREN):
                    arguments.append(self.parse_literal())
                    if not self.match(TokenType.COMMA):
                        break
                    self.advance()
                self.expect(TokenType.RPAREN)
            decorators.append(ir.Decorator(name=name, arguments=arguments))
        return decorators

    def parse_literal(self) -> str | int | float | bool:
        token = self.current_token()
        if token.type == TokenType.STRING:
            self.advance()
            return token.value
        if token.type == TokenType.NUMBER:
            self.advance()
            return _to_number(token.value)
        if token.type in (TokenType.TRUE, TokenType.FALSE):
            self.advance()
            return token.type == TokenType.TRUE
        if token.type == TokenType.IDENTIFIER:
            self.advance()
            return token.value
        raise self.error(f"Expected a literal value, got {token.value!r}")

    def parse_declaration(self, namespace: str) -> ir.DeclarationSpec:
        decorators = self.parse_decorators()

        is_abstract = False
        if self.match(TokenType.ABSTRACT):
            self.advance()
            is_abstract = True

        token = self.current_token()
        kind = _DECLARATION_KINDS.get(token.type)
        if kind is None:
            raise self.error(f"Expected a declaration, got {token.value!r}")
        self.advance()
        name = self.expect(TokenType.IDENTIFIER).value

        super_type = None
        identified_by = None
        while self.match(TokenType.EXTENDS, TokenType.IDENTIFIED):
            if self.match(TokenType.EXTENDS):
                self.advance()
                super_type = self.parse_qualified_name()
            else:
                self.advance()
                self.expect(TokenType.BY)
                identified_by = self.expect_name().value

        if kind == ir.DeclarationKind.ENUM and (super_type or identified_by):
            raise self.error(f"Enum '{name}' cannot extend or be identified", token)

        self.expect(TokenType.LBRACE)
        properties: list[ir.PropertySpec] = []
        enum_values: list[str] = []
        while not self.match(TokenType.RBRACE):
            if self.match(TokenType.EOF):
                raise self.error(f"Unterminated declaration '{name}'")
            if kind == ir.DeclarationKind.ENUM:
                self.parse_decorators()
                self.expect(TokenType.PROPERTY)
                value = self.expect_name()
                if value.value in enum_values:
                    raise self.error(f"Duplicate enum value '{value.value}'", value)
                enum_values.append(value.value)
            else:
                prop = self.parse_property()
                if any(p.name == prop.name for p in properties):
                    raise self.error(f"Duplicate property '{prop.name}' in '{name}'")
                properties.append(prop)
        self.expect(TokenType.RBRACE)

        return ir.DeclarationSpec(
            name=name,
            namespace=namespace,
            kind=kind,
            is_abstract=is_abstract,
            super_type=super_type,
            identified_by=identified_by,
            properties=properties,
            enum_values=enum_values,
            decorators=decorators,
        )

    def parse_property(self) -> ir.PropertySpec:
        decorators = self.parse_decorators()

        if self.match(TokenType.ARROW):
            is_relationship = True
        elif self.match(TokenType.PROPERTY):
            is_relationship = False
        else:
            raise self.error(f"Expected 'o' or '-->', got {self.current_token().value!r}")
        self.advance()

        type_name = self.parse_qualified_name()
        is_array = False
        if self.match(TokenType.LBRACKET):
            self.advance()
            self.expect(TokenType.RBRACKET)
            is_array = True
        name = self.expect_name().value

        optional = False
        default: str | int | float | bool | None = None
        regex = None
        number_range = None
        while self.match(
            TokenType.OPTIONAL, TokenType.DEFAULT, TokenType.REGEX_KW, TokenType.RANGE
        ):
            option = self.advance()
            if option.type == TokenType.OPTIONAL:
                optional = True
                continue
            self.expect(TokenType.EQUALS)
            if option.type == TokenType.DEFAULT:
                default = self.parse_literal()
            elif option.type == TokenType.REGEX_KW:
                regex = self.expect(TokenType.REGEX).value
            else:
                number_range = self.parse_range()

        return ir.PropertySpec(
            name=name,
            type_name=type_name,
            is_array=is_array,
            optional=optional,
            is_relationship=is_relationship,
            default=default,
            regex=regex,
            range=number_range,
            decorators=decorators,
        )

    def parse_range(self) -> ir.NumberRange:
        self.expect(TokenType.LBRACKET)
        lower = None
        upper = None
        if self.match(TokenType.NUMBER):
            lower = float(self.advance().value)
        self.expect(TokenType.COMMA)
        if self.match(TokenType.NUMBER):
            upper = float(self.advance().value)
        self.expect(TokenType.RBRACKET)
        return ir.NumberRange(lower=lower, upper=upper)


def _to_number(text: str) -> int | float:
    if any(c in text for c in ".eE"):
        return float(text)
    return int(text)


def parse_model(source: str, file: Path | str = "<model>") -> ir.ModelFile:
    """
    Parse a model file.

    Args:
        source: Model text
        file: Source path used in error messages

    Returns:
        The parsed ``ModelFile``; type names are not yet resolved.

    Raises:
        ModelParseError: On any syntax error.
    """
    path = Path(file)
    tokens = tokenize(source, path)
    return ModelParser(tokens, path, source).parse()
