"""
Error types for pactum template loading, grammar processing, execution and archives.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class PactumError(Exception):
    """Base exception for all pactum errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class ParseError(PactumError):
    """
    Raised when source text cannot be parsed.

    Examples:
    - Invalid syntax in a model or logic file
    - Unterminated grammar tags
    - Text that does not match a template grammar
    """

    pass


class ModelParseError(ParseError):
    """Raised when a ``.model`` schema file is malformed."""

    pass


class LogicParseError(ParseError):
    """Raised when a ``.logic`` clause logic file is malformed."""

    pass


class GrammarSyntaxError(ParseError):
    """Raised when a template grammar itself is malformed."""

    pass


class GrammarMismatchError(ParseError):
    """
    Raised when contract text does not match the template grammar.

    Carries the position where matching stopped and the grammar
    fragment that was expected there.
    """

    def __init__(
        self,
        message: str,
        context: Optional["ErrorContext"] = None,
        expected: str | None = None,
    ):
        self.expected = expected
        super().__init__(message, context)


class SchemaValidationError(PactumError):
    """
    Raised when an instance does not match the template's data model.

    Examples:
    - Unknown ``$class``
    - Missing required property
    - Value of the wrong primitive type
    - Enum value not declared
    """

    pass


class DraftError(PactumError):
    """Raised when a data instance cannot be rendered into text."""

    pass


class TemplateError(PactumError):
    """
    Raised when a template cannot be loaded.

    Examples:
    - Missing ``template.toml``
    - No grammar file
    - Logic referencing types that the model does not declare
    """

    pass


class MissingStateError(PactumError):
    """
    Raised internally when contract state is absent or unreadable.

    The execution engine recovers from it by substituting a default state;
    it never reaches callers.
    """

    pass


class UnknownTargetError(PactumError):
    """Raised when an archive or compile target is not supported."""

    def __init__(self, target: str, available: list[str]):
        self.target = target
        self.available = available
        super().__init__(f"Unknown target: {target} (available: {','.join(available)})")


class MethodResolutionError(PactumError):
    """Raised when no clause can handle a request or a named invocation."""

    pass


class ExecutionError(PactumError):
    """Raised when clause logic throws or a built-in function fails."""

    pass


class AuthorSignatureError(PactumError):
    """Raised when a template's author signature is missing or invalid."""

    pass


@dataclass
class ErrorContext:
    """
    Context information for an error, including source location.

    Attributes:
        file: Path to the source file where error occurred
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional source snippet around the error location
    """

    file: Path
    line: int
    column: int
    snippet: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "grammar.md:3:14"
        """
        location = f"{self.file}:{self.line}:{self.column}"
        if self.snippet:
            return f"{location}\n{self._format_snippet()}"
        return location

    def _format_snippet(self) -> str:
        """Format the offending line with an error marker underneath."""
        if not self.snippet:
            return ""
        prefix = f"{self.line:4d} | "
        marker = " " * (len(prefix) + self.column - 1) + "^^^"
        return f"{prefix}{self.snippet}\n{marker}"


def make_parse_error(
    message: str,
    file: Path,
    line: int,
    column: int,
    snippet: str | None = None,
    error_class: type[ParseError] = ParseError,
) -> ParseError:
    """
    Helper to create a ParseError (or subclass) with context.

    Args:
        message: Error description
        file: Source file path
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional source line
        error_class: Concrete ParseError subclass to raise

    Returns:
        ParseError with context attached
    """
    context = ErrorContext(file=file, line=line, column=column, snippet=snippet)
    return error_class(message, context)


def locate(text: str, offset: int) -> tuple[int, int, str]:
    """Convert a character offset into (line, column, line_text)."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    line_end = text.find("\n", offset)
    if line_end == -1:
        line_end = len(text)
    return line, offset - line_start + 1, text[line_start:line_end]
