"""
Parser for template grammars (``text/grammar.md``).

Splits the grammar into blocks (paragraphs separated by blank lines,
``#`` headings) and each block into literal text and ``{{...}}`` tags.
The result is purely syntactic; ``pactum.grammar.matcher`` binds it to
the template's model.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from pactum.core.errors import GrammarSyntaxError, locate, make_parse_error
from pactum.core.expression_lang import ExpressionParseError, parse_expr
from pactum.core.ir import (
    BlockKind,
    ConditionalNode,
    FormulaNode,
    GrammarBlock,
    GrammarNode,
    GrammarSpec,
    TextNode,
    VariableNode,
    WithNode,
)

_BLANK_LINES = re.compile(r"\n[ \t]*(?:\n[ \t]*)+")
_HEADING = re.compile(r"(#{1,6})[ \t]+")
_VARIABLE = re.compile(r'\s*([A-Za-z_][A-Za-z0-9_]*)\s*(?:as\s+"([^"]*)")?\s*')
_OPEN_BLOCK = re.compile(r"\s*#(if|with)\s+([A-Za-z_][A-Za-z0-9_]*)\s*")
_CLOSE_BLOCK = re.compile(r"\s*/(if|with)\s*")
_ELSE = re.compile(r"\s*else\s*")


@dataclass
class _Frame:
    kind: str  # "root" | "if" | "with"
    name: str = ""
    offset: int = 0
    nodes: list[GrammarNode] = field(default_factory=list)
    else_nodes: list[GrammarNode] = field(default_factory=list)
    in_else: bool = False

    def append(self, node: GrammarNode) -> None:
        (self.else_nodes if self.in_else else self.nodes).append(node)


class GrammarParser:
    """Parses grammar text into a ``GrammarSpec``."""

    def __init__(self, source: str, root_type: str, file_name: str = "text/grammar.md"):
        self.source = source
        self.root_type = root_type
        self.file_name = file_name

    def error(self, message: str, offset: int) -> GrammarSyntaxError:
        line, column, snippet = locate(self.source, offset)
        error = make_parse_error(
            message,
            Path(self.file_name),
            line,
            column,
            snippet=snippet,
            error_class=GrammarSyntaxError,
        )
        assert isinstance(error, GrammarSyntaxError)
        return error

    def parse(self) -> GrammarSpec:
        blocks: list[GrammarBlock] = []
        for start, end in self._block_spans():
            blocks.append(self._parse_block(start, end))
        if not blocks:
            raise self.error("Grammar is empty", 0)
        return GrammarSpec(blocks=blocks, root_type=self.root_type, source=self.source)

    def _block_spans(self) -> list[tuple[int, int]]:
        spans: list[tuple[int, int]] = []
        start = 0
        for m in _BLANK_LINES.finditer(self.source):
            spans.append((start, m.start()))
            start = m.end()
        spans.append((start, len(self.source)))

        trimmed: list[tuple[int, int]] = []
        for s, e in spans:
            while s < e and self.source[s].isspace():
                s += 1
            while e > s and self.source[e - 1].isspace():
                e -= 1
            if s < e:
                trimmed.append((s, e))
        return trimmed

    def _parse_block(self, start: int, end: int) -> GrammarBlock:
        kind = BlockKind.PARAGRAPH
        level = 0
        heading = _HEADING.match(self.source, start, end)
        if heading:
            kind = BlockKind.HEADING
            level = len(heading.group(1))
            start = heading.end()
        return GrammarBlock(kind=kind, level=level, nodes=self._parse_inline(start, end))

    def _parse_inline(self, start: int, end: int) -> list[GrammarNode]:
        stack = [_Frame(kind="root")]
        pos = start
        while pos < end:
            tag_start = self.source.find("{{", pos, end)
            if tag_start == -1:
                stack[-1].append(TextNode(text=self.source[pos:end]))
                break
            if tag_start > pos:
                stack[-1].append(TextNode(text=self.source[pos:tag_start]))

            if self.source.startswith("{{%", tag_start):
                close = self.source.find("%}}", tag_start + 3, end)
                if close == -1:
                    raise self.error("Unterminated formula, expected '%}}'", tag_start)
                stack[-1].append(self._formula(tag_start + 3, close, tag_start))
                pos = close + 3
                continue

            close = self.source.find("}}", tag_start + 2, end)
            if close == -1:
                raise self.error("Unterminated tag, expected '}}'", tag_start)
            self._tag(stack, tag_start + 2, close, tag_start)
            pos = close + 2

        if len(stack) > 1:
            frame = stack[-1]
            raise self.error(f"Unclosed {{{{#{frame.kind} {frame.name}}}}}", frame.offset)
        return _merge_text(stack[0].nodes)

    def _formula(self, start: int, end: int, offset: int) -> FormulaNode:
        code = self.source[start:end].strip()
        try:
            expression = parse_expr(code)
        except ExpressionParseError as e:
            raise self.error(f"Invalid formula: {e}", start + e.pos) from e
        return FormulaNode(source=code, expression=expression, offset=offset)

    def _tag(self, stack: list[_Frame], start: int, end: int, offset: int) -> None:
        body = self.source[start:end]

        m = _OPEN_BLOCK.fullmatch(body)
        if m:
            stack.append(_Frame(kind=m.group(1), name=m.group(2), offset=offset))
            return

        m = _CLOSE_BLOCK.fullmatch(body)
        if m:
            frame = stack[-1]
            if frame.kind != m.group(1):
                expected = f"{{{{/{frame.kind}}}}}" if frame.kind != "root" else "no closing tag"
                raise self.error(f"Unexpected {{{{/{m.group(1)}}}}}, expected {expected}", offset)
            stack.pop()
            if frame.kind == "if":
                stack[-1].append(
                    ConditionalNode(
                        name=frame.name,
                        when_true=_merge_text(frame.nodes),
                        when_false=_merge_text(frame.else_nodes),
                        offset=frame.offset,
                    )
                )
            else:
                stack[-1].append(
                    WithNode(name=frame.name, children=_merge_text(frame.nodes), offset=frame.offset)
                )
            return

        if _ELSE.fullmatch(body):
            frame = stack[-1]
            if frame.kind != "if" or frame.in_else:
                raise self.error("{{else}} outside of {{#if}}", offset)
            frame.in_else = True
            return

        m = _VARIABLE.fullmatch(body)
        if m:
            stack[-1].append(VariableNode(name=m.group(1), format=m.group(2), offset=offset))
            return

        raise self.error(f"Invalid tag {{{{{body}}}}}", offset)


def _merge_text(nodes: list[GrammarNode]) -> list[GrammarNode]:
    merged: list[GrammarNode] = []
    for node in nodes:
        if isinstance(node, TextNode) and merged and isinstance(merged[-1], TextNode):
            merged[-1] = TextNode(text=merged[-1].text + node.text)
        else:
            merged.append(node)
    return merged


def parse_grammar(source: str, root_type: str, file_name: str = "text/grammar.md") -> GrammarSpec:
    """
    Parse grammar text.

    Raises:
        GrammarSyntaxError: On unterminated or mismatched tags.
    """
    return GrammarParser(source, root_type, file_name).parse()
