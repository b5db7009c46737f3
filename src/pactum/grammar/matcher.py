"""
Binds a grammar to the template model and matches contract text against it.

``compile_grammar`` resolves every ``{{variable}}`` to a property of the
current scope type and picks its ``ValueFormat``. The resulting
``CompiledGrammar`` is a single regular expression plus a tree of bindings
mirroring the grammar; a successful match is walked along the bindings to
build the data instance.

When text does not match, the grammar is matched segment by segment (words
of literal text, variables, conditionals) to find the furthest point the
text agrees with, which is reported as the error location.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pactum.core.errors import (
    ErrorContext,
    GrammarMismatchError,
    GrammarSyntaxError,
    PactumError,
    locate,
    make_parse_error,
)
from pactum.core.ir import (
    BlockKind,
    ConditionalNode,
    FormulaNode,
    GrammarNode,
    GrammarSpec,
    PropertySpec,
    TextNode,
    VariableNode,
    WithNode,
)
from pactum.core.model_manager import CLASS_KEY, ModelManager

from .formats import (
    INLINE_CONCEPTS,
    EnumFormat,
    StringFormat,
    ValueFormat,
    primitive_format,
)

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")


@dataclass
class Binding:
    """A grammar node bound to the model."""

    kind: str  # text | variable | conditional | with | formula
    text: str = ""
    name: str = ""
    group: str | None = None
    format: ValueFormat | None = None
    type_name: str | None = None
    node: GrammarNode | None = None
    children: list[Binding] = field(default_factory=list)
    else_children: list[Binding] = field(default_factory=list)


@dataclass
class BlockBinding:
    kind: BlockKind
    level: int
    children: list[Binding]


@dataclass
class _Segment:
    """A piece of the top-level pattern, used to locate match failures."""

    regex: str
    expected: str


class CompiledGrammar:
    """A grammar bound to a model, ready to parse and draft."""

    def __init__(self, spec: GrammarSpec, manager: ModelManager, file_name: str = "text/grammar.md"):
        self.spec = spec
        self.manager = manager
        self.file_name = file_name
        self._counter = 0
        self.blocks = [
            BlockBinding(
                kind=block.kind,
                level=block.level,
                children=self._bind_nodes(block.nodes, spec.root_type),
            )
            for block in spec.blocks
        ]
        self.segments = self._build_segments()
        self.pattern = re.compile(r"\s*" + "".join(s.regex for s in self.segments) + r"\s*")

    # =========================================================================
    # Binding
    # =========================================================================

    def _error(self, message: str, offset: int) -> GrammarSyntaxError:
        line, column, snippet = locate(self.spec.source, offset)
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

    def _next_group(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def _property(self, scope: str, name: str, offset: int) -> PropertySpec:
        for prop in self.manager.all_properties(scope):
            if prop.name == name:
                return prop
        raise self._error(f"Unknown variable '{name}' for type '{scope}'", offset)

    def _bind_nodes(self, nodes: list[GrammarNode], scope: str) -> list[Binding]:
        bindings: list[Binding] = []
        for node in nodes:
            if isinstance(node, TextNode):
                bindings.append(Binding(kind="text", text=node.text, node=node))

            elif isinstance(node, VariableNode):
                prop = self._property(scope, node.name, node.offset)
                bindings.append(
                    Binding(
                        kind="variable",
                        name=node.name,
                        group=self._next_group("v"),
                        format=self._format_for(prop, node),
                        type_name=prop.type_name,
                        node=node,
                    )
                )

            elif isinstance(node, ConditionalNode):
                prop = self._property(scope, node.name, node.offset)
                if prop.type_name != "Boolean" or prop.is_array:
                    raise self._error(
                        f"{{{{#if {node.name}}}}} requires a Boolean property", node.offset
                    )
                if _is_blank(node.when_true) and _is_blank(node.when_false):
                    raise self._error(
                        f"{{{{#if {node.name}}}}} has no text to tell true from false", node.offset
                    )
                group = self._next_group("c")
                bindings.append(
                    Binding(
                        kind="conditional",
                        name=node.name,
                        group=group,
                        node=node,
                        children=self._bind_nodes(node.when_true, scope),
                        else_children=self._bind_nodes(node.when_false, scope),
                    )
                )

            elif isinstance(node, WithNode):
                prop = self._property(scope, node.name, node.offset)
                if prop.is_primitive or prop.is_array or prop.is_relationship:
                    raise self._error(
                        f"{{{{#with {node.name}}}}} requires a concept property", node.offset
                    )
                decl = self.manager.get_type(prop.type_name)
                if decl.is_enum or decl.is_abstract:
                    raise self._error(
                        f"{{{{#with {node.name}}}}} requires a concrete concept type", node.offset
                    )
                bindings.append(
                    Binding(
                        kind="with",
                        name=node.name,
                        type_name=decl.fqn,
                        node=node,
                        children=self._bind_nodes(node.children, decl.fqn),
                    )
                )

            elif isinstance(node, FormulaNode):
                bindings.append(Binding(kind="formula", name=node.source, node=node))
        return bindings

    def _format_for(self, prop: PropertySpec, node: VariableNode) -> ValueFormat:
        if prop.is_array:
            raise self._error(f"Array property '{prop.name}' cannot be a variable", node.offset)
        if prop.is_relationship:
            return StringFormat(prop.type_name)
        if prop.is_primitive:
            try:
                return primitive_format(prop.type_name, node.format)
            except GrammarSyntaxError as e:
                raise self._error(e.message, node.offset) from e
        if node.format is not None:
            raise self._error("Format is only supported on primitive types", node.offset)
        decl = self.manager.get_type(prop.type_name)
        if decl.is_enum:
            return EnumFormat(decl.fqn, values=tuple(decl.enum_values))
        inline = INLINE_CONCEPTS.get(decl.fqn)
        if inline is None:
            raise self._error(
                f"Variable '{prop.name}' of type '{decl.fqn}' needs a {{{{#with}}}} block",
                node.offset,
            )
        return inline

    # =========================================================================
    # Patterns
    # =========================================================================

    def _regex(self, bindings: list[Binding]) -> str:
        return "".join(seg.regex for b in bindings for seg in self._binding_segments(b))

    def _binding_segments(self, binding: Binding) -> list[_Segment]:
        if binding.kind == "text":
            return _text_segments(binding.text)
        if binding.kind == "variable":
            assert binding.format is not None
            return [
                _Segment(
                    regex=f"(?P<{binding.group}>{binding.format.pattern()})",
                    expected=f"{binding.format.describe()} for '{binding.name}'",
                )
            ]
        if binding.kind == "conditional":
            when_true = self._regex(binding.children)
            when_false = self._regex(binding.else_children)
            if when_false:
                regex = f"(?:(?P<{binding.group}>{when_true})|{when_false})"
            else:
                regex = f"(?P<{binding.group}>{when_true})?"
            return [
                _Segment(regex=regex, expected=f"the text of {{{{#if {binding.name}}}}}")
            ]
        if binding.kind == "with":
            return [_Segment(regex=f"(?:{self._regex(binding.children)})", expected=f"'{binding.name}'")]
        # formula: computed text, accepted as is
        return [_Segment(regex=r"(?:[^\n]+?)", expected=f"the value of formula '{binding.name}'")]

    def _build_segments(self) -> list[_Segment]:
        segments: list[_Segment] = []
        for index, block in enumerate(self.blocks):
            if index:
                segments.append(_Segment(regex=r"\s+", expected="a new paragraph"))
            if block.kind == BlockKind.HEADING:
                marker = "#" * block.level
                segments.append(_Segment(regex=re.escape(marker) + r"[ \t]+", expected=f"'{marker} '"))
            for binding in block.children:
                segments.extend(self._binding_segments(binding))
        return segments

    # =========================================================================
    # Parsing
    # =========================================================================

    def parse_text(self, text: str, source_name: str = "<text>") -> dict[str, Any]:
        """
        Match ``text`` and build the (unvalidated) data instance.

        Raises:
            GrammarMismatchError: With the location of the first mismatch.
        """
        m = self.pattern.fullmatch(text)
        if m is None:
            raise self._mismatch(text, source_name)

        data: dict[str, Any] = {CLASS_KEY: self.spec.root_type}
        for block in self.blocks:
            self._extract(block.children, m, data, text, source_name)
        return data

    def _extract(
        self,
        bindings: list[Binding],
        m: re.Match[str],
        data: dict[str, Any],
        text: str,
        source_name: str,
    ) -> None:
        for binding in bindings:
            if binding.kind == "variable":
                assert binding.group is not None and binding.format is not None
                raw = m.group(binding.group)
                if raw is None:
                    continue
                try:
                    value = binding.format.parse(raw)
                except (ValueError, PactumError) as e:
                    raise self._mismatch_at(
                        text, source_name, m.start(binding.group), f"Invalid value {raw!r}: {e}"
                    ) from e
                if binding.name in data and data[binding.name] != value:
                    raise self._mismatch_at(
                        text,
                        source_name,
                        m.start(binding.group),
                        f"Inconsistent value for '{binding.name}': "
                        f"{raw!r} differs from an earlier occurrence",
                    )
                data[binding.name] = value

            elif binding.kind == "conditional":
                assert binding.group is not None
                taken = m.group(binding.group) is not None
                data[binding.name] = taken
                branch = binding.children if taken else binding.else_children
                self._extract(branch, m, data, text, source_name)

            elif binding.kind == "with":
                assert binding.type_name is not None
                nested = data.setdefault(binding.name, {CLASS_KEY: binding.type_name})
                self._extract(binding.children, m, nested, text, source_name)

    def _mismatch_at(
        self, text: str, source_name: str, offset: int, message: str, expected: str | None = None
    ) -> GrammarMismatchError:
        line, column, snippet = locate(text, offset)
        context = ErrorContext(file=Path(source_name), line=line, column=column, snippet=snippet)
        return GrammarMismatchError(message, context, expected=expected)

    def _mismatch(self, text: str, source_name: str) -> GrammarMismatchError:
        prefix = r"\s*"
        end = len(text) - len(text.lstrip())
        for segment in self.segments:
            candidate = prefix + segment.regex
            m = re.compile(candidate).match(text)
            if m is None:
                offset = end
                # Point past whitespace the segment would have consumed
                while offset < len(text) and text[offset].isspace():
                    offset += 1
                line, column, _ = locate(text, offset)
                found = text[offset : offset + 20].split("\n")[0] or "end of text"
                message = (
                    f"Parse error at line {line} column {column}: "
                    f"expected {segment.expected}, found {found!r}"
                )
                logger.debug("Grammar mismatch: %s", message)
                return self._mismatch_at(text, source_name, offset, message, segment.expected)
            prefix = candidate
            end = m.end()
        line, column, _ = locate(text, end)
        message = f"Parse error at line {line} column {column}: unexpected text after end of clause"
        return self._mismatch_at(text, source_name, end, message, "end of text")


def _is_blank(nodes: list[GrammarNode]) -> bool:
    return all(isinstance(node, TextNode) and not node.text.strip() for node in nodes)


def _text_segments(text: str) -> list[_Segment]:
    segments: list[_Segment] = []
    pos = 0
    for m in _WS.finditer(text):
        if m.start() > pos:
            word = text[pos : m.start()]
            segments.append(_Segment(regex=re.escape(word), expected=repr(word)))
        segments.append(_Segment(regex=r"\s+", expected="whitespace"))
        pos = m.end()
    if pos < len(text):
        word = text[pos:]
        segments.append(_Segment(regex=re.escape(word), expected=repr(word)))
    return segments


def compile_grammar(
    spec: GrammarSpec, manager: ModelManager, file_name: str = "text/grammar.md"
) -> CompiledGrammar:
    """
    Bind a parsed grammar to a model.

    Raises:
        GrammarSyntaxError: If a variable does not exist or has no text form.
    """
    return CompiledGrammar(spec, manager, file_name)
