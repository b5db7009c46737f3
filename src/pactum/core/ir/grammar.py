"""
Template grammar types for pactum IR.

A grammar is a sequence of blocks (paragraphs and headings); each block is
a sequence of grammar nodes:

- TextNode: literal text
- VariableNode: ``{{field}}`` or ``{{field as "FORMAT"}}``
- ConditionalNode: ``{{#if field}}...{{else}}...{{/if}}``
- WithNode: ``{{#with field}}...{{/with}}``
- FormulaNode: ``{{% expression %}}``
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Union
from typing import Literal as Tag

from pydantic import BaseModel, ConfigDict, Field

from .expressions import Expr


class TextNode(BaseModel):
    """Literal text."""

    node: Tag["text"] = "text"
    text: str

    model_config = ConfigDict(frozen=True)


class VariableNode(BaseModel):
    """A data-bound slot."""

    node: Tag["variable"] = "variable"
    name: str
    format: str | None = None
    offset: int = 0

    model_config = ConfigDict(frozen=True)


class ConditionalNode(BaseModel):
    """Boolean-driven optional text."""

    node: Tag["conditional"] = "conditional"
    name: str
    when_true: list[GrammarNode] = Field(default_factory=list)
    when_false: list[GrammarNode] = Field(default_factory=list)
    offset: int = 0

    model_config = ConfigDict(frozen=True)


class WithNode(BaseModel):
    """Nested scope over a concept-typed property."""

    node: Tag["with"] = "with"
    name: str
    children: list[GrammarNode] = Field(default_factory=list)
    offset: int = 0

    model_config = ConfigDict(frozen=True)


class FormulaNode(BaseModel):
    """A computed value; rendered when drafting, skipped when parsing."""

    node: Tag["formula"] = "formula"
    source: str
    expression: Expr
    offset: int = 0

    model_config = ConfigDict(frozen=True)


GrammarNode = Annotated[
    Union[TextNode, VariableNode, ConditionalNode, WithNode, FormulaNode],
    Field(discriminator="node"),
]

ConditionalNode.model_rebuild()
WithNode.model_rebuild()


class BlockKind(str, Enum):
    """Top-level block kinds of a grammar."""

    PARAGRAPH = "paragraph"
    HEADING = "heading"


class GrammarBlock(BaseModel):
    """A paragraph or heading of the grammar."""

    kind: BlockKind = BlockKind.PARAGRAPH
    level: int = 0  # heading level
    nodes: list[GrammarNode] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class GrammarSpec(BaseModel):
    """A compiled template grammar bound to its root data type."""

    blocks: list[GrammarBlock] = Field(default_factory=list)
    root_type: str
    source: str = ""

    model_config = ConfigDict(frozen=True)
