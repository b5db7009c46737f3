"""
Canonical document tree for drafted contract text.

Drafting builds one tree; the text, tree, slate and html encodings are all
serializations of it, so their semantic content is identical.
"""

from __future__ import annotations

from typing import Annotated, Union
from typing import Literal as Tag

from pydantic import BaseModel, ConfigDict, Field


class TextRun(BaseModel):
    """Plain text inside a block."""

    kind: Tag["text"] = "text"
    text: str

    model_config = ConfigDict(frozen=True)


class VariableRun(BaseModel):
    """Rendered value of a template variable."""

    kind: Tag["variable"] = "variable"
    name: str
    value: str
    type_name: str

    model_config = ConfigDict(frozen=True)


class ConditionalRun(BaseModel):
    """Rendered output of a conditional section."""

    kind: Tag["conditional"] = "conditional"
    name: str
    is_true: bool
    children: list[Inline] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class FormulaRun(BaseModel):
    """Rendered value of a formula."""

    kind: Tag["formula"] = "formula"
    source: str
    value: str

    model_config = ConfigDict(frozen=True)


Inline = Annotated[
    Union[TextRun, VariableRun, ConditionalRun, FormulaRun],
    Field(discriminator="kind"),
]

ConditionalRun.model_rebuild()


class Block(BaseModel):
    """A paragraph or a heading."""

    kind: str = "paragraph"
    level: int = 0
    children: list[Inline] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def plain_text(self) -> str:
        return "".join(_inline_text(child) for child in self.children)


class Document(BaseModel):
    """Root of a drafted clause."""

    clause_id: str | None = None
    template: str | None = None
    blocks: list[Block] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


def _inline_text(node: TextRun | VariableRun | ConditionalRun | FormulaRun) -> str:
    if isinstance(node, TextRun):
        return node.text
    if isinstance(node, (VariableRun, FormulaRun)):
        return node.value
    return "".join(_inline_text(child) for child in node.children)
