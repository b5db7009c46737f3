"""
Serializations of the canonical document tree.

All encodings carry the same content; only the shape differs.
"""

from __future__ import annotations

import html
from typing import Any

from pactum.core.errors import DraftError
from pactum.core.ir import Block, ConditionalRun, Document, FormulaRun, TextRun, VariableRun

_HEADING_TYPES = {
    1: "heading_one",
    2: "heading_two",
    3: "heading_three",
    4: "heading_four",
    5: "heading_five",
    6: "heading_six",
}


def to_text(document: Document) -> str:
    """Plain text; blocks are separated by a blank line."""
    parts = []
    for block in document.blocks:
        text = block.plain_text()
        if block.kind == "heading":
            text = "#" * block.level + " " + text
        parts.append(text)
    return "\n\n".join(parts)


def to_tree(document: Document) -> dict[str, Any]:
    """The document tree itself, as JSON."""
    return document.model_dump(mode="json")


# =============================================================================
# Slate
# =============================================================================


def _slate_leaf(text: str) -> dict[str, Any]:
    return {"object": "text", "text": text, "marks": []}


def _slate_inline(node: Any) -> dict[str, Any]:
    if isinstance(node, TextRun):
        return _slate_leaf(node.text)
    if isinstance(node, VariableRun):
        return {
            "object": "inline",
            "type": "variable",
            "data": {"id": node.name, "value": node.value, "type": node.type_name},
            "nodes": [_slate_leaf(node.value)],
        }
    if isinstance(node, ConditionalRun):
        return {
            "object": "inline",
            "type": "conditional",
            "data": {"id": node.name, "whenTrue": node.is_true},
            "nodes": [_slate_inline(child) for child in node.children] or [_slate_leaf("")],
        }
    assert isinstance(node, FormulaRun)
    return {
        "object": "inline",
        "type": "formula",
        "data": {"code": node.source, "value": node.value},
        "nodes": [_slate_leaf(node.value)],
    }


def _slate_block(block: Block) -> dict[str, Any]:
    block_type = _HEADING_TYPES.get(block.level, "heading_six") if block.kind == "heading" else "paragraph"
    return {
        "object": "block",
        "type": block_type,
        "data": {},
        "nodes": [_slate_inline(child) for child in block.children],
    }


def to_slate(document: Document) -> dict[str, Any]:
    """Slate editor value."""
    return {
        "object": "value",
        "document": {
            "object": "document",
            "data": {"clauseId": document.clause_id, "template": document.template},
            "nodes": [_slate_block(block) for block in document.blocks],
        },
    }


# =============================================================================
# HTML
# =============================================================================


def _html_inline(node: Any) -> str:
    if isinstance(node, TextRun):
        return html.escape(node.text)
    if isinstance(node, VariableRun):
        return (
            f'<span class="variable" data-name="{html.escape(node.name)}">'
            f"{html.escape(node.value)}</span>"
        )
    if isinstance(node, ConditionalRun):
        inner = "".join(_html_inline(child) for child in node.children)
        state = "true" if node.is_true else "false"
        return (
            f'<span class="conditional" data-name="{html.escape(node.name)}" '
            f'data-when="{state}">{inner}</span>'
        )
    assert isinstance(node, FormulaRun)
    return (
        f'<span class="formula" data-code="{html.escape(node.source)}">'
        f"{html.escape(node.value)}</span>"
    )


def to_html(document: Document) -> str:
    """HTML fragment wrapping the clause in a ``div``."""
    lines = []
    attrs = ' class="clause"'
    if document.clause_id:
        attrs += f' data-clause-id="{html.escape(document.clause_id)}"'
    if document.template:
        attrs += f' data-template="{html.escape(document.template)}"'
    lines.append(f"<div{attrs}>")
    for block in document.blocks:
        tag = f"h{block.level}" if block.kind == "heading" else "p"
        inner = "".join(_html_inline(child) for child in block.children)
        lines.append(f"<{tag}>{inner}</{tag}>")
    lines.append("</div>")
    return "\n".join(lines)


ENCODERS = {
    "text": to_text,
    "tree": to_tree,
    "slate": to_slate,
    "html": to_html,
}


def encode(document: Document, fmt: str = "text") -> str | dict[str, Any]:
    encoder = ENCODERS.get(fmt)
    if encoder is None:
        raise DraftError(f"Unknown draft format: {fmt} (available: {','.join(ENCODERS)})")
    return encoder(document)
