"""
Drafting: renders a data instance into the canonical document tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pactum.core.errors import DraftError
from pactum.core.expression_lang import ExpressionEvalError, evaluate
from pactum.core.ir import (
    Block,
    ConditionalRun,
    Document,
    FormulaNode,
    FormulaRun,
    TextRun,
    VariableRun,
)

from .formats import render_formula_value
from .matcher import Binding, CompiledGrammar

DRAFT_FORMATS = ("text", "tree", "slate", "html")


@dataclass
class DraftOptions:
    """
    Options for drafting.

    ``unquote_variables`` renders String values without quotes; text drafted
    this way reads naturally but no longer parses back.
    """

    format: str = "text"
    unquote_variables: bool = False
    current_time: datetime | None = None  # clock for formulas

    def __post_init__(self) -> None:
        if self.format not in DRAFT_FORMATS:
            raise DraftError(
                f"Unknown draft format: {self.format} (available: {','.join(DRAFT_FORMATS)})"
            )


def draft_document(
    compiled: CompiledGrammar,
    data: dict[str, Any],
    options: DraftOptions | None = None,
    clause_id: str | None = None,
    template: str | None = None,
) -> Document:
    """
    Render runtime-form data (see ``ModelManager.from_json``) into a document.

    Raises:
        DraftError: If a variable has no value or a formula fails.
    """
    options = options or DraftOptions()
    blocks = [
        Block(
            kind=block.kind.value,
            level=block.level,
            children=_render(block.children, data, options),
        )
        for block in compiled.blocks
    ]
    return Document(clause_id=clause_id, template=template, blocks=blocks)


def _render(bindings: list[Binding], data: dict[str, Any], options: DraftOptions) -> list[Any]:
    runs: list[Any] = []
    for binding in bindings:
        if binding.kind == "text":
            runs.append(TextRun(text=binding.text))

        elif binding.kind == "variable":
            assert binding.format is not None
            value = data.get(binding.name)
            if value is None:
                raise DraftError(f"Missing value for variable '{binding.name}'")
            runs.append(
                VariableRun(
                    name=binding.name,
                    value=binding.format.render(value, unquoted=options.unquote_variables),
                    type_name=binding.type_name or "",
                )
            )

        elif binding.kind == "conditional":
            is_true = bool(data.get(binding.name))
            branch = binding.children if is_true else binding.else_children
            runs.append(
                ConditionalRun(
                    name=binding.name,
                    is_true=is_true,
                    children=_render(branch, data, options),
                )
            )

        elif binding.kind == "with":
            nested = data.get(binding.name)
            if not isinstance(nested, dict):
                raise DraftError(f"Missing value for '{binding.name}'")
            runs.extend(_render(binding.children, nested, options))

        elif binding.kind == "formula":
            assert isinstance(binding.node, FormulaNode)
            try:
                value = evaluate(binding.node.expression, data, now=options.current_time)
            except ExpressionEvalError as e:
                raise DraftError(f"Formula '{binding.node.source}' failed: {e}") from e
            runs.append(FormulaRun(source=binding.node.source, value=render_formula_value(value)))
    return runs
