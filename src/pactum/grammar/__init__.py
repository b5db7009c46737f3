"""
Grammar engine: text to data (parse), data to text (draft), and normalize.

Usage:
    from pactum.grammar import DraftOptions, draft, parse

    data = parse(template, text)
    text = draft(template, data)
    tree = draft(template, data, DraftOptions(format="tree"))
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from pactum.core.clause import IDENTIFIER_KEY, assign_identifier
from pactum.core.errors import DraftError, SchemaValidationError
from pactum.core.model_manager import to_json

from .drafter import DRAFT_FORMATS, DraftOptions, draft_document
from .encodings import encode

if TYPE_CHECKING:
    from pactum.core.template import Template

logger = logging.getLogger(__name__)


def parse(template: Template, text: str, source_name: str = "<text>") -> dict[str, Any]:
    """
    Parse contract text into a validated data instance with a fresh identifier.

    Raises:
        GrammarMismatchError: If the text does not match the grammar.
        SchemaValidationError: If the matched values do not validate.
    """
    data = template.grammar.parse_text(text, source_name)
    assign_identifier(template, data, fresh=True)
    validated = template.model_manager.validate(data, template.root_type)
    logger.debug("Parsed %s as %s", source_name, template.root_type)
    return to_json(validated)


def draft(
    template: Template, data: dict[str, Any], options: DraftOptions | None = None
) -> str | dict[str, Any]:
    """
    Render a data instance in the format chosen by ``options``.

    Raises:
        DraftError: If the data is missing values or does not validate.
    """
    options = options or DraftOptions()
    try:
        runtime = template.model_manager.from_json(copy.deepcopy(data), template.root_type)
    except SchemaValidationError as e:
        raise DraftError(f"Invalid data: {e.message}") from e
    document = draft_document(
        template.grammar,
        runtime,
        options,
        clause_id=data.get(IDENTIFIER_KEY),
        template=template.identifier,
    )
    return encode(document, options.format)


def normalize(
    template: Template, text: str, options: DraftOptions | None = None
) -> str | dict[str, Any]:
    """``draft(parse(text))``; idempotent for text output."""
    return draft(template, parse(template, text), options)


__all__ = [
    "DRAFT_FORMATS",
    "DraftOptions",
    "draft",
    "normalize",
    "parse",
]
