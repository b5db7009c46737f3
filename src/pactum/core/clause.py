"""
Clause instances: a template bound to one validated data instance.
"""

from __future__ import annotations

import copy
import uuid
from typing import TYPE_CHECKING, Any

from .model_manager import to_json

if TYPE_CHECKING:
    from pactum.grammar.drafter import DraftOptions

    from .template import Template

IDENTIFIER_KEY = "$identifier"


def identifier_field(template: Template) -> str | None:
    """The ``identified by`` field of the template's root type, if any."""
    manager = template.model_manager
    for fqn in manager.supertypes(template.root_type):
        decl = manager.get_type(fqn)
        if decl.identified_by:
            return decl.identified_by
    return None


def assign_identifier(template: Template, data: dict[str, Any], fresh: bool = False) -> str:
    """
    Store the clause identifier in ``data`` (in place) and return it.

    An existing identifier is kept unless ``fresh`` is set.
    """
    field_name = identifier_field(template)
    existing = data.get(field_name) if field_name else data.get(IDENTIFIER_KEY)
    clause_id = str(uuid.uuid4()) if fresh or not existing else str(existing)
    if field_name:
        data[field_name] = clause_id
    data[IDENTIFIER_KEY] = clause_id
    return clause_id


def strip_identifiers(data: dict[str, Any], template: Template | None = None) -> dict[str, Any]:
    """A copy of ``data`` without ``clauseId``/``contractId`` and ``$identifier``."""
    drop = {IDENTIFIER_KEY, "clauseId", "contractId"}
    if template is not None and (field_name := identifier_field(template)):
        drop.add(field_name)
    return {k: v for k, v in data.items() if k not in drop}


class ClauseInstance:
    """
    A template plus data that validates against it.

    Equality ignores identifiers: two instances of the same template are
    equal when their data is equal after ``strip_identifiers``.
    """

    def __init__(self, template: Template, data: dict[str, Any]):
        self.template = template
        self.data = data

    @classmethod
    def from_data(cls, template: Template, data: dict[str, Any]) -> ClauseInstance:
        """
        Validate ``data`` and bind it, keeping its identifier if it has one.

        Raises:
            SchemaValidationError: If ``data`` does not validate.
        """
        data = copy.deepcopy(data)
        assign_identifier(template, data)
        validated = template.model_manager.validate(data, template.root_type)
        return cls(template, to_json(validated))

    @classmethod
    def from_text(cls, template: Template, text: str) -> ClauseInstance:
        from pactum.grammar import parse

        return cls(template, parse(template, text))

    @property
    def clause_id(self) -> str:
        return str(self.data[IDENTIFIER_KEY])

    def set_data(self, data: dict[str, Any]) -> None:
        """Replace the data, validating it first."""
        self.data = ClauseInstance.from_data(self.template, data).data

    def draft(self, options: DraftOptions | None = None) -> str | dict[str, Any]:
        from pactum.grammar import draft

        return draft(self.template, self.data, options)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClauseInstance):
            return NotImplemented
        return self.template.identifier == other.template.identifier and strip_identifiers(
            self.data, self.template
        ) == strip_identifiers(other.data, other.template)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ClauseInstance({self.template.identifier!r}, clause_id={self.data.get(IDENTIFIER_KEY)!r})"
