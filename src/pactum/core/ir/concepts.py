"""
Data model declarations for pactum IR.

This module contains the schema types parsed from ``.model`` files:
model files, type declarations, properties and their types.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PrimitiveKind(str, Enum):
    """Primitive property types of the schema language."""

    STRING = "String"
    BOOLEAN = "Boolean"
    DATETIME = "DateTime"
    DOUBLE = "Double"
    INTEGER = "Integer"
    LONG = "Long"


PRIMITIVE_NAMES = {kind.value for kind in PrimitiveKind}


class DeclarationKind(str, Enum):
    """Kinds of type declarations."""

    CONCEPT = "concept"
    ASSET = "asset"
    TRANSACTION = "transaction"
    EVENT = "event"
    PARTICIPANT = "participant"
    ENUM = "enum"


class Decorator(BaseModel):
    """
    A decorator attached to a declaration or property.

    Examples:
        - @template: Decorator(name="template")
        - @display("Penalty", 2): Decorator(name="display", arguments=["Penalty", 2])
    """

    name: str
    arguments: list[str | int | float | bool] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class NumberRange(BaseModel):
    """Inclusive numeric bounds; either side may be open."""

    lower: float | None = None
    upper: float | None = None

    model_config = ConfigDict(frozen=True)

    def contains(self, value: float) -> bool:
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value > self.upper:
            return False
        return True

    def __str__(self) -> str:
        lo = "" if self.lower is None else str(self.lower)
        hi = "" if self.upper is None else str(self.upper)
        return f"[{lo},{hi}]"


class PropertySpec(BaseModel):
    """
    A property of a declaration.

    Examples:
        - o Double penaltyPercentage: PropertySpec(name="penaltyPercentage", type_name="Double")
        - o String[] tags optional: PropertySpec(name="tags", type_name="String", is_array=True, optional=True)
        - --> Party buyer: PropertySpec(name="buyer", type_name="Party", is_relationship=True)
    """

    name: str
    type_name: str
    is_array: bool = False
    optional: bool = False
    is_relationship: bool = False
    default: str | int | float | bool | None = None
    regex: str | None = None
    range: NumberRange | None = None
    decorators: list[Decorator] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_primitive(self) -> bool:
        return self.type_name in PRIMITIVE_NAMES


class DeclarationSpec(BaseModel):
    """
    A type declaration (concept, asset, transaction, event, participant or enum).

    ``fqn`` is the fully qualified name ``namespace.Name``. ``super_type`` is
    stored fully qualified once the model manager has resolved imports.
    """

    name: str
    namespace: str
    kind: DeclarationKind
    is_abstract: bool = False
    super_type: str | None = None
    identified_by: str | None = None
    properties: list[PropertySpec] = Field(default_factory=list)
    enum_values: list[str] = Field(default_factory=list)
    decorators: list[Decorator] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def fqn(self) -> str:
        return f"{self.namespace}.{self.name}"

    @property
    def is_enum(self) -> bool:
        return self.kind == DeclarationKind.ENUM

    def has_decorator(self, name: str) -> bool:
        return any(d.name == name for d in self.decorators)

    def get_property(self, name: str) -> PropertySpec | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None


class ImportSpec(BaseModel):
    """An import of one type (``ns.Name``) or a whole namespace (``ns.*``)."""

    namespace: str
    name: str | None = None  # None means wildcard

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.namespace}.{self.name or '*'}"


class ModelFile(BaseModel):
    """A parsed ``.model`` file."""

    namespace: str
    imports: list[ImportSpec] = Field(default_factory=list)
    declarations: list[DeclarationSpec] = Field(default_factory=list)
    source_name: str = "<model>"
    source: str = ""

    model_config = ConfigDict(frozen=True)

    def get_declaration(self, name: str) -> DeclarationSpec | None:
        for decl in self.declarations:
            if decl.name == name:
                return decl
        return None

    def to_summary(self) -> dict[str, Any]:
        """Compact description used by diagnostics and compilers."""
        return {
            "namespace": self.namespace,
            "declarations": [d.name for d in self.declarations],
        }
