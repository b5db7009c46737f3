"""
Model manager: resolves model files and validates ``$class``-tagged instances.

A ``ModelManager`` holds the built-in namespaces plus the template's own
model files. Once ``resolve()`` has run, every declaration's super type and
non-primitive property types are fully qualified, so validation never has
to consult imports again.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import UTC, datetime
from typing import Any

from pactum.stdlib import builtin_model_sources

from . import ir
from .errors import ModelParseError, SchemaValidationError
from .model_parser import parse_model

logger = logging.getLogger(__name__)

CLASS_KEY = "$class"

_EPOCH = "1970-01-01T00:00:00.000Z"


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 string; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_datetime(value: datetime) -> str:
    """Serialize a datetime as ISO 8601 with milliseconds; UTC is written ``Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    text = value.isoformat(timespec="milliseconds")
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def to_json(value: Any) -> Any:
    """Convert a runtime value back into its JSON form."""
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


class ModelManager:
    """
    Registry of model declarations.

    Usage:
        manager = ModelManager()
        manager.add_model(source, "model/clause.model")
        manager.resolve()
        manager.validate(instance, "org.example.TemplateModel")
    """

    def __init__(self, include_builtins: bool = True):
        self.files: dict[str, ir.ModelFile] = {}
        self.builtin_namespaces: set[str] = set()
        self._types: dict[str, ir.DeclarationSpec] = {}
        self._resolved = False
        if include_builtins:
            for name, source in builtin_model_sources().items():
                model = self.add_model(source, f"@pactum/{name}")
                self.builtin_namespaces.add(model.namespace)

    # =========================================================================
    # Loading
    # =========================================================================

    def add_model(self, source: str, file_name: str = "<model>") -> ir.ModelFile:
        """Parse and register a model file."""
        model = parse_model(source, file_name)
        if model.namespace in self.files:
            raise ModelParseError(
                f"Namespace '{model.namespace}' is declared twice "
                f"({self.files[model.namespace].source_name} and {file_name})"
            )
        self.files[model.namespace] = model
        self._resolved = False
        logger.debug("Registered model namespace %s from %s", model.namespace, file_name)
        return model

    @property
    def user_files(self) -> list[ir.ModelFile]:
        """Model files that are not built in, in namespace order."""
        return [
            self.files[ns] for ns in sorted(self.files) if ns not in self.builtin_namespaces
        ]

    def resolve(self) -> None:
        """
        Resolve all type references to fully qualified names.

        Raises:
            ModelParseError: If a referenced type or import cannot be found,
                or inheritance is cyclic.
        """
        types: dict[str, ir.DeclarationSpec] = {}
        for model in self.files.values():
            for imp in model.imports:
                if imp.namespace not in self.files:
                    raise ModelParseError(
                        f"{model.source_name}: import of unknown namespace '{imp.namespace}'"
                    )
                if imp.name and self.files[imp.namespace].get_declaration(imp.name) is None:
                    raise ModelParseError(f"{model.source_name}: import of unknown type '{imp}'")

            for decl in model.declarations:
                super_type = None
                if decl.super_type:
                    super_type = self._resolve_in_file(decl.super_type, model)
                properties = [
                    prop
                    if prop.is_primitive
                    else prop.model_copy(
                        update={"type_name": self._resolve_in_file(prop.type_name, model)}
                    )
                    for prop in decl.properties
                ]
                types[decl.fqn] = decl.model_copy(
                    update={"super_type": super_type, "properties": properties}
                )

        self._types = types
        for fqn in types:
            self._check_hierarchy(fqn)
        self._resolved = True
        logger.debug("Resolved %d model declarations", len(types))

    def _resolve_in_file(self, name: str, model: ir.ModelFile) -> str:
        fqn = self.resolve_name(name, model.namespace, model.imports)
        if fqn is None:
            raise ModelParseError(f"{model.source_name}: undeclared type '{name}'")
        return fqn

    def resolve_name(
        self, name: str, namespace: str, imports: list[ir.ImportSpec]
    ) -> str | None:
        """Resolve a (possibly short) type name as seen from ``namespace``."""
        if name in ir.PRIMITIVE_NAMES:
            return name
        if "." in name:
            ns, _, short = name.rpartition(".")
            model = self.files.get(ns)
            return name if model and model.get_declaration(short) else None

        local = self.files.get(namespace)
        if local and local.get_declaration(name):
            return f"{namespace}.{name}"
        for imp in imports:
            if imp.name == name:
                return f"{imp.namespace}.{name}"
        for imp in imports:
            model = self.files.get(imp.namespace)
            if imp.name is None and model and model.get_declaration(name):
                return f"{imp.namespace}.{name}"
        return None

    def _check_hierarchy(self, fqn: str) -> None:
        seen = {fqn}
        decl = self._types[fqn]
        while decl.super_type:
            if decl.super_type in seen:
                raise ModelParseError(f"Cyclic inheritance involving '{fqn}'")
            seen.add(decl.super_type)
            parent = self._types[decl.super_type]
            if parent.kind == ir.DeclarationKind.ENUM:
                raise ModelParseError(f"'{decl.fqn}' cannot extend enum '{parent.fqn}'")
            decl = parent

    # =========================================================================
    # Queries
    # =========================================================================

    def _ensure_resolved(self) -> None:
        if not self._resolved:
            self.resolve()

    def has_type(self, fqn: str) -> bool:
        self._ensure_resolved()
        return fqn in self._types

    def get_type(self, fqn: str) -> ir.DeclarationSpec:
        self._ensure_resolved()
        decl = self._types.get(fqn)
        if decl is None:
            raise SchemaValidationError(f"Type '{fqn}' is not declared")
        return decl

    @property
    def declarations(self) -> list[ir.DeclarationSpec]:
        """All resolved declarations."""
        self._ensure_resolved()
        return list(self._types.values())

    def supertypes(self, fqn: str) -> list[str]:
        """``fqn`` followed by its ancestors, nearest first."""
        chain = [fqn]
        decl = self.get_type(fqn)
        while decl.super_type:
            chain.append(decl.super_type)
            decl = self.get_type(decl.super_type)
        return chain

    def is_assignable(self, fqn: str, target: str) -> bool:
        """Whether an instance of ``fqn`` may be used where ``target`` is expected."""
        if not self.has_type(fqn):
            return False
        return target in self.supertypes(fqn)

    def all_properties(self, fqn: str) -> list[ir.PropertySpec]:
        """Properties of ``fqn`` including inherited ones, ancestors first."""
        properties: list[ir.PropertySpec] = []
        for ancestor in reversed(self.supertypes(fqn)):
            properties.extend(self.get_type(ancestor).properties)
        return properties

    def find_decorated(self, decorator: str) -> list[ir.DeclarationSpec]:
        return [d for d in self.declarations if d.has_decorator(decorator)]

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, instance: Any, expected_type: str | None = None) -> dict[str, Any]:
        """
        Validate an instance and return a normalized copy.

        Normalization fills in ``$class`` on nested concepts whose declared
        type is concrete and converts integral values of Double properties
        to ``float``. DateTime values may be ISO strings or ``datetime``.

        Raises:
            SchemaValidationError: On the first violation found.
        """
        self._ensure_resolved()
        if not isinstance(instance, dict):
            raise SchemaValidationError(
                f"Expected an object with {CLASS_KEY}, got {type(instance).__name__}"
            )
        class_name = instance.get(CLASS_KEY)
        if class_name is None:
            if expected_type is None:
                raise SchemaValidationError(f"Instance has no {CLASS_KEY}")
            class_name = expected_type
        return self._validate_object(instance, str(class_name), expected_type, str(class_name))

    def _validate_object(
        self, value: Any, class_name: str, expected: str | None, path: str
    ) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise SchemaValidationError(
                f"{path}: expected an instance of {expected or class_name}, got {_json_type(value)}"
            )
        if class_name not in self._types:
            raise SchemaValidationError(f"{path}: type '{class_name}' is not declared")
        decl = self._types[class_name]
        if decl.is_abstract:
            raise SchemaValidationError(f"{path}: cannot instantiate abstract type '{class_name}'")
        if decl.is_enum:
            raise SchemaValidationError(f"{path}: '{class_name}' is an enum, not a concept")
        if expected is not None and not self.is_assignable(class_name, expected):
            raise SchemaValidationError(
                f"{path}: type '{class_name}' is not assignable to '{expected}'"
            )

        properties = {p.name: p for p in self.all_properties(class_name)}
        result: dict[str, Any] = {CLASS_KEY: class_name}
        for key, item in value.items():
            if key.startswith("$"):
                if key != CLASS_KEY:
                    result[key] = item
                continue
            if key not in properties:
                raise SchemaValidationError(
                    f"{path}: unknown property '{key}' for type '{class_name}'"
                )

        for prop in properties.values():
            item = value.get(prop.name)
            prop_path = f"{path}.{prop.name}"
            if item is None:
                if not prop.optional:
                    raise SchemaValidationError(f"{prop_path}: missing required property")
                if prop.name in value:
                    result[prop.name] = None
                continue
            if prop.is_array:
                if not isinstance(item, list):
                    raise SchemaValidationError(
                        f"{prop_path}: expected an array, got {_json_type(item)}"
                    )
                result[prop.name] = [
                    self._validate_value(prop, element, f"{prop_path}[{i}]")
                    for i, element in enumerate(item)
                ]
            else:
                result[prop.name] = self._validate_value(prop, item, prop_path)
        return result

    def _validate_value(self, prop: ir.PropertySpec, value: Any, path: str) -> Any:
        if prop.is_relationship:
            if not isinstance(value, str):
                raise SchemaValidationError(
                    f"{path}: relationship must be an identifier string, got {_json_type(value)}"
                )
            return value
        if prop.is_primitive:
            return _validate_primitive(prop, value, path)

        decl = self._types[prop.type_name]
        if decl.is_enum:
            if not isinstance(value, str) or value not in decl.enum_values:
                raise SchemaValidationError(
                    f"{path}: {value!r} is not a value of enum '{decl.fqn}' "
                    f"(expected one of {', '.join(decl.enum_values)})"
                )
            return value

        if not isinstance(value, dict):
            raise SchemaValidationError(
                f"{path}: expected an instance of {decl.fqn}, got {_json_type(value)}"
            )
        class_name = value.get(CLASS_KEY)
        if class_name is None:
            if decl.is_abstract:
                raise SchemaValidationError(
                    f"{path}: {CLASS_KEY} is required for abstract type '{decl.fqn}'"
                )
            class_name = decl.fqn
        return self._validate_object(value, str(class_name), decl.fqn, path)

    # =========================================================================
    # Conversion
    # =========================================================================

    def from_json(self, instance: dict[str, Any], expected_type: str | None = None) -> dict[str, Any]:
        """
        Validate a JSON instance and convert it into the runtime form used by
        clause logic (DateTime as aware ``datetime``, Double as ``float``).
        """
        validated = self.validate(instance, expected_type)
        return self._to_runtime(validated)

    def _to_runtime(self, instance: dict[str, Any]) -> dict[str, Any]:
        class_name = instance[CLASS_KEY]
        properties = {p.name: p for p in self.all_properties(class_name)}
        result: dict[str, Any] = {}
        for key, value in instance.items():
            prop = properties.get(key)
            if prop is None or value is None:
                result[key] = value
            elif prop.is_array:
                result[key] = [self._value_to_runtime(prop, v) for v in value]
            else:
                result[key] = self._value_to_runtime(prop, value)
        return result

    def _value_to_runtime(self, prop: ir.PropertySpec, value: Any) -> Any:
        if prop.type_name == ir.PrimitiveKind.DATETIME.value and isinstance(value, str):
            return parse_datetime(value)
        if isinstance(value, dict) and CLASS_KEY in value:
            return self._to_runtime(value)
        return value

    def to_json(self, value: Any) -> Any:
        return to_json(value)

    def instantiate(self, fqn: str) -> dict[str, Any]:
        """
        Create an instance of ``fqn`` with defaults applied.

        Required properties without a default get an empty value of their
        type (``""``, ``0``, ``false``, the epoch, the first enum value).
        """
        decl = self.get_type(fqn)
        if decl.is_abstract or decl.is_enum:
            raise SchemaValidationError(f"Cannot instantiate '{fqn}'")
        instance: dict[str, Any] = {CLASS_KEY: fqn}
        for prop in self.all_properties(fqn):
            if prop.default is not None:
                instance[prop.name] = [prop.default] if prop.is_array else prop.default
            elif not prop.optional:
                instance[prop.name] = [] if prop.is_array else self._empty_value(prop)
        return instance

    def _empty_value(self, prop: ir.PropertySpec) -> Any:
        if prop.is_relationship:
            return ""
        if prop.is_primitive:
            return {
                "String": "",
                "Boolean": False,
                "DateTime": _EPOCH,
                "Double": 0.0,
                "Integer": 0,
                "Long": 0,
            }[prop.type_name]
        decl = self.get_type(prop.type_name)
        if decl.is_enum:
            return decl.enum_values[0] if decl.enum_values else ""
        return self.instantiate(decl.fqn)


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _validate_primitive(prop: ir.PropertySpec, value: Any, path: str) -> Any:
    kind = prop.type_name
    if kind == ir.PrimitiveKind.STRING.value:
        if not isinstance(value, str):
            raise SchemaValidationError(f"{path}: expected String, got {_json_type(value)}")
        if prop.regex is not None and not re.search(prop.regex, value):
            raise SchemaValidationError(
                f"{path}: {value!r} does not match pattern /{prop.regex}/"
            )
        return value

    if kind == ir.PrimitiveKind.BOOLEAN.value:
        if not isinstance(value, bool):
            raise SchemaValidationError(f"{path}: expected Boolean, got {_json_type(value)}")
        return value

    if kind == ir.PrimitiveKind.DATETIME.value:
        if isinstance(value, datetime):
            return value
        if not isinstance(value, str):
            raise SchemaValidationError(f"{path}: expected DateTime, got {_json_type(value)}")
        try:
            parse_datetime(value)
        except ValueError as e:
            raise SchemaValidationError(f"{path}: {value!r} is not an ISO 8601 DateTime") from e
        return value

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaValidationError(f"{path}: expected {kind}, got {_json_type(value)}")

    if kind == ir.PrimitiveKind.DOUBLE.value:
        if math.isnan(value) or math.isinf(value):
            raise SchemaValidationError(f"{path}: {value} is not a finite Double")
        result: int | float = float(value)
    else:
        if isinstance(value, float):
            raise SchemaValidationError(f"{path}: expected {kind}, got a decimal number")
        result = value

    if prop.range is not None and not prop.range.contains(result):
        raise SchemaValidationError(f"{path}: {value} is outside the range {prop.range}")
    return result
