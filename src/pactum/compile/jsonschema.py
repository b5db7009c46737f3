"""
JSON Schema export of a template model.

One schema document with a ``definitions`` entry per declaration; the root
refers to the template type.
"""

from __future__ import annotations

import json
from typing import Any

from pactum.core.ir import DeclarationSpec, PropertySpec
from pactum.core.model_manager import CLASS_KEY, ModelManager

_PRIMITIVES: dict[str, dict[str, Any]] = {
    "String": {"type": "string"},
    "Boolean": {"type": "boolean"},
    "DateTime": {"type": "string", "format": "date-time"},
    "Double": {"type": "number"},
    "Integer": {"type": "integer"},
    "Long": {"type": "integer"},
}


def _property_schema(prop: PropertySpec) -> dict[str, Any]:
    if prop.is_relationship:
        schema: dict[str, Any] = {"type": "string", "description": f"Reference to {prop.type_name}"}
    elif prop.is_primitive:
        schema = dict(_PRIMITIVES[prop.type_name])
        if prop.regex:
            schema["pattern"] = prop.regex
        if prop.range is not None:
            if prop.range.lower is not None:
                schema["minimum"] = prop.range.lower
            if prop.range.upper is not None:
                schema["maximum"] = prop.range.upper
    else:
        schema = {"$ref": f"#/definitions/{prop.type_name}"}
    if prop.default is not None:
        schema["default"] = prop.default
    if prop.is_array:
        return {"type": "array", "items": schema}
    return schema


def _declaration_schema(decl: DeclarationSpec, manager: ModelManager) -> dict[str, Any]:
    if decl.is_enum:
        return {"title": decl.name, "enum": list(decl.enum_values)}
    properties: dict[str, Any] = {CLASS_KEY: {"type": "string", "default": decl.fqn}}
    required = [CLASS_KEY]
    for prop in manager.all_properties(decl.fqn):
        properties[prop.name] = _property_schema(prop)
        if not prop.optional:
            required.append(prop.name)
    return {
        "title": decl.name,
        "description": f"An instance of {decl.fqn}",
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def generate_json_schema(manager: ModelManager, root_type: str) -> dict[str, Any]:
    """JSON Schema for ``root_type`` with every declaration as a definition."""
    definitions = {
        decl.fqn: _declaration_schema(decl, manager)
        for decl in sorted(manager.declarations, key=lambda d: d.fqn)
    }
    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "$ref": f"#/definitions/{root_type}",
        "definitions": definitions,
    }


def compile_json_schema(manager: ModelManager, root_type: str) -> dict[str, str]:
    return {"schema.json": json.dumps(generate_json_schema(manager, root_type), indent=2) + "\n"}
