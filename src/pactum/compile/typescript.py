"""
TypeScript interfaces for a template model, one file per namespace.
"""

from __future__ import annotations

from pactum.core.ir import DeclarationSpec, PropertySpec
from pactum.core.model_manager import ModelManager

_PRIMITIVES = {
    "String": "string",
    "Boolean": "boolean",
    "DateTime": "Date",
    "Double": "number",
    "Integer": "number",
    "Long": "number",
}


def _interface_name(fqn: str) -> str:
    return "I" + fqn.rsplit(".", 1)[-1]


def _ts_type(prop: PropertySpec, manager: ModelManager) -> str:
    if prop.is_relationship:
        base = "string"
    elif prop.is_primitive:
        base = _PRIMITIVES[prop.type_name]
    elif manager.get_type(prop.type_name).is_enum:
        base = prop.type_name.rsplit(".", 1)[-1]
    else:
        base = _interface_name(prop.type_name)
    return f"{base}[]" if prop.is_array else base


def _declaration(decl: DeclarationSpec, manager: ModelManager) -> list[str]:
    if decl.is_enum:
        lines = [f"export enum {decl.name} {{"]
        lines += [f"   {value} = '{value}'," for value in decl.enum_values]
        return lines + ["}"]
    extends = f" extends {_interface_name(decl.super_type)}" if decl.super_type else ""
    lines = [f"export interface {_interface_name(decl.fqn)}{extends} {{"]
    if not decl.super_type:
        lines.append("   $class: string;")
    for prop in decl.properties:
        optional = "?" if prop.optional else ""
        lines.append(f"   {prop.name}{optional}: {_ts_type(prop, manager)};")
    return lines + ["}"]


def generate_typescript(manager: ModelManager, namespace: str) -> str:
    decls = [d for d in manager.declarations if d.namespace == namespace]
    referenced = set()
    for decl in decls:
        if decl.super_type:
            referenced.add(decl.super_type)
        referenced.update(
            p.type_name for p in decl.properties if not p.is_primitive and not p.is_relationship
        )
    lines = [f"// Generated from namespace {namespace}", ""]
    for fqn in sorted(referenced):
        ns, _, name = fqn.rpartition(".")
        if ns != namespace:
            imported = name if manager.get_type(fqn).is_enum else _interface_name(fqn)
            lines.append(f"import {{ {imported} }} from './{ns}';")
    if len(lines) > 2:
        lines.append("")
    for decl in decls:
        lines.extend(_declaration(decl, manager))
        lines.append("")
    return "\n".join(lines)


def compile_typescript(manager: ModelManager, namespaces: list[str]) -> dict[str, str]:
    """``<namespace>.ts`` for each namespace, including the ones imported."""
    return {f"{ns}.ts": generate_typescript(manager, ns) for ns in sorted(namespaces)}
