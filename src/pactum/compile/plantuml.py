"""
PlantUML class diagram of a template model.
"""

from __future__ import annotations

from pactum.core.ir import DeclarationKind, DeclarationSpec
from pactum.core.model_manager import ModelManager

_STEREOTYPES = {
    DeclarationKind.ASSET: "<<asset>>",
    DeclarationKind.TRANSACTION: "<<transaction>>",
    DeclarationKind.EVENT: "<<event>>",
    DeclarationKind.PARTICIPANT: "<<participant>>",
}


def _class_lines(decl: DeclarationSpec) -> list[str]:
    if decl.is_enum:
        lines = [f"enum {decl.fqn} {{"]
        lines += [f"   + {value}" for value in decl.enum_values]
        return lines + ["}"]
    keyword = "abstract class" if decl.is_abstract else "class"
    stereotype = _STEREOTYPES.get(decl.kind)
    header = f"{keyword} {decl.fqn}" + (f" {stereotype}" if stereotype else "") + " {"
    lines = [header]
    for prop in decl.properties:
        arrow = "-->" if prop.is_relationship else "+"
        suffix = "[]" if prop.is_array else ""
        lines.append(f"   {arrow} {prop.type_name}{suffix} {prop.name}")
    return lines + ["}"]


def generate_plantuml(manager: ModelManager, namespaces: list[str]) -> str:
    """Diagram of the declarations in ``namespaces`` and their inheritance."""
    decls = sorted(
        (d for d in manager.declarations if d.namespace in namespaces), key=lambda d: d.fqn
    )
    lines = ["@startuml", "title", "Model", "endtitle"]
    for decl in decls:
        lines.extend(_class_lines(decl))
    for decl in decls:
        if decl.super_type:
            lines.append(f"{decl.fqn} --|> {decl.super_type}")
    lines.append("@enduml")
    return "\n".join(lines) + "\n"


def compile_plantuml(manager: ModelManager, namespaces: list[str]) -> dict[str, str]:
    return {"model.puml": generate_plantuml(manager, namespaces)}
