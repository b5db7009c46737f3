"""
Model compilers: code generated from a template's data model.

Targets are ``JSONSchema``, ``PlantUML`` and ``Typescript``. An unknown
target is not an error; it logs a warning and produces nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from pactum.core.template import Template

from .jsonschema import compile_json_schema
from .plantuml import compile_plantuml
from .typescript import compile_typescript

logger = logging.getLogger(__name__)


def _json_schema(template: Template) -> dict[str, str]:
    return compile_json_schema(template.model_manager, template.root_type)


def _plantuml(template: Template) -> dict[str, str]:
    namespaces = [f.namespace for f in template.model_manager.user_files]
    return compile_plantuml(template.model_manager, namespaces)


def _typescript(template: Template) -> dict[str, str]:
    return compile_typescript(template.model_manager, list(template.model_manager.files))


COMPILERS: dict[str, Callable[[Template], dict[str, str]]] = {
    "JSONSchema": _json_schema,
    "PlantUML": _plantuml,
    "Typescript": _typescript,
}


def compile_model(template: Template, target: str, output_dir: Path) -> list[Path]:
    """
    Generate code for ``target`` into ``output_dir``.

    Returns:
        The files written; empty for an unknown target.
    """
    compiler = COMPILERS.get(target)
    if compiler is None:
        logger.warning(
            "Unrecognized compile target: %s (available: %s)", target, ", ".join(COMPILERS)
        )
        return []
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, content in compiler(template).items():
        path = output_dir / name
        path.write_text(content, encoding="utf-8")
        written.append(path)
    logger.info("Compiled %s model to %s (%d files)", target, output_dir, len(written))
    return written


__all__ = ["COMPILERS", "compile_model"]
