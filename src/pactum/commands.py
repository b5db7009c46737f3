"""
File-level commands behind the CLI.

Each command reads its inputs from disk, calls the core and, where asked,
writes the result. Template, grammar, validation and execution failures are
logged and reported as ``None``; unknown targets, unresolvable clauses and
signature failures are raised to the caller.

Inputs left out default to the files shipped in the template directory:
``text/sample.md``, ``request.json``, ``params.json`` and ``state.json``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pactum import engine
from pactum.archive import Keystore
from pactum.archive import archive as build_archive
from pactum.archive import default_archive_name
from pactum.archive import verify_files
from pactum.compile import compile_model
from pactum.core.errors import (
    AuthorSignatureError,
    MethodResolutionError,
    PactumError,
    TemplateError,
    UnknownTargetError,
)
from pactum.core.template import Template, read_template_files
from pactum.grammar import DraftOptions
from pactum.grammar import draft as draft_data
from pactum.grammar import normalize as normalize_text
from pactum.grammar import parse as parse_text

logger = logging.getLogger(__name__)

_SURFACED = (UnknownTargetError, MethodResolutionError, AuthorSignatureError)


# =============================================================================
# Helpers
# =============================================================================


def load_template(path: Path | str) -> Template:
    return Template.load(path)


def read_json(path: Path | str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_output(path: Path | str, value: Any) -> None:
    """Write text, or anything else as indented JSON, ending with a newline."""
    text = value if isinstance(value, str) else json.dumps(value, indent=2)
    if not text.endswith("\n"):
        text += "\n"
    Path(path).write_text(text, encoding="utf-8")
    logger.info("Wrote %s", path)


def _sample_text(template: Template, sample_path: Path | None) -> str:
    if sample_path is not None:
        return Path(sample_path).read_text(encoding="utf-8")
    sample = template.sample
    if sample is None:
        raise TemplateError(f"Template {template.identifier} has no sample text")
    return sample


def _template_json(template: Template, path: Path | None, name: str) -> Any:
    if path is not None:
        return read_json(path)
    value = template.json_file(name)
    if value is None:
        raise TemplateError(f"No {name} given and none in template {template.identifier}")
    return value


def _clause_data(
    template: Template, sample_path: Path | None, data_path: Path | None
) -> dict[str, Any]:
    if data_path is not None:
        return read_json(data_path)
    return parse_text(template, _sample_text(template, sample_path), str(sample_path or "sample"))


def _state(template: Template, state_path: Path | None) -> Any:
    """Caller state; unreadable files fall back to the default state."""
    if state_path is None:
        return template.json_file("state.json")
    try:
        return read_json(state_path)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Cannot read state from %s: %s", state_path, e)
        return None


def _report(action: str, error: Exception) -> None:
    logger.error("%s failed: %s", action, error)


# =============================================================================
# Grammar
# =============================================================================


def parse(
    template_path: Path | str,
    sample_path: Path | None = None,
    output_path: Path | None = None,
) -> dict[str, Any] | None:
    """Parse sample text into data."""
    try:
        template = load_template(template_path)
        data = parse_text(template, _sample_text(template, sample_path), str(sample_path or "sample"))
    except (PactumError, OSError) as e:
        _report("Parse", e)
        return None
    if output_path is not None:
        write_output(output_path, data)
    return data


def draft(
    template_path: Path | str,
    data_path: Path | None = None,
    output_path: Path | None = None,
    options: DraftOptions | None = None,
) -> str | dict[str, Any] | None:
    """Draft text from data (``data.json`` in the template by default)."""
    try:
        template = load_template(template_path)
        data = _template_json(template, data_path, "data.json")
        text = draft_data(template, data, options)
    except (PactumError, OSError, json.JSONDecodeError) as e:
        _report("Draft", e)
        return None
    if output_path is not None:
        write_output(output_path, text)
    return text


def normalize(
    template_path: Path | str,
    sample_path: Path | None = None,
    overwrite: bool = False,
    output_path: Path | None = None,
    options: DraftOptions | None = None,
) -> str | dict[str, Any] | None:
    """Parse then redraft sample text; ``overwrite`` replaces the sample file."""
    try:
        template = load_template(template_path)
        text = normalize_text(template, _sample_text(template, sample_path), options)
    except (PactumError, OSError) as e:
        _report("Normalize", e)
        return None
    if overwrite and sample_path is not None:
        write_output(sample_path, text)
    if output_path is not None:
        write_output(output_path, text)
    return text


# =============================================================================
# Execution
# =============================================================================


def trigger(
    template_path: Path | str,
    sample_path: Path | None = None,
    request_paths: list[Path] | None = None,
    state_path: Path | None = None,
    current_time: str | datetime | None = None,
    data_path: Path | None = None,
) -> dict[str, Any] | None:
    """Send one or more requests (``request.json`` by default) to the contract."""
    try:
        template = load_template(template_path)
        data = _clause_data(template, sample_path, data_path)
        if request_paths:
            requests = [read_json(p) for p in request_paths]
        else:
            requests = [_template_json(template, None, "request.json")]
        return engine.trigger(template, data, requests, _state(template, state_path), current_time)
    except _SURFACED:
        raise
    except (PactumError, OSError, json.JSONDecodeError) as e:
        _report("Trigger", e)
        return None


def invoke(
    template_path: Path | str,
    clause_name: str,
    sample_path: Path | None = None,
    params_path: Path | None = None,
    state_path: Path | None = None,
    current_time: str | datetime | None = None,
    data_path: Path | None = None,
) -> dict[str, Any] | None:
    """Call a clause by name with params (``params.json`` by default)."""
    try:
        template = load_template(template_path)
        data = _clause_data(template, sample_path, data_path)
        params = _template_json(template, params_path, "params.json")
        return engine.invoke(
            template, data, clause_name, params, _state(template, state_path), current_time
        )
    except _SURFACED:
        raise
    except (PactumError, OSError, json.JSONDecodeError) as e:
        _report("Invoke", e)
        return None


def initialize(
    template_path: Path | str,
    sample_path: Path | None = None,
    params_path: Path | None = None,
    current_time: str | datetime | None = None,
    data_path: Path | None = None,
) -> dict[str, Any] | None:
    """Compute the first state of a contract."""
    try:
        template = load_template(template_path)
        data = _clause_data(template, sample_path, data_path)
        params = read_json(params_path) if params_path is not None else None
        return engine.initialize(template, data, params, current_time)
    except _SURFACED:
        raise
    except (PactumError, OSError, json.JSONDecodeError) as e:
        _report("Initialize", e)
        return None


# =============================================================================
# Archives and compilers
# =============================================================================


def archive(
    template_path: Path | str,
    target: str,
    output_path: Path | None = None,
    keystore: Keystore | None = None,
) -> bool:
    """
    Write ``<name>@<version>.cta`` (or ``output_path``).

    Raises:
        UnknownTargetError: If ``target`` is not a logic target.
    """
    template = load_template(template_path)
    destination = Path(output_path) if output_path else Path.cwd() / default_archive_name(template)
    build_archive(template, target, destination, keystore)
    logger.info("Archive written to %s", destination)
    return True


def verify(template_path: Path | str) -> bool:
    """
    Check the author signature on the raw files; the template is not loaded.

    Raises:
        AuthorSignatureError: If the signature is missing or invalid, including
        when signed content was altered so that it no longer loads.
    """
    verify_files(read_template_files(template_path), str(template_path))
    return True


def compile(template_path: Path | str, target: str, output_dir: Path | str) -> list[Path]:
    """Generate model code; an unknown target writes nothing."""
    return compile_model(load_template(template_path), target, Path(output_dir))
