"""
Packages a template into a ``.cta`` archive for one logic target.

The archive holds the template's content files, its manifest rewritten with
the chosen target, the compiled logic for that target and, when a keystore
is given, ``signature.json``. Entries are sorted and carry a fixed
timestamp, so packaging the same template twice without signing yields the
same bytes.
"""

from __future__ import annotations

import dataclasses
import io
import logging
import zipfile
from pathlib import Path

from pactum.core.errors import TemplateError, UnknownTargetError
from pactum.core.manifest import MANIFEST_FILE, LogicTarget
from pactum.core.template import (
    COMPILED_LOGIC_FILE,
    GENERATED_PYTHON_FILE,
    SIGNATURE_FILE,
    Template,
    compute_content_hash,
)

from .signing import Keystore, load_keystore, sign_hash

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".cta"
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


def default_archive_name(template: Template) -> str:
    """``<name>@<version>.cta``"""
    return f"{template.identifier}{ARCHIVE_SUFFIX}"


def parse_target(target: str | LogicTarget) -> LogicTarget:
    """
    Raises:
        UnknownTargetError: Listing the available targets.
    """
    try:
        return LogicTarget(target)
    except ValueError:
        raise UnknownTargetError(str(target), LogicTarget.names()) from None


def archive_files(template: Template, target: LogicTarget) -> dict[str, bytes]:
    """The unsigned content of the archive for ``target``."""
    generated = {SIGNATURE_FILE, COMPILED_LOGIC_FILE, GENERATED_PYTHON_FILE, MANIFEST_FILE}
    files = {path: data for path, data in template.files.items() if path not in generated}

    manifest = template.manifest
    if template.has_logic():
        manifest = dataclasses.replace(
            manifest, logic=dataclasses.replace(manifest.logic, target=target)
        )
        if target == LogicTarget.BYTECODE:
            if template.logic is None:
                raise TemplateError(
                    f"Template {template.identifier} has native logic only; "
                    "it cannot be archived for target 'bytecode'"
                )
            files[COMPILED_LOGIC_FILE] = template.logic.model_dump_json(indent=2).encode("utf-8")
        elif not template.python_sources:
            from pactum.runtime.codegen import generate_python

            assert template.logic is not None
            files[GENERATED_PYTHON_FILE] = generate_python(template.logic).encode("utf-8")
    files[MANIFEST_FILE] = manifest.to_toml().encode("utf-8")
    return files


def write_zip(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(files):
            info = zipfile.ZipInfo(path, date_time=_ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zf.writestr(info, files[path])
    return buffer.getvalue()


def archive(
    template: Template,
    target: str | LogicTarget,
    output_path: Path | None = None,
    keystore: Keystore | None = None,
    timestamp: str | None = None,
) -> bytes:
    """
    Build the archive bytes; also written to ``output_path`` when given.

    Raises:
        UnknownTargetError: If ``target`` is not a logic target.
        TemplateError: If the template's logic cannot be built for ``target``.
        AuthorSignatureError: If the keystore cannot be used.
    """
    logic_target = parse_target(target)
    files = archive_files(template, logic_target)
    if keystore is not None:
        credentials = load_keystore(keystore)
        signature = sign_hash(compute_content_hash(files), credentials, timestamp)
        files[SIGNATURE_FILE] = signature.model_dump_json(by_alias=True, indent=2).encode("utf-8")

    data = write_zip(files)
    logger.info(
        "Archived %s for target %s (%d files%s)",
        template.identifier,
        logic_target,
        len(files),
        ", signed" if keystore is not None else "",
    )
    if output_path is not None:
        Path(output_path).write_bytes(data)
    return data
