"""
Template loading.

A template is a directory (or a ``.cta`` archive of one):

    template.toml           name, version, logic target
    model/*.model           data model
    text/grammar.md         grammar
    text/sample.md          sample text
    logic/*.logic           clause logic (bytecode target)
    logic/*.py              native clause logic (python target)
    logic/compiled.json     compiled clause logic, written when archiving
    signature.json          author signature, written when archiving

``Template`` keeps every content file as bytes; its content hash is
computed over those files so that a directory and the archive made from it
hash identically.
"""

from __future__ import annotations

import hashlib
import io
import json
import logging
import zipfile
from collections.abc import Mapping
from functools import cached_property
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from pactum.stdlib import CLAUSE, CONTRACT

from . import ir
from .errors import AuthorSignatureError, TemplateError
from .logic_loader import resolve_logic
from .logic_parser import parse_logic
from .manifest import MANIFEST_FILE, LogicTarget, TemplateManifest, parse_manifest
from .model_manager import ModelManager

if TYPE_CHECKING:
    from pactum.grammar.matcher import CompiledGrammar
    from pactum.runtime.executor import Executor

logger = logging.getLogger(__name__)

SIGNATURE_FILE = "signature.json"
COMPILED_LOGIC_FILE = "logic/compiled.json"
GENERATED_PYTHON_FILE = "logic/compiled.py"

_SKIP_DIRS = {"__pycache__", "node_modules"}
_SKIP_SUFFIXES = {".cta", ".pyc"}


def compute_content_hash(files: Mapping[str, bytes]) -> str:
    """
    SHA-256 over the canonical JSON of ``{path: sha256(content)}``.

    ``signature.json`` is excluded so that signing does not change the hash.
    """
    digests = {
        path: hashlib.sha256(content).hexdigest()
        for path, content in files.items()
        if path != SIGNATURE_FILE
    }
    canonical = json.dumps(digests, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def read_template_directory(path: Path) -> dict[str, bytes]:
    """Collect the content files of a template directory."""
    if not path.is_dir():
        raise TemplateError(f"Template directory not found: {path}")
    files: dict[str, bytes] = {}
    for file_path in sorted(path.rglob("*")):
        rel = file_path.relative_to(path)
        if any(part.startswith(".") or part in _SKIP_DIRS for part in rel.parts):
            continue
        if not file_path.is_file() or file_path.suffix in _SKIP_SUFFIXES:
            continue
        files[rel.as_posix()] = file_path.read_bytes()
    return files


def read_archive(data: bytes) -> dict[str, bytes]:
    """Collect the content files of a ``.cta`` archive."""
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise TemplateError(f"Not a template archive: {e}") from e
    files: dict[str, bytes] = {}
    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            name = PurePosixPath(info.filename)
            if name.is_absolute() or ".." in name.parts:
                raise TemplateError(f"Unsafe path in archive: {info.filename}")
            files[name.as_posix()] = archive.read(info)
    return files


def read_template_files(path: Path | str) -> dict[str, bytes]:
    """Raw content of a template directory or ``.cta`` file, without loading it."""
    path = Path(path)
    if path.is_file():
        return read_archive(path.read_bytes())
    return read_template_directory(path)


def read_author_signature(files: Mapping[str, bytes]) -> ir.AuthorSignature:
    """
    The parsed signature block.

    Raises:
        AuthorSignatureError: If the template is unsigned or the block is malformed.
    """
    if SIGNATURE_FILE not in files:
        raise AuthorSignatureError("Template has no author signature")
    try:
        return ir.AuthorSignature.model_validate_json(files[SIGNATURE_FILE])
    except PydanticValidationError as e:
        logger.debug("Malformed signature block: %s", e)
        raise AuthorSignatureError("Template's author signature is invalid!") from e


class Template:
    """
    An immutable, loaded template.

    Use ``Template.from_directory`` or ``Template.from_archive``.
    """

    def __init__(self, files: dict[str, bytes], source: str = "<memory>"):
        self.source = source
        self.files: MappingProxyType[str, bytes] = MappingProxyType(dict(files))

        if MANIFEST_FILE not in self.files:
            raise TemplateError(f"{source}: missing {MANIFEST_FILE}")
        self.manifest: TemplateManifest = parse_manifest(
            self._text(MANIFEST_FILE), f"{source}/{MANIFEST_FILE}"
        )

        self.model_manager = ModelManager()
        model_paths = sorted(p for p in self.files if p.startswith("model/") and p.endswith(".model"))
        if not model_paths:
            raise TemplateError(f"{source}: no model files under model/")
        for model_path in model_paths:
            self.model_manager.add_model(self._text(model_path), model_path)
        self.model_manager.resolve()
        self.root_type = self._find_root_type()

        grammar_path = self.manifest.grammar.file
        if grammar_path not in self.files:
            raise TemplateError(f"{source}: missing grammar {grammar_path}")
        self.grammar_source = self._text(grammar_path)

        self.logic_sources = {
            p: self._text(p) for p in sorted(self.files) if p.startswith("logic/") and p.endswith(".logic")
        }
        self.python_sources = {
            p: self._text(p)
            for p in sorted(self.files)
            if p.startswith("logic/") and p.endswith(".py") and p != GENERATED_PYTHON_FILE
        }
        self.generated_python = (
            self._text(GENERATED_PYTHON_FILE) if GENERATED_PYTHON_FILE in self.files else None
        )
        self.logic = self._load_logic()
        self.target = self._infer_target()
        logger.debug("Loaded template %s from %s (target=%s)", self.identifier, source, self.target)

    # =========================================================================
    # Constructors
    # =========================================================================

    @classmethod
    def from_directory(cls, path: Path | str) -> Template:
        path = Path(path)
        return cls(read_template_directory(path), str(path))

    @classmethod
    def from_archive(cls, data: bytes, source: str = "<archive>") -> Template:
        return cls(read_archive(data), source)

    @classmethod
    def load(cls, path: Path | str) -> Template:
        """Load from a directory or a ``.cta`` file."""
        return cls(read_template_files(path), str(path))

    # =========================================================================
    # Loading helpers
    # =========================================================================

    def _text(self, path: str) -> str:
        try:
            return self.files[path].decode("utf-8")
        except UnicodeDecodeError as e:
            raise TemplateError(f"{self.source}: {path} is not UTF-8 text") from e

    def _find_root_type(self) -> str:
        user_namespaces = {f.namespace for f in self.model_manager.user_files}
        candidates = [
            d
            for d in self.model_manager.declarations
            if d.namespace in user_namespaces and d.has_decorator("template")
        ]
        if not candidates:
            candidates = [
                d
                for d in self.model_manager.declarations
                if d.namespace in user_namespaces
                and not d.is_abstract
                and not d.is_enum
                and (
                    self.model_manager.is_assignable(d.fqn, CLAUSE)
                    or self.model_manager.is_assignable(d.fqn, CONTRACT)
                )
            ]
        if len(candidates) != 1:
            names = ", ".join(sorted(d.fqn for d in candidates)) or "none"
            raise TemplateError(
                f"{self.source}: expected exactly one template type "
                f"(decorated @template or extending Clause/Contract), found {names}"
            )
        return candidates[0].fqn

    def _load_logic(self) -> ir.LogicModule | None:
        if COMPILED_LOGIC_FILE in self.files and not self.logic_sources:
            try:
                module = ir.LogicModule.model_validate_json(self.files[COMPILED_LOGIC_FILE])
            except PydanticValidationError as e:
                raise TemplateError(f"{self.source}: corrupt {COMPILED_LOGIC_FILE}: {e}") from e
            return resolve_logic(module, self.model_manager)
        if not self.logic_sources:
            return None
        if len(self.logic_sources) > 1:
            raise TemplateError(
                f"{self.source}: only one .logic file is supported, found "
                + ", ".join(self.logic_sources)
            )
        path, source = next(iter(self.logic_sources.items()))
        return resolve_logic(parse_logic(source, path), self.model_manager)

    def _infer_target(self) -> LogicTarget | None:
        declared = self.manifest.logic.target
        if declared == LogicTarget.BYTECODE and self.logic is None:
            raise TemplateError(f"{self.source}: target 'bytecode' needs a .logic file")
        if declared == LogicTarget.PYTHON and not (
            self.python_sources or self.generated_python or self.logic
        ):
            raise TemplateError(f"{self.source}: target 'python' needs logic/*.py or a .logic file")
        if declared is not None:
            return declared
        if self.logic is not None:
            return LogicTarget.BYTECODE
        if self.python_sources:
            return LogicTarget.PYTHON
        return None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def version(self) -> str:
        return self.manifest.version

    @property
    def identifier(self) -> str:
        """``name@version``"""
        return self.manifest.identifier

    def has_logic(self) -> bool:
        return self.target is not None

    def hash(self) -> str:
        """Content hash of the template (see ``compute_content_hash``)."""
        return compute_content_hash(dict(self.files))

    @property
    def sample(self) -> str | None:
        path = self.manifest.grammar.sample
        return self._text(path) if path in self.files else None

    def json_file(self, path: str) -> Any | None:
        """A JSON file shipped with the template (``request.json``, ...), if any."""
        if path not in self.files:
            return None
        try:
            return json.loads(self.files[path])
        except json.JSONDecodeError as e:
            raise TemplateError(f"{self.source}: {path} is not valid JSON") from e

    def is_signed(self) -> bool:
        return SIGNATURE_FILE in self.files

    @property
    def author_signature(self) -> ir.AuthorSignature:
        return read_author_signature(self.files)

    @cached_property
    def grammar(self) -> CompiledGrammar:
        """The grammar bound to the model (compiled on first use)."""
        from pactum.grammar.matcher import compile_grammar
        from pactum.grammar.template_parser import parse_grammar

        spec = parse_grammar(self.grammar_source, self.root_type, self.manifest.grammar.file)
        return compile_grammar(spec, self.model_manager, self.manifest.grammar.file)

    @cached_property
    def executor(self) -> Executor:
        """The logic executor for the declared target (created on first use)."""
        from pactum.runtime.executor import create_executor

        if self.target is None:
            raise TemplateError(f"Template {self.identifier} has no logic")
        return create_executor(self)

    def __repr__(self) -> str:
        return f"Template({self.identifier!r}, target={self.target})"


__all__ = [
    "COMPILED_LOGIC_FILE",
    "GENERATED_PYTHON_FILE",
    "SIGNATURE_FILE",
    "Template",
    "compute_content_hash",
    "read_archive",
    "read_author_signature",
    "read_template_directory",
    "read_template_files",
]
