import re
import tomllib
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from .errors import TemplateError

MANIFEST_FILE = "template.toml"

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+([.+-][0-9A-Za-z.+-]+)?$")


class LogicTarget(StrEnum):
    """Logic backends a template can be archived for."""

    BYTECODE = "bytecode"
    PYTHON = "python"

    @classmethod
    def names(cls) -> list[str]:
        return [t.value for t in cls]


class TemplateKind(StrEnum):
    CLAUSE = "clause"
    CONTRACT = "contract"


# =============================================================================
# Sections
# =============================================================================


@dataclass
class LogicConfig:
    """``[logic]`` section."""

    target: LogicTarget | None = None  # None: inferred from the logic sources
    engine_version: str | None = None


@dataclass
class GrammarConfig:
    """``[grammar]`` section."""

    file: str = "text/grammar.md"
    sample: str = "text/sample.md"


@dataclass
class TemplateManifest:
    """Parsed ``template.toml``."""

    name: str
    version: str
    description: str = ""
    display_name: str | None = None
    author: str | None = None
    kind: TemplateKind = TemplateKind.CLAUSE
    keywords: list[str] = field(default_factory=list)
    logic: LogicConfig = field(default_factory=LogicConfig)
    grammar: GrammarConfig = field(default_factory=GrammarConfig)

    @property
    def identifier(self) -> str:
        return f"{self.name}@{self.version}"

    def to_toml(self) -> str:
        """Serialize back to TOML (used when archiving for another target)."""
        lines = [
            "[template]",
            f"name = {_quote(self.name)}",
            f"version = {_quote(self.version)}",
        ]
        if self.description:
            lines.append(f"description = {_quote(self.description)}")
        if self.display_name:
            lines.append(f"display_name = {_quote(self.display_name)}")
        if self.author:
            lines.append(f"author = {_quote(self.author)}")
        lines.append(f"type = {_quote(self.kind.value)}")
        if self.keywords:
            lines.append("keywords = [" + ", ".join(_quote(k) for k in self.keywords) + "]")
        lines.append("")
        lines.append("[logic]")
        if self.logic.target is not None:
            lines.append(f"target = {_quote(self.logic.target.value)}")
        if self.logic.engine_version:
            lines.append(f"engine_version = {_quote(self.logic.engine_version)}")
        lines.append("")
        lines.append("[grammar]")
        lines.append(f"file = {_quote(self.grammar.file)}")
        lines.append(f"sample = {_quote(self.grammar.sample)}")
        return "\n".join(lines) + "\n"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def parse_manifest(text: str, source: str = MANIFEST_FILE) -> TemplateManifest:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise TemplateError(f"{source}: invalid TOML ({e})") from e

    template = data.get("template")
    if not isinstance(template, dict):
        raise TemplateError(f"{source}: missing [template] section")

    name = template.get("name")
    version = template.get("version")
    if not name or not isinstance(name, str) or not _NAME_RE.match(name):
        raise TemplateError(f"{source}: invalid or missing template name {name!r}")
    if not version or not isinstance(version, str) or not _VERSION_RE.match(version):
        raise TemplateError(f"{source}: invalid or missing template version {version!r}")

    logic_data = data.get("logic", {})
    grammar_data = data.get("grammar", {})

    target = logic_data.get("target")
    if target is not None and target not in LogicTarget.names():
        raise TemplateError(
            f"{source}: unknown logic target {target!r} "
            f"(available: {','.join(LogicTarget.names())})"
        )
    kind = template.get("type", TemplateKind.CLAUSE.value)
    if kind not in (TemplateKind.CLAUSE.value, TemplateKind.CONTRACT.value):
        raise TemplateError(f"{source}: template type must be 'clause' or 'contract'")

    return TemplateManifest(
        name=name,
        version=version,
        description=template.get("description", ""),
        display_name=template.get("display_name"),
        author=template.get("author"),
        kind=TemplateKind(kind),
        keywords=list(template.get("keywords", [])),
        logic=LogicConfig(
            target=LogicTarget(target) if target else None,
            engine_version=logic_data.get("engine_version"),
        ),
        grammar=GrammarConfig(
            file=grammar_data.get("file", "text/grammar.md"),
            sample=grammar_data.get("sample", "text/sample.md"),
        ),
    )


def load_manifest(path: Path) -> TemplateManifest:
    return parse_manifest(path.read_text(encoding="utf-8"), str(path))
