"""Tests for model compilers."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from pactum.compile import COMPILERS, compile_model
from pactum.compile.jsonschema import generate_json_schema
from pactum.compile.plantuml import generate_plantuml
from pactum.compile.typescript import generate_typescript
from pactum.core.template import Template

NS = "org.accordproject.latedeliveryandpenalty"


class TestJsonSchema:
    def test_root_refers_to_template_model(self, template: Template) -> None:
        schema = generate_json_schema(template.model_manager, template.root_type)
        assert schema["$ref"] == f"#/definitions/{NS}.TemplateModel"

    def test_definition_includes_inherited_properties(self, template: Template) -> None:
        schema = generate_json_schema(template.model_manager, template.root_type)
        model = schema["definitions"][f"{NS}.TemplateModel"]
        assert "clauseId" in model["required"]
        assert model["properties"]["penaltyPercentage"] == {"type": "number"}
        assert model["properties"]["penaltyDuration"] == {
            "$ref": "#/definitions/org.accordproject.time.Duration"
        }

    def test_enum_definition(self, template: Template) -> None:
        schema = generate_json_schema(template.model_manager, template.root_type)
        unit = schema["definitions"]["org.accordproject.time.TemporalUnit"]
        assert "days" in unit["enum"]


class TestPlantUml:
    def test_diagram(self, template: Template) -> None:
        text = generate_plantuml(template.model_manager, [NS])
        assert text.startswith("@startuml")
        assert f"class {NS}.LateDeliveryAndPenaltyRequest <<transaction>> {{" in text
        assert f"{NS}.TemplateModel --|> org.accordproject.contract.Clause" in text


class TestTypescript:
    def test_interfaces_and_imports(self, template: Template) -> None:
        text = generate_typescript(template.model_manager, NS)
        assert "import { IDuration } from './org.accordproject.time';" in text
        assert "export interface ITemplateModel extends IClause {" in text
        assert "   penaltyPercentage: number;" in text
        assert "   deliveredAt?: Date;" in text


class TestCompileModel:
    @pytest.mark.parametrize(
        "target, expected",
        [
            ("JSONSchema", "schema.json"),
            ("PlantUML", "model.puml"),
            ("Typescript", f"{NS}.ts"),
        ],
    )
    def test_targets_write_files(
        self, template: Template, tmp_path: Path, target: str, expected: str
    ) -> None:
        written = compile_model(template, target, tmp_path / "out")
        assert tmp_path / "out" / expected in written
        assert all(path.exists() for path in written)

    def test_schema_file_is_json(self, template: Template, tmp_path: Path) -> None:
        (path,) = compile_model(template, "JSONSchema", tmp_path)
        assert json.loads(path.read_text(encoding="utf-8"))["$schema"].startswith("http://json-schema.org")

    @pytest.mark.parametrize("target", ["Go", "Java", "Corda", "BLAH"])
    def test_unknown_target_writes_nothing(
        self, template: Template, tmp_path: Path, target: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="pactum.compile"):
            assert compile_model(template, target, tmp_path / "out") == []
        assert not (tmp_path / "out").exists()
        assert f"Unrecognized compile target: {target}" in caplog.text

    def test_available_targets(self) -> None:
        assert sorted(COMPILERS) == ["JSONSchema", "PlantUML", "Typescript"]
