"""Tests for the model language: parsing, resolution, validation."""

from __future__ import annotations

from datetime import datetime

import pytest

from pactum.core.errors import ModelParseError, SchemaValidationError
from pactum.core.ir import DeclarationKind
from pactum.core.model_manager import ModelManager, format_datetime, parse_datetime
from pactum.core.model_parser import parse_model

SHIPPING = """
namespace org.example.shipping

import org.accordproject.time.*
import org.accordproject.contract.Clause
import org.accordproject.runtime.Request

enum Carrier {
  o ROAD
  o RAIL
}

concept Address {
  o String city
  o String postcode regex=/^[0-9]{5}$/
}

@template
asset ShippingClause extends Clause {
  o Carrier carrier default="ROAD"
  o Address origin
  o Integer maxPallets range=[1, 40]
  o Duration window
  o String[] notes optional
}

transaction Shipment extends Request {
  o DateTime shippedAt
  o Double weight
}
"""


@pytest.fixture
def manager() -> ModelManager:
    mm = ModelManager()
    mm.add_model(SHIPPING, "model/shipping.model")
    mm.resolve()
    return mm


def _clause(**overrides) -> dict:
    instance = {
        "$class": "org.example.shipping.ShippingClause",
        "clauseId": "c-1",
        "carrier": "RAIL",
        "origin": {"city": "Lyon", "postcode": "69001"},
        "maxPallets": 12,
        "window": {"$class": "org.accordproject.time.Duration", "amount": 3, "unit": "days"},
    }
    instance.update(overrides)
    return instance


# =============================================================================
# Parsing
# =============================================================================


class TestModelParser:
    def test_declarations_and_kinds(self) -> None:
        model = parse_model(SHIPPING, "shipping.model")
        kinds = {d.name: d.kind for d in model.declarations}
        assert model.namespace == "org.example.shipping"
        assert kinds["Carrier"] == DeclarationKind.ENUM
        assert kinds["ShippingClause"] == DeclarationKind.ASSET
        assert kinds["Shipment"] == DeclarationKind.TRANSACTION

    def test_property_options(self) -> None:
        model = parse_model(SHIPPING, "shipping.model")
        clause = model.get_declaration("ShippingClause")
        props = {p.name: p for p in clause.properties}
        assert props["carrier"].default == "ROAD"
        assert props["maxPallets"].range.upper == 40
        assert props["notes"].is_array and props["notes"].optional
        assert clause.has_decorator("template")

    def test_duplicate_property_is_an_error(self) -> None:
        source = "namespace a.b\nconcept X {\n  o String name\n  o String name\n}\n"
        with pytest.raises(ModelParseError, match="Duplicate property"):
            parse_model(source, "dup.model")

    def test_syntax_error_reports_location(self) -> None:
        with pytest.raises(ModelParseError) as exc:
            parse_model("namespace a.b\nconcept {\n}\n", "bad.model")
        assert exc.value.context is not None
        assert exc.value.context.line == 2


# =============================================================================
# Resolution
# =============================================================================


class TestResolution:
    def test_imported_types_are_fully_qualified(self, manager: ModelManager) -> None:
        decl = manager.get_type("org.example.shipping.ShippingClause")
        window = next(p for p in decl.properties if p.name == "window")
        assert window.type_name == "org.accordproject.time.Duration"
        assert decl.super_type == "org.accordproject.contract.Clause"

    def test_assignability_follows_inheritance(self, manager: ModelManager) -> None:
        assert manager.is_assignable("org.example.shipping.Shipment", "org.accordproject.runtime.Request")
        assert not manager.is_assignable("org.example.shipping.Address", "org.accordproject.runtime.Request")

    def test_inherited_properties(self, manager: ModelManager) -> None:
        names = [p.name for p in manager.all_properties("org.example.shipping.ShippingClause")]
        assert names[0] == "clauseId"
        assert "window" in names

    def test_undeclared_type(self) -> None:
        mm = ModelManager()
        mm.add_model("namespace a.b\nconcept X {\n  o Missing thing\n}\n", "x.model")
        with pytest.raises(ModelParseError, match="undeclared type 'Missing'"):
            mm.resolve()


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    def test_valid_instance_is_normalized(self, manager: ModelManager) -> None:
        result = manager.validate(_clause())
        assert result["origin"]["$class"] == "org.example.shipping.Address"

    def test_integral_doubles_become_floats(self, manager: ModelManager) -> None:
        shipment = {
            "$class": "org.example.shipping.Shipment",
            "shippedAt": "2024-03-01T10:00:00Z",
            "weight": 12,
        }
        assert manager.validate(shipment)["weight"] == 12.0
        assert isinstance(manager.validate(shipment)["weight"], float)

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"carrier": "AIR"}, "not a value of enum"),
            ({"maxPallets": 41}, "outside the range"),
            ({"maxPallets": 2.5}, "decimal number"),
            ({"origin": {"city": "Lyon", "postcode": "A1"}}, "does not match pattern"),
            ({"colour": "red"}, "unknown property 'colour'"),
        ],
    )
    def test_invalid_instances(self, manager: ModelManager, overrides: dict, message: str) -> None:
        with pytest.raises(SchemaValidationError, match=message):
            manager.validate(_clause(**overrides))

    def test_missing_required_property(self, manager: ModelManager) -> None:
        instance = _clause()
        del instance["origin"]
        with pytest.raises(SchemaValidationError, match="origin: missing required property"):
            manager.validate(instance)

    def test_expected_type_must_be_assignable(self, manager: ModelManager) -> None:
        with pytest.raises(SchemaValidationError, match="not assignable"):
            manager.validate(_clause(), "org.accordproject.runtime.Request")

    def test_from_json_converts_datetimes(self, manager: ModelManager) -> None:
        shipment = {
            "$class": "org.example.shipping.Shipment",
            "shippedAt": "2024-03-01T10:00:00Z",
            "weight": 1.5,
        }
        runtime = manager.from_json(shipment)
        assert isinstance(runtime["shippedAt"], datetime)

    def test_instantiate_applies_defaults(self, manager: ModelManager) -> None:
        instance = manager.instantiate("org.example.shipping.ShippingClause")
        assert instance["carrier"] == "ROAD"
        assert instance["maxPallets"] == 0
        assert "notes" not in instance


class TestDateTimes:
    def test_utc_is_written_with_z_and_milliseconds(self) -> None:
        assert format_datetime(parse_datetime("2017-12-19T17:38:01Z")) == "2017-12-19T17:38:01.000Z"

    def test_offset_is_kept(self) -> None:
        value = parse_datetime("2017-12-17T03:24:00-05:00")
        assert format_datetime(value) == "2017-12-17T03:24:00.000-05:00"
