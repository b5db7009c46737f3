"""Tests for the execution orchestrator on both logic backends.

Covers:
- The late delivery numeric results with and without a clock
- Folding requests over state, emitted events, thrown errors
- Default state substitution for missing or unreadable state
- invoke and initialize
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import pytest

from pactum.core.clause import ClauseInstance
from pactum.core.errors import (
    ExecutionError,
    MethodResolutionError,
    SchemaValidationError,
)
from pactum.core.manifest import LogicTarget
from pactum.core.template import Template
from pactum.engine import default_state, initialize, invoke, resolve_clock, trigger

CLOCK = "2017-12-19T17:38:01Z"
STATE = {"$class": "org.accordproject.runtime.State"}


def _increment(by: int) -> dict:
    return {"$class": "org.example.counter.Increment", "by": by}


# =============================================================================
# Late delivery and penalty
# =============================================================================


class TestLateDelivery:
    def test_backends(self, template: Template, native_template: Template) -> None:
        assert template.target == LogicTarget.BYTECODE
        assert native_template.target == LogicTarget.PYTHON

    def test_penalty_with_clock(self, any_template: Template, data: dict, request_json: dict) -> None:
        result = trigger(any_template, data, request_json, STATE, CLOCK)
        response = result["response"]
        assert response["$class"] == (
            "org.accordproject.latedeliveryandpenalty.LateDeliveryAndPenaltyResponse"
        )
        assert response["penalty"] == pytest.approx(3.1111111111111107)
        assert response["buyerMayTerminate"] is False

    def test_penalty_is_capped_without_clock(
        self, any_template: Template, data: dict, request_json: dict
    ) -> None:
        response = trigger(any_template, data, request_json, STATE)["response"]
        assert response["penalty"] == 4.0
        assert response["buyerMayTerminate"] is True

    def test_force_majeure(self, any_template: Template, data: dict, request_json: dict) -> None:
        request_json["forceMajeure"] = True
        response = trigger(any_template, data, request_json, STATE, CLOCK)["response"]
        assert response["penalty"] == 0.0
        assert response["buyerMayTerminate"] is True

    def test_too_early(self, any_template: Template, data: dict, request_json: dict) -> None:
        with pytest.raises(ExecutionError, match="Cannot exercise late delivery before delivery date"):
            trigger(any_template, data, request_json, STATE, "2017-12-01T00:00:00Z")

    def test_result_carries_clause_id_and_request(
        self, any_template: Template, data: dict, request_json: dict
    ) -> None:
        result = trigger(any_template, data, request_json, STATE, CLOCK)
        assert result["clause_id"] == data["clauseId"]
        assert result["request"]["goodsValue"] == 200.0
        assert result["state"] == STATE
        assert result["emit"] == []

    def test_clause_instance_as_data(self, template: Template, data: dict, request_json: dict) -> None:
        instance = ClauseInstance.from_data(template, data)
        response = trigger(template, instance, request_json, STATE, CLOCK)["response"]
        assert response["penalty"] == pytest.approx(3.1111111111111107)

    def test_invalid_request(self, any_template: Template, data: dict, template_dir) -> None:
        import json

        bad = json.loads((template_dir / "request_err.json").read_text(encoding="utf-8"))
        with pytest.raises(SchemaValidationError, match="goodsValue"):
            trigger(any_template, data, bad, STATE, CLOCK)

    def test_invalid_data(self, any_template: Template, data: dict, request_json: dict) -> None:
        data["penaltyPercentage"] = "seven"
        with pytest.raises(SchemaValidationError):
            trigger(any_template, data, request_json, STATE, CLOCK)

    def test_request_with_no_clause(self, any_template: Template, data: dict) -> None:
        with pytest.raises(MethodResolutionError, match="No clause accepts"):
            trigger(any_template, data, {"$class": "org.accordproject.runtime.Request"}, STATE, CLOCK)

    def test_empty_request_list(self, any_template: Template, data: dict) -> None:
        result = trigger(any_template, data, [], STATE, CLOCK)
        assert result["response"] is None
        assert result["state"] == STATE

    def test_inputs_are_not_modified(self, any_template: Template, data: dict, request_json: dict) -> None:
        before = dict(request_json)
        trigger(any_template, data, request_json, STATE, CLOCK)
        assert request_json == before

    def test_invoke_by_name(self, any_template: Template, data: dict, request_json: dict) -> None:
        result = invoke(any_template, data, "latedeliveryandpenalty", {"request": request_json}, STATE, CLOCK)
        assert result["response"]["penalty"] == pytest.approx(3.1111111111111107)

    def test_invoke_unknown_clause(self, any_template: Template, data: dict) -> None:
        with pytest.raises(MethodResolutionError, match="Unknown clause 'nope'"):
            invoke(any_template, data, "nope", {}, STATE, CLOCK)

    def test_invoke_missing_param(self, any_template: Template, data: dict, request_json: dict) -> None:
        with pytest.raises(SchemaValidationError, match="Missing parameter 'request'"):
            invoke(any_template, data, "latedeliveryandpenalty", {"order": request_json}, STATE, CLOCK)


# =============================================================================
# State threading
# =============================================================================


class TestState:
    def test_initialize_runs_init(self, counter_template: Template, counter_data: dict) -> None:
        result = initialize(counter_template, counter_data)
        assert result["state"] == {"$class": "org.example.counter.CounterState", "count": 0}
        assert result["response"]["count"] == 0

    def test_initialize_without_init_clause(self, template: Template, data: dict) -> None:
        result = initialize(template, data, current_time=CLOCK)
        assert result["state"] == STATE
        assert result["response"] is None

    def test_initialize_validates_params(self, counter_template: Template, counter_data: dict) -> None:
        result = initialize(counter_template, counter_data, {"note": "x", "first": _increment(1)})
        assert result["params"]["note"] == "x"
        assert result["params"]["first"]["by"] == 1

    def test_trigger_updates_state(self, counter_template: Template, counter_data: dict) -> None:
        start = {"$class": "org.example.counter.CounterState", "count": 1}
        result = trigger(counter_template, counter_data, _increment(1), start)
        assert result["state"]["count"] == 2
        assert result["response"]["count"] == 2
        assert result["emit"] == []

    def test_fold_matches_sequential_calls(self, counter_template: Template, counter_data: dict) -> None:
        folded = trigger(counter_template, counter_data, [_increment(1), _increment(1)])
        first = trigger(counter_template, counter_data, _increment(1))
        second = trigger(counter_template, counter_data, _increment(1), first["state"])
        assert folded["state"] == second["state"]
        assert folded["response"] == second["response"]

    def test_emit(self, counter_template: Template, counter_data: dict) -> None:
        result = trigger(counter_template, counter_data, [_increment(1), _increment(2)])
        assert result["emit"] == [{"$class": "org.example.counter.LimitReached", "count": 3}]

    def test_throw(self, counter_template: Template, counter_data: dict) -> None:
        with pytest.raises(ExecutionError, match="Limit exceeded"):
            trigger(counter_template, counter_data, _increment(5))

    def test_missing_state_uses_default(
        self, counter_template: Template, counter_data: dict, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="pactum.engine"):
            result = trigger(counter_template, counter_data, _increment(1), None)
        assert result["state"]["count"] == 1
        assert "using the default state" in caplog.text

    def test_unreadable_state_uses_default(
        self, counter_template: Template, counter_data: dict, caplog: pytest.LogCaptureFixture
    ) -> None:
        bad = {"$class": "org.example.counter.CounterState", "count": "many"}
        with caplog.at_level(logging.WARNING, logger="pactum.engine"):
            result = trigger(counter_template, counter_data, _increment(1), bad)
        assert result["state"]["count"] == 1
        assert "Unreadable state" in caplog.text

    def test_default_state(self, counter_template: Template, counter_data: dict) -> None:
        assert default_state(counter_template, counter_data)["count"] == 0

    def test_invoke_list_is_folded(self, counter_template: Template, counter_data: dict) -> None:
        params = [{"request": _increment(1)}, {"request": _increment(1)}]
        result = invoke(counter_template, counter_data, "increment", params)
        assert result["state"]["count"] == 2
        assert result["params"] == params


class TestOperatorErrors:
    @pytest.mark.parametrize("target", ["bytecode", "python"])
    def test_bad_operand_is_an_execution_error(
        self, template_dir: Path, tmp_path: Path, data: dict, request_json: dict, target: str
    ) -> None:
        root = shutil.copytree(template_dir, tmp_path / "broken")
        logic = root / "logic" / "logic.logic"
        logic.write_text(
            logic.read_text(encoding="utf-8").replace(
                "    // Too early", "    let boom = contract.penaltyDuration * 2;\n    // Too early", 1
            ),
            encoding="utf-8",
        )
        manifest = root / "template.toml"
        manifest.write_text(
            manifest.read_text(encoding="utf-8").replace('"bytecode"', f'"{target}"'),
            encoding="utf-8",
        )
        broken = Template.from_directory(root)

        with pytest.raises(ExecutionError, match=r"Cannot apply '\*'"):
            trigger(broken, data, request_json, STATE, CLOCK)


class TestClock:
    def test_string_clock(self) -> None:
        assert resolve_clock(CLOCK).isoformat() == "2017-12-19T17:38:01+00:00"

    def test_invalid_clock(self) -> None:
        with pytest.raises(ExecutionError, match="Invalid current time"):
            resolve_clock("yesterday")
