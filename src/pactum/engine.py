"""
Execution orchestrator: initialize, trigger and invoke.

Every entry point takes JSON-form inputs and returns JSON-form outputs. The
inputs are copied and validated against the template model, converted to
runtime form, threaded through the template's executor and validated again
on the way out. Nothing is returned or kept from a call that fails part way,
so callers never see a partially applied state.

Usage:
    template = Template.from_directory("latedeliveryandpenalty")
    result = trigger(template, data, request, current_time="2017-12-19T17:38:01Z")
    result["response"]["penalty"]
"""

from __future__ import annotations

import copy
import logging
from datetime import UTC, datetime
from typing import Any

from pactum.core.clause import ClauseInstance
from pactum.core.errors import (
    ExecutionError,
    MethodResolutionError,
    MissingStateError,
    SchemaValidationError,
    TemplateError,
)
from pactum.core.model_manager import CLASS_KEY, parse_datetime, to_json
from pactum.core.template import Template
from pactum.runtime.executor import ClauseSignature, ExecutionResult, Executor
from pactum.stdlib import REQUEST, STATE

logger = logging.getLogger(__name__)

ClauseData = dict[str, Any] | ClauseInstance


# =============================================================================
# Inputs
# =============================================================================


def resolve_clock(current_time: str | datetime | None) -> datetime:
    """
    The clock for one call: an ISO 8601 string, a datetime, or the wall clock.

    Naive values are taken as UTC.
    """
    if current_time is None:
        return datetime.now(UTC)
    if isinstance(current_time, datetime):
        return current_time if current_time.tzinfo else current_time.replace(tzinfo=UTC)
    try:
        return parse_datetime(current_time)
    except ValueError as e:
        raise ExecutionError(f"Invalid current time {current_time!r}: {e}") from e


def _executor(template: Template) -> Executor:
    if not template.has_logic():
        raise TemplateError(f"Template {template.identifier} has no logic")
    return template.executor


def _contract(template: Template, data: ClauseData) -> dict[str, Any]:
    raw = data.data if isinstance(data, ClauseInstance) else data
    return template.model_manager.from_json(copy.deepcopy(raw), template.root_type)


def _state_type(template: Template) -> str:
    if template.logic is not None and template.logic.contract.state_fqn:
        return template.logic.contract.state_fqn
    return STATE


def _load_state(template: Template, state: Any) -> dict[str, Any]:
    """
    Validate a caller-supplied state.

    Raises:
        MissingStateError: If the state is absent or does not validate.
    """
    if state is None:
        raise MissingStateError("No state supplied")
    if not isinstance(state, dict):
        raise MissingStateError(f"State is a {type(state).__name__}, not an object")
    try:
        return template.model_manager.from_json(copy.deepcopy(state), _state_type(template))
    except SchemaValidationError as e:
        raise MissingStateError(f"Unreadable state: {e.message}") from e


def _bind_params(
    template: Template, signature: ClauseSignature, params: dict[str, Any]
) -> dict[str, Any]:
    if not isinstance(params, dict):
        raise SchemaValidationError(f"Params must be an object, got {type(params).__name__}")
    bound: dict[str, Any] = {}
    for name, fqn in signature.params:
        if params.get(name) is None:
            raise SchemaValidationError(
                f"Missing parameter '{name}' for clause '{signature.name}'"
            )
        bound[name] = template.model_manager.from_json(copy.deepcopy(params[name]), fqn)
    return bound


def _dispatch(template: Template, executor: Executor, request: dict[str, Any]) -> ClauseSignature:
    """The clause taking the request's type, or its nearest supertype."""
    manager = template.model_manager
    request_type = request[CLASS_KEY]
    if not manager.is_assignable(request_type, REQUEST):
        raise SchemaValidationError(f"'{request_type}' is not a request type")
    for fqn in manager.supertypes(request_type):
        for signature in executor.clauses:
            if len(signature.params) == 1 and signature.params[0][1] == fqn:
                return signature
    raise MethodResolutionError(f"No clause accepts a request of type '{request_type}'")


# =============================================================================
# Execution
# =============================================================================


def _run(
    template: Template,
    executor: Executor,
    signature: ClauseSignature,
    contract: dict[str, Any],
    state: dict[str, Any],
    params: dict[str, Any],
    now: datetime,
) -> ExecutionResult:
    """Run one clause on private copies and validate what it produced."""
    result = executor.execute(
        signature.name, copy.deepcopy(contract), copy.deepcopy(state), params, now
    )
    manager = template.model_manager
    try:
        if result.response is not None:
            result.response = manager.from_json(result.response, signature.return_fqn)
        if not isinstance(result.state, dict):
            raise SchemaValidationError("state must be an object")
        result.state = manager.from_json(result.state, _state_type(template))
        result.emit = [manager.from_json(event) for event in result.emit]
    except SchemaValidationError as e:
        raise ExecutionError(f"Clause '{signature.name}' produced an invalid value: {e.message}") from e
    return result


def _default_state(
    template: Template, executor: Executor, contract: dict[str, Any], now: datetime
) -> dict[str, Any]:
    if executor.has_clause("init") and not executor.get_clause("init").params:
        init = executor.get_clause("init")
        fresh = template.model_manager.instantiate(_state_type(template))
        state = template.model_manager.from_json(fresh)
        return _run(template, executor, init, contract, state, {}, now).state
    return template.model_manager.from_json(
        template.model_manager.instantiate(_state_type(template))
    )


def default_state(
    template: Template, data: ClauseData, current_time: str | datetime | None = None
) -> dict[str, Any]:
    """
    The state a contract starts from.

    This is the state left by the ``init`` clause when the logic has one that
    takes no parameters, and a fresh instance of the state type otherwise.
    """
    executor = _executor(template)
    contract = _contract(template, data)
    return to_json(_default_state(template, executor, contract, resolve_clock(current_time)))


def _initial_state(
    template: Template,
    executor: Executor,
    contract: dict[str, Any],
    state: Any,
    now: datetime,
) -> dict[str, Any]:
    try:
        return _load_state(template, state)
    except MissingStateError as e:
        logger.warning("%s; using the default state", e.message)
        return _default_state(template, executor, contract, now)


def initialize(
    template: Template,
    data: ClauseData,
    params: dict[str, Any] | None = None,
    current_time: str | datetime | None = None,
) -> dict[str, Any]:
    """
    Produce the first state of a contract.

    ``$class``-tagged values in ``params`` are validated and normalized; the
    other fields are echoed unchanged.

    Returns:
        ``{"state", "response", "params", "emit"}``
    """
    executor = _executor(template)
    now = resolve_clock(current_time)
    contract = _contract(template, data)
    params = copy.deepcopy(params) if params is not None else {}
    if not isinstance(params, dict):
        raise SchemaValidationError(f"Params must be an object, got {type(params).__name__}")
    checked = {
        key: (
            template.model_manager.from_json(value)
            if isinstance(value, dict) and CLASS_KEY in value
            else value
        )
        for key, value in params.items()
    }

    if executor.has_clause("init"):
        init = executor.get_clause("init")
        bound = _bind_params(template, init, checked) if init.params else {}
        fresh = template.model_manager.from_json(
            template.model_manager.instantiate(_state_type(template))
        )
        result = _run(template, executor, init, contract, fresh, bound, now)
    else:
        result = ExecutionResult(response=None, state=_default_state(template, executor, contract, now))
    logger.debug("Initialized %s", template.identifier)
    return {
        "state": to_json(result.state),
        "response": to_json(result.response),
        "params": to_json(checked),
        "emit": to_json(result.emit),
    }


def trigger(
    template: Template,
    data: ClauseData,
    requests: dict[str, Any] | list[dict[str, Any]],
    state: dict[str, Any] | None = None,
    current_time: str | datetime | None = None,
) -> dict[str, Any]:
    """
    Fold requests over the state, left to right.

    Each request goes to the clause whose parameter type is the request's
    type or its nearest supertype. Returns the last response, the final
    state and every emitted event.

    Returns:
        ``{"clause_id", "request", "response", "state", "emit"}``

    Raises:
        SchemaValidationError: If the data or a request does not validate.
        MethodResolutionError: If no clause accepts a request.
        ExecutionError: If the logic fails.
    """
    executor = _executor(template)
    now = resolve_clock(current_time)
    contract = _contract(template, data)
    batch = requests if isinstance(requests, list) else [requests]
    current = _initial_state(template, executor, contract, state, now)

    response: Any = None
    request: dict[str, Any] | None = None
    emitted: list[Any] = []
    for raw in batch:
        if not isinstance(raw, dict):
            raise SchemaValidationError(f"Request must be an object, got {type(raw).__name__}")
        request = template.model_manager.from_json(copy.deepcopy(raw))
        signature = _dispatch(template, executor, request)
        param_name = signature.params[0][0]
        logger.debug("Dispatching %s to clause %s", request[CLASS_KEY], signature.name)
        result = _run(template, executor, signature, contract, current, {param_name: request}, now)
        response, current = result.response, result.state
        emitted.extend(result.emit)

    return {
        "clause_id": contract.get("$identifier") or contract.get("clauseId"),
        "request": to_json(request),
        "response": to_json(response),
        "state": to_json(current),
        "emit": to_json(emitted),
    }


def invoke(
    template: Template,
    data: ClauseData,
    clause_name: str,
    params: dict[str, Any] | list[dict[str, Any]],
    state: dict[str, Any] | None = None,
    current_time: str | datetime | None = None,
) -> dict[str, Any]:
    """
    Call the clause named ``clause_name``, binding ``params`` by parameter name.

    A list of params is folded like a list of requests in ``trigger``.

    Returns:
        ``{"clause_id", "params", "response", "state", "emit"}``

    Raises:
        MethodResolutionError: If the clause does not exist.
    """
    executor = _executor(template)
    signature = executor.get_clause(clause_name)
    now = resolve_clock(current_time)
    contract = _contract(template, data)
    batch = params if isinstance(params, list) else [params]
    current = _initial_state(template, executor, contract, state, now)

    response: Any = None
    emitted: list[Any] = []
    for item in batch:
        bound = _bind_params(template, signature, item)
        result = _run(template, executor, signature, contract, current, bound, now)
        response, current = result.response, result.state
        emitted.extend(result.emit)

    return {
        "clause_id": contract.get("$identifier") or contract.get("clauseId"),
        "params": to_json(params),
        "response": to_json(response),
        "state": to_json(current),
        "emit": to_json(emitted),
    }


__all__ = [
    "default_state",
    "initialize",
    "invoke",
    "resolve_clock",
    "trigger",
]
