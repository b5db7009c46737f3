"""
Logic executor interface.

This module defines the abstract interface that both logic backends
implement, so the orchestrator never needs to know which one it drives.

Backends:
- ``InterpreterExecutor`` (target ``bytecode``): walks the logic AST.
- ``NativeExecutor`` (target ``python``): calls ``@clause`` functions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pactum.core.errors import MethodResolutionError
from pactum.core.manifest import LogicTarget

if TYPE_CHECKING:
    from pactum.core.template import Template

ENFORCE_FAILED = "Enforce condition failed"


@dataclass(frozen=True)
class ClauseSignature:
    """Name, parameters and return type of one clause."""

    name: str
    params: tuple[tuple[str, str], ...] = ()  # (name, type fqn)
    return_fqn: str | None = None

    @property
    def param_names(self) -> list[str]:
        return [name for name, _ in self.params]

    @property
    def is_init(self) -> bool:
        return self.name == "init"


@dataclass
class ExecutionResult:
    """Outcome of one clause call."""

    response: Any
    state: dict[str, Any]
    emit: list[Any] = field(default_factory=list)


def error_message(value: Any) -> str:
    """Message for a thrown value: a string, or a record with ``message``."""
    if isinstance(value, dict) and "message" in value:
        return str(value["message"])
    return str(value)


class Executor(ABC):
    """
    Abstract interface for logic backends.

    ``execute`` receives runtime-form values (see ``ModelManager.from_json``)
    that the caller owns exclusively; implementations may mutate them.
    """

    target: LogicTarget

    @property
    @abstractmethod
    def clauses(self) -> list[ClauseSignature]:
        """Clause signatures in declaration order."""

    @abstractmethod
    def execute(
        self,
        clause_name: str,
        contract: dict[str, Any],
        state: dict[str, Any],
        params: dict[str, Any],
        now: datetime,
    ) -> ExecutionResult:
        """
        Run one clause.

        Raises:
            MethodResolutionError: If the clause does not exist.
            ExecutionError: If the logic throws or fails at runtime.
        """

    def get_clause(self, name: str) -> ClauseSignature:
        for signature in self.clauses:
            if signature.name == name:
                return signature
        available = ", ".join(s.name for s in self.clauses) or "none"
        raise MethodResolutionError(f"Unknown clause '{name}' (available: {available})")

    def has_clause(self, name: str) -> bool:
        return any(signature.name == name for signature in self.clauses)


def create_executor(template: Template) -> Executor:
    """Create the executor for a template's declared target."""
    from pactum.runtime.interpreter import InterpreterExecutor
    from pactum.runtime.native import NativeExecutor

    if template.target == LogicTarget.BYTECODE:
        assert template.logic is not None
        return InterpreterExecutor(template.logic)
    return NativeExecutor.for_template(template)
