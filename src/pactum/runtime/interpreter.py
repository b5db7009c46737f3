"""
Tree-walking interpreter for clause logic (target ``bytecode``).

Statements run against a scope dict holding ``contract``, ``state``, the
clause parameters and ``let`` locals. Expressions are delegated to the
expression evaluator with the call's fixed clock.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pactum.core.errors import ExecutionError
from pactum.core.expression_lang import ExpressionEvalError, evaluate
from pactum.core.ir import (
    EmitStmt,
    EnforceStmt,
    Expr,
    IfStmt,
    LetStmt,
    LogicModule,
    ReturnStmt,
    SetStateStmt,
    Stmt,
    ThrowStmt,
)
from pactum.core.manifest import LogicTarget

from .executor import ENFORCE_FAILED, ClauseSignature, ExecutionResult, Executor, error_message

logger = logging.getLogger(__name__)


class _Return(Exception):
    """Unwinds the statement walk on ``return``."""

    def __init__(self, value: Any):
        super().__init__()
        self.value = value


class _Frame:
    """Mutable state of one clause call."""

    def __init__(self, scope: dict[str, Any], now: datetime):
        self.scope = scope
        self.now = now
        self.emitted: list[Any] = []

    def eval(self, expr: Expr, line: int) -> Any:
        try:
            return evaluate(expr, self.scope, now=self.now)
        except ExpressionEvalError as e:
            raise ExecutionError(f"line {line}: {e}") from e


class InterpreterExecutor(Executor):
    """Runs a resolved ``LogicModule``."""

    target = LogicTarget.BYTECODE

    def __init__(self, module: LogicModule):
        self.module = module
        contract = module.contract
        self._clauses = {clause.name: clause for clause in contract.clauses}
        self._signatures = [
            ClauseSignature(
                name=clause.name,
                params=tuple((p.name, p.fqn or p.type_name) for p in clause.params),
                return_fqn=clause.return_fqn,
            )
            for clause in contract.clauses
        ]

    @property
    def clauses(self) -> list[ClauseSignature]:
        return self._signatures

    def execute(
        self,
        clause_name: str,
        contract: dict[str, Any],
        state: dict[str, Any],
        params: dict[str, Any],
        now: datetime,
    ) -> ExecutionResult:
        signature = self.get_clause(clause_name)
        clause = self._clauses[clause_name]
        scope: dict[str, Any] = {"contract": contract, "state": state}
        for name in signature.param_names:
            scope[name] = params.get(name)

        frame = _Frame(scope, now)
        logger.debug("Interpreting clause %s", clause_name)
        try:
            self._run_block(clause.body, frame)
            response = None
        except _Return as ret:
            response = ret.value
        return ExecutionResult(response=response, state=frame.scope["state"], emit=frame.emitted)

    def _run_block(self, body: list[Stmt], frame: _Frame) -> None:
        for stmt in body:
            self._run(stmt, frame)

    def _run(self, stmt: Stmt, frame: _Frame) -> None:
        if isinstance(stmt, LetStmt):
            frame.scope[stmt.name] = frame.eval(stmt.value, stmt.line)

        elif isinstance(stmt, EnforceStmt):
            if frame.eval(stmt.condition, stmt.line):
                return
            if stmt.otherwise_return is not None:
                raise _Return(frame.eval(stmt.otherwise_return, stmt.line))
            if stmt.otherwise_throw is not None:
                raise ExecutionError(error_message(frame.eval(stmt.otherwise_throw, stmt.line)))
            raise ExecutionError(ENFORCE_FAILED)

        elif isinstance(stmt, SetStateStmt):
            frame.scope["state"] = frame.eval(stmt.value, stmt.line)

        elif isinstance(stmt, EmitStmt):
            frame.emitted.append(frame.eval(stmt.value, stmt.line))

        elif isinstance(stmt, ReturnStmt):
            raise _Return(None if stmt.value is None else frame.eval(stmt.value, stmt.line))

        elif isinstance(stmt, ThrowStmt):
            raise ExecutionError(error_message(frame.eval(stmt.value, stmt.line)))

        elif isinstance(stmt, IfStmt):
            branch = stmt.then_body if frame.eval(stmt.condition, stmt.line) else stmt.else_body
            self._run_block(branch, frame)

        else:
            raise ExecutionError(f"Unknown statement: {type(stmt).__name__}")
