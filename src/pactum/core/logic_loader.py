"""
Resolves parsed clause logic against a template's model and checks it.

Checks performed at load time:
- every type named by the contract, its clauses and record constructors
  is declared (short names resolve through the logic namespace, its
  imports and the built-in namespaces);
- clause parameters are transactions;
- record constructors name concrete types and only declared fields;
- every called function is a built-in.
"""

from __future__ import annotations

import logging

from pactum.stdlib import CLAUSE, CONTRACT, CONTRACT_NS, MONEY_NS, PARTY_NS, RUNTIME_NS, STATE, TIME_NS

from .errors import TemplateError
from .expression_lang.builtins import FUNCTION_NAMES
from .ir import (
    BinaryExpr,
    ClauseDecl,
    DeclarationKind,
    EmitStmt,
    EnforceStmt,
    Expr,
    FuncCall,
    IfExpr,
    IfStmt,
    ImportSpec,
    InExpr,
    LetStmt,
    ListExpr,
    LogicModule,
    RecordExpr,
    ReturnStmt,
    SetStateStmt,
    Stmt,
    ThrowStmt,
    UnaryExpr,
)
from .model_manager import ModelManager

logger = logging.getLogger(__name__)

IMPLICIT_IMPORTS = [
    ImportSpec(namespace=ns) for ns in (RUNTIME_NS, TIME_NS, CONTRACT_NS, MONEY_NS, PARTY_NS)
]


def _parse_import(text: str) -> ImportSpec:
    namespace, _, name = text.rpartition(".")
    return ImportSpec(namespace=namespace, name=None if name == "*" else name)


class LogicResolver:
    """Rewrites a ``LogicModule`` with fully qualified type names."""

    def __init__(self, module: LogicModule, manager: ModelManager):
        self.module = module
        self.manager = manager
        self.imports = [_parse_import(i) for i in module.imports] + IMPLICIT_IMPORTS
        self._clause = "<contract>"

    def error(self, message: str) -> TemplateError:
        return TemplateError(f"{self.module.source_name}: clause '{self._clause}': {message}")

    def resolve_type(self, name: str) -> str:
        fqn = self.manager.resolve_name(name, self.module.namespace, self.imports)
        if fqn is None or not self.manager.has_type(fqn):
            raise self.error(f"type '{name}' is not declared")
        return fqn

    def resolve(self) -> LogicModule:
        contract = self.module.contract
        over_fqn = self.resolve_type(contract.over_type)
        if not (
            self.manager.is_assignable(over_fqn, CLAUSE)
            or self.manager.is_assignable(over_fqn, CONTRACT)
        ):
            raise self.error(f"contract data type '{over_fqn}' must extend Clause or Contract")

        state_fqn = STATE
        if contract.state_type:
            state_fqn = self.resolve_type(contract.state_type)
            if not self.manager.is_assignable(state_fqn, STATE):
                raise self.error(f"state type '{state_fqn}' must extend {STATE}")

        clauses = [self.resolve_clause(clause) for clause in contract.clauses]
        resolved = contract.model_copy(
            update={"over_fqn": over_fqn, "state_fqn": state_fqn, "clauses": clauses}
        )
        logger.debug(
            "Resolved contract %s over %s with %d clause(s)",
            contract.name,
            over_fqn,
            len(clauses),
        )
        return self.module.model_copy(update={"contract": resolved})

    def resolve_clause(self, clause: ClauseDecl) -> ClauseDecl:
        self._clause = clause.name
        params = []
        for param in clause.params:
            fqn = self.resolve_type(param.type_name)
            if self.manager.get_type(fqn).kind != DeclarationKind.TRANSACTION:
                raise self.error(f"parameter '{param.name}' must be a transaction, got '{fqn}'")
            params.append(param.model_copy(update={"fqn": fqn}))
        if len({p.name for p in params}) != len(params):
            raise self.error("duplicate parameter names")
        for reserved in ("contract", "state"):
            if any(p.name == reserved for p in params):
                raise self.error(f"'{reserved}' cannot be used as a parameter name")

        return_fqn = self.resolve_type(clause.return_type) if clause.return_type else None
        body = [self.resolve_stmt(stmt) for stmt in clause.body]
        return clause.model_copy(update={"params": params, "return_fqn": return_fqn, "body": body})

    def resolve_stmt(self, stmt: Stmt) -> Stmt:
        if isinstance(stmt, (LetStmt, SetStateStmt, EmitStmt, ThrowStmt)):
            return stmt.model_copy(update={"value": self.resolve_expr(stmt.value)})
        if isinstance(stmt, ReturnStmt):
            if stmt.value is None:
                return stmt
            return stmt.model_copy(update={"value": self.resolve_expr(stmt.value)})
        if isinstance(stmt, EnforceStmt):
            return stmt.model_copy(
                update={
                    "condition": self.resolve_expr(stmt.condition),
                    "otherwise_return": self._optional(stmt.otherwise_return),
                    "otherwise_throw": self._optional(stmt.otherwise_throw),
                }
            )
        if isinstance(stmt, IfStmt):
            return stmt.model_copy(
                update={
                    "condition": self.resolve_expr(stmt.condition),
                    "then_body": [self.resolve_stmt(s) for s in stmt.then_body],
                    "else_body": [self.resolve_stmt(s) for s in stmt.else_body],
                }
            )
        raise self.error(f"unknown statement {type(stmt).__name__}")

    def _optional(self, expr: Expr | None) -> Expr | None:
        return None if expr is None else self.resolve_expr(expr)

    def resolve_expr(self, expr: Expr) -> Expr:
        if isinstance(expr, RecordExpr):
            fqn = self.resolve_type(expr.type_name)
            decl = self.manager.get_type(fqn)
            if decl.is_abstract or decl.is_enum:
                raise self.error(f"cannot construct '{fqn}'")
            known = {p.name for p in self.manager.all_properties(fqn)}
            for name, _ in expr.fields:
                if name not in known:
                    raise self.error(f"type '{fqn}' has no field '{name}'")
            fields = [(name, self.resolve_expr(value)) for name, value in expr.fields]
            return expr.model_copy(update={"fqn": fqn, "fields": fields})
        if isinstance(expr, BinaryExpr):
            return expr.model_copy(
                update={"left": self.resolve_expr(expr.left), "right": self.resolve_expr(expr.right)}
            )
        if isinstance(expr, UnaryExpr):
            return expr.model_copy(update={"operand": self.resolve_expr(expr.operand)})
        if isinstance(expr, FuncCall):
            if expr.name not in FUNCTION_NAMES and expr.name != "__get__":
                raise self.error(f"unknown function '{expr.name}'")
            return expr.model_copy(update={"args": [self.resolve_expr(a) for a in expr.args]})
        if isinstance(expr, ListExpr):
            return expr.model_copy(update={"items": [self.resolve_expr(i) for i in expr.items]})
        if isinstance(expr, InExpr):
            return expr.model_copy(
                update={
                    "value": self.resolve_expr(expr.value),
                    "items": [self.resolve_expr(i) for i in expr.items],
                }
            )
        if isinstance(expr, IfExpr):
            return expr.model_copy(
                update={
                    "condition": self.resolve_expr(expr.condition),
                    "then_expr": self.resolve_expr(expr.then_expr),
                    "elif_branches": [
                        (self.resolve_expr(c), self.resolve_expr(v)) for c, v in expr.elif_branches
                    ],
                    "else_expr": self.resolve_expr(expr.else_expr),
                }
            )
        return expr


def resolve_logic(module: LogicModule, manager: ModelManager) -> LogicModule:
    """
    Resolve and check a parsed logic module.

    Raises:
        TemplateError: If the logic references undeclared types or functions.
    """
    return LogicResolver(module, manager).resolve()
