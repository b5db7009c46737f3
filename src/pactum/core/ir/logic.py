"""
Clause logic types for pactum IR.

A ``.logic`` file declares one contract with one or more clauses. Each
clause body is a list of statements over the expression AST.
"""

from __future__ import annotations

from typing import Annotated, Union
from typing import Literal as Tag

from pydantic import BaseModel, ConfigDict, Field

from .expressions import Expr


class LetStmt(BaseModel):
    """``let name = expr;``"""

    node: Tag["let"] = "let"
    name: str
    value: Expr
    line: int = 0

    model_config = ConfigDict(frozen=True)


class EnforceStmt(BaseModel):
    """
    ``enforce cond else return expr;`` or ``enforce cond else throw expr;``.

    Without an ``else`` branch a failed enforce throws a generic error.
    """

    node: Tag["enforce"] = "enforce"
    condition: Expr
    otherwise_return: Expr | None = None
    otherwise_throw: Expr | None = None
    line: int = 0

    model_config = ConfigDict(frozen=True)


class SetStateStmt(BaseModel):
    """``set state expr;``"""

    node: Tag["set_state"] = "set_state"
    value: Expr
    line: int = 0

    model_config = ConfigDict(frozen=True)


class EmitStmt(BaseModel):
    """``emit expr;``"""

    node: Tag["emit"] = "emit"
    value: Expr
    line: int = 0

    model_config = ConfigDict(frozen=True)


class ReturnStmt(BaseModel):
    """``return expr;`` or bare ``return;``"""

    node: Tag["return"] = "return"
    value: Expr | None = None
    line: int = 0

    model_config = ConfigDict(frozen=True)


class ThrowStmt(BaseModel):
    """``throw expr;``"""

    node: Tag["throw"] = "throw"
    value: Expr
    line: int = 0

    model_config = ConfigDict(frozen=True)


class IfStmt(BaseModel):
    """``if cond { ... } else { ... }``"""

    node: Tag["if_stmt"] = "if_stmt"
    condition: Expr
    then_body: list[Stmt] = Field(default_factory=list)
    else_body: list[Stmt] = Field(default_factory=list)
    line: int = 0

    model_config = ConfigDict(frozen=True)


Stmt = Annotated[
    Union[LetStmt, EnforceStmt, SetStateStmt, EmitStmt, ReturnStmt, ThrowStmt, IfStmt],
    Field(discriminator="node"),
]

IfStmt.model_rebuild()


class ParamSpec(BaseModel):
    """A clause parameter: ``request : LateDeliveryRequest``."""

    name: str
    type_name: str
    fqn: str | None = None

    model_config = ConfigDict(frozen=True)


class ClauseDecl(BaseModel):
    """
    A clause function inside a contract.

    ``init`` is the reserved name of the clause that produces the first
    state of a contract.
    """

    name: str
    params: list[ParamSpec] = Field(default_factory=list)
    return_type: str | None = None
    return_fqn: str | None = None
    body: list[Stmt] = Field(default_factory=list)
    line: int = 0

    model_config = ConfigDict(frozen=True)

    @property
    def is_init(self) -> bool:
        return self.name == "init"


class ContractDecl(BaseModel):
    """``contract Name over TemplateModel state StateType { clauses }``"""

    name: str
    over_type: str
    over_fqn: str | None = None
    state_type: str | None = None
    state_fqn: str | None = None
    clauses: list[ClauseDecl] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def get_clause(self, name: str) -> ClauseDecl | None:
        for clause in self.clauses:
            if clause.name == name:
                return clause
        return None


class LogicModule(BaseModel):
    """A parsed (and, after loading, type-resolved) ``.logic`` file."""

    namespace: str
    imports: list[str] = Field(default_factory=list)
    contract: ContractDecl
    source_name: str = "<logic>"

    model_config = ConfigDict(frozen=True)
