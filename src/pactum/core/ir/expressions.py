"""
Expression AST shared by clause logic, grammar formulas and the code
generator.

Every node carries a ``node`` tag so that compiled logic can be stored as
JSON and validated back into the same tree. Null checks (``x is null``) parse
to ``==``/``!=`` against a null literal, so they need no node of their own.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Union
from typing import Literal as Tag

from pydantic import BaseModel, ConfigDict, Field


class BinaryOp(StrEnum):
    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    # Comparison
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    # Logical
    AND = "and"
    OR = "or"


class UnaryOp(StrEnum):
    NEG = "-"
    NOT = "not"


# Duration literal suffix -> TemporalUnit value
DURATION_UNITS: dict[str, str] = {
    "s": "seconds",
    "min": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


class _Node(BaseModel):
    """Base of every expression node; ``str()`` gives back source text."""

    model_config = ConfigDict(frozen=True)


def _join(items: list[Expr]) -> str:
    return ", ".join(map(str, items))


class Literal(_Node):
    """``42``, ``7.5``, ``"text"``, ``true``, ``false`` or ``null``."""

    node: Tag["literal"] = "literal"
    value: int | float | str | bool | None

    def __str__(self) -> str:
        if self.value is None or isinstance(self.value, bool):
            return {None: "null", True: "true", False: "false"}[self.value]
        return f'"{self.value}"' if isinstance(self.value, str) else repr(self.value)


class FieldRef(_Node):
    """A name with optional property access: ``contract.penaltyDuration.unit``."""

    node: Tag["field"] = "field"
    path: list[str]

    def __str__(self) -> str:
        return ".".join(self.path)

    @property
    def is_simple(self) -> bool:
        return len(self.path) == 1

    @property
    def root(self) -> str:
        return self.path[0]


class DurationLiteral(_Node):
    """``7d``, ``2w``, ``24h``, ``30min`` or ``10s``."""

    node: Tag["duration"] = "duration"
    value: int
    unit: str  # key of DURATION_UNITS

    def __str__(self) -> str:
        return f"{self.value}{self.unit}"

    @property
    def temporal_unit(self) -> str:
        return DURATION_UNITS[self.unit]


class BinaryExpr(_Node):
    node: Tag["binary"] = "binary"
    op: BinaryOp
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


class UnaryExpr(_Node):
    node: Tag["unary"] = "unary"
    op: UnaryOp
    operand: Expr

    def __str__(self) -> str:
        separator = " " if self.op is UnaryOp.NOT else ""
        return f"{self.op}{separator}{self.operand}"


class FuncCall(_Node):
    """
    ``name(args...)``; names come from the built-in table in
    ``pactum.core.expression_lang.builtins``.
    """

    node: Tag["call"] = "call"
    name: str
    args: list[Expr] = Field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.name}({_join(self.args)})"


class ListExpr(_Node):
    node: Tag["list"] = "list"
    items: list[Expr] = Field(default_factory=list)

    def __str__(self) -> str:
        return f"[{_join(self.items)}]"


class RecordExpr(_Node):
    """
    Record constructor: TypeName{ field: expr, ... }.

    ``type_name`` is the name as written; the logic loader resolves it to a
    fully qualified name and stores it in ``fqn``.
    """

    node: Tag["record"] = "record"
    type_name: str
    fields: list[tuple[str, Expr]] = Field(default_factory=list)
    fqn: str | None = None

    def __str__(self) -> str:
        inner = ", ".join(f"{name}: {value}" for name, value in self.fields)
        return f"{self.type_name}{{{inner}}}"


class InExpr(_Node):
    """``value in [...]``, or ``value not in [...]`` when ``negated``."""

    node: Tag["in"] = "in"
    value: Expr
    items: list[Expr]
    negated: bool = False

    def __str__(self) -> str:
        keyword = "not in" if self.negated else "in"
        return f"({self.value} {keyword} [{_join(self.items)}])"


class IfExpr(_Node):
    """``if c: a elif d: b else: e``"""

    node: Tag["if"] = "if"
    condition: Expr
    then_expr: Expr
    elif_branches: list[tuple[Expr, Expr]] = Field(default_factory=list)
    else_expr: Expr

    def __str__(self) -> str:
        branches = [(self.condition, self.then_expr), *self.elif_branches]
        text = " ".join(
            f"{'elif' if i else 'if'} {cond}: {value}" for i, (cond, value) in enumerate(branches)
        )
        return f"{text} else: {self.else_expr}"


Expr = Annotated[
    Union[
        Literal,
        FieldRef,
        DurationLiteral,
        BinaryExpr,
        UnaryExpr,
        FuncCall,
        ListExpr,
        RecordExpr,
        InExpr,
        IfExpr,
    ],
    Field(discriminator="node"),
]

for _model in (BinaryExpr, UnaryExpr, FuncCall, ListExpr, RecordExpr, InExpr, IfExpr):
    _model.model_rebuild()
