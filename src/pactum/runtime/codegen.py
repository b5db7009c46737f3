"""
Python code generator for clause logic.

Turns a resolved ``LogicModule`` into the source of a native logic module
(see ``pactum.runtime.native``). Operators and built-ins go through the
same helpers the interpreter uses, so the generated module computes the
same results.
"""

from __future__ import annotations

import keyword

from pactum.core.ir import (
    BinaryExpr,
    BinaryOp,
    ClauseDecl,
    DurationLiteral,
    EmitStmt,
    EnforceStmt,
    Expr,
    FieldRef,
    FuncCall,
    IfExpr,
    IfStmt,
    InExpr,
    LetStmt,
    ListExpr,
    Literal,
    LogicModule,
    RecordExpr,
    ReturnStmt,
    SetStateStmt,
    Stmt,
    ThrowStmt,
    UnaryExpr,
)

from .executor import ENFORCE_FAILED

_HEADER = '''"""
Generated by pactum from {source}. Do not edit.
"""

from pactum.core.expression_lang.builtins import make_duration
from pactum.core.expression_lang.evaluator import apply_binary, apply_unary, call_function, get_member
from pactum.runtime.native import clause
'''

_CONTEXT_NAMES = {"contract": "ctx.contract", "state": "ctx.state"}


def _local(name: str) -> str:
    return _CONTEXT_NAMES.get(name, f"v_{name}")


def _function_name(name: str) -> str:
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    return "clause_" + "".join(c if c.isalnum() else "_" for c in name)


class PythonGenerator:
    """Emits one Python function per clause."""

    def __init__(self, module: LogicModule):
        self.module = module
        self.lines: list[str] = []
        self.indent = 0

    def emit(self, line: str) -> None:
        self.lines.append("    " * self.indent + line)

    def generate(self) -> str:
        self.lines = _HEADER.format(source=self.module.source_name).splitlines()
        for clause in self.module.contract.clauses:
            self.lines.extend(["", ""])
            self.generate_clause(clause)
        return "\n".join(self.lines) + "\n"

    # =========================================================================
    # Statements
    # =========================================================================

    def generate_clause(self, clause: ClauseDecl) -> None:
        params = ", ".join(f"{p.name!r}: {(p.fqn or p.type_name)!r}" for p in clause.params)
        returns = clause.return_fqn or clause.return_type
        self.emit(f"@clause(name={clause.name!r}, params={{{params}}}, returns={returns!r})")
        args = "".join(f", {_local(p.name)}" for p in clause.params)
        self.emit(f"def {_function_name(clause.name)}(ctx{args}):")
        self.indent += 1
        # Locals assigned only on some paths read as null, as in the interpreter
        param_names = {p.name for p in clause.params}
        for name in sorted(_let_names(clause.body) - param_names):
            if name not in _CONTEXT_NAMES:
                self.emit(f"{_local(name)} = None")
        self.generate_block(clause.body)
        self.emit("return None")
        self.indent -= 1

    def generate_block(self, body: list[Stmt]) -> None:
        if not body:
            self.emit("pass")
        for stmt in body:
            self.generate_stmt(stmt)

    def generate_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, LetStmt):
            self.emit(f"{_local(stmt.name)} = {self.expr(stmt.value)}")
        elif isinstance(stmt, EnforceStmt):
            self.emit(f"if not ({self.expr(stmt.condition)}):")
            self.indent += 1
            if stmt.otherwise_return is not None:
                self.emit(f"return {self.expr(stmt.otherwise_return)}")
            elif stmt.otherwise_throw is not None:
                self.emit(f"ctx.fail({self.expr(stmt.otherwise_throw)})")
            else:
                self.emit(f"ctx.fail({ENFORCE_FAILED!r})")
            self.indent -= 1
        elif isinstance(stmt, SetStateStmt):
            self.emit(f"ctx.state = {self.expr(stmt.value)}")
        elif isinstance(stmt, EmitStmt):
            self.emit(f"ctx.emit({self.expr(stmt.value)})")
        elif isinstance(stmt, ReturnStmt):
            self.emit("return None" if stmt.value is None else f"return {self.expr(stmt.value)}")
        elif isinstance(stmt, ThrowStmt):
            self.emit(f"ctx.fail({self.expr(stmt.value)})")
        elif isinstance(stmt, IfStmt):
            self.emit(f"if {self.expr(stmt.condition)}:")
            self.indent += 1
            self.generate_block(stmt.then_body)
            self.indent -= 1
            if stmt.else_body:
                self.emit("else:")
                self.indent += 1
                self.generate_block(stmt.else_body)
                self.indent -= 1

    # =========================================================================
    # Expressions
    # =========================================================================

    def expr(self, expr: Expr) -> str:
        if isinstance(expr, Literal):
            return repr(expr.value)
        if isinstance(expr, FieldRef):
            code = _local(expr.root)
            for segment in expr.path[1:]:
                code = f"get_member({code}, {segment!r})"
            return code
        if isinstance(expr, DurationLiteral):
            return f"make_duration({expr.value!r}, {expr.temporal_unit!r})"
        if isinstance(expr, BinaryExpr):
            left, right = self.expr(expr.left), self.expr(expr.right)
            if expr.op == BinaryOp.AND:
                return f"({left} and {right})"
            if expr.op == BinaryOp.OR:
                return f"({left} or {right})"
            return f"apply_binary({expr.op.value!r}, {left}, {right})"
        if isinstance(expr, UnaryExpr):
            return f"apply_unary({expr.op.value!r}, {self.expr(expr.operand)})"
        if isinstance(expr, FuncCall):
            args = [self.expr(a) for a in expr.args]
            if expr.name == "now":
                return "ctx.now"
            if expr.name == "__get__":
                return f"get_member({args[0]}, {args[1]})"
            return f"call_function({expr.name!r}, [{', '.join(args)}])"
        if isinstance(expr, ListExpr):
            return "[" + ", ".join(self.expr(i) for i in expr.items) + "]"
        if isinstance(expr, RecordExpr):
            fields = [f"'$class': {(expr.fqn or expr.type_name)!r}"]
            fields += [f"{name!r}: {self.expr(value)}" for name, value in expr.fields]
            return "{" + ", ".join(fields) + "}"
        if isinstance(expr, InExpr):
            items = ", ".join(self.expr(i) for i in expr.items)
            op = "not in" if expr.negated else "in"
            return f"({self.expr(expr.value)} {op} [{items}])"
        if isinstance(expr, IfExpr):
            code = self.expr(expr.else_expr)
            for cond, value in reversed(expr.elif_branches):
                code = f"({self.expr(value)} if {self.expr(cond)} else {code})"
            return f"({self.expr(expr.then_expr)} if {self.expr(expr.condition)} else {code})"
        raise TypeError(f"Unknown expression type: {type(expr).__name__}")


def _let_names(body: list[Stmt]) -> set[str]:
    names: set[str] = set()
    for stmt in body:
        if isinstance(stmt, LetStmt):
            names.add(stmt.name)
        elif isinstance(stmt, IfStmt):
            names |= _let_names(stmt.then_body) | _let_names(stmt.else_body)
    return names


def generate_python(module: LogicModule) -> str:
    """Python source for a resolved logic module."""
    return PythonGenerator(module).generate()
