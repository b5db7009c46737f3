"""
Native clause logic (target ``python``).

A native template ships Python modules under ``logic/`` whose clause
functions are marked with ``@clause``:

    from pactum.runtime.native import clause

    @clause(params={"request": "LateDeliveryAndPenaltyRequest"},
            returns="LateDeliveryAndPenaltyResponse")
    def latedeliveryandpenalty(ctx, request):
        if ctx.contract["forceMajeure"] and request["forceMajeure"]:
            return ctx.record("LateDeliveryAndPenaltyResponse", penalty=0.0, buyerMayTerminate=True)
        ...

Each function receives a ``ClauseContext`` followed by its parameters in
declaration order. Type names may be short; they resolve against the
template's model namespaces and the built-in namespaces.
"""

from __future__ import annotations

import logging
import re
import types
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pactum.core.errors import ExecutionError, PactumError, TemplateError
from pactum.core.expression_lang import ExpressionEvalError
from pactum.core.ir import DeclarationKind, ImportSpec
from pactum.core.logic_loader import IMPLICIT_IMPORTS
from pactum.core.manifest import LogicTarget
from pactum.core.model_manager import CLASS_KEY, ModelManager

from .executor import ClauseSignature, ExecutionResult, Executor, error_message

if TYPE_CHECKING:
    from pactum.core.template import Template

logger = logging.getLogger(__name__)

CLAUSE_ATTR = "__pactum_clause__"


@dataclass(frozen=True)
class ClauseSpec:
    """What ``@clause`` records on a function."""

    name: str
    params: tuple[tuple[str, str], ...]
    returns: str | None


def clause(
    name: str | None = None,
    params: dict[str, str] | None = None,
    returns: str | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a function as a clause; ``params`` maps parameter names to types."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        spec = ClauseSpec(
            name=name or func.__name__,
            params=tuple((params or {}).items()),
            returns=returns,
        )
        setattr(func, CLAUSE_ATTR, spec)
        return func

    return decorator


class ClauseContext:
    """The view a native clause has of its call."""

    def __init__(
        self,
        contract: dict[str, Any],
        state: dict[str, Any],
        now: datetime,
        resolve: Callable[[str], str],
    ):
        self.contract = contract
        self.state = state
        self.now = now
        self.emitted: list[Any] = []
        self._resolve = resolve

    def emit(self, value: Any) -> None:
        self.emitted.append(value)

    def fail(self, value: Any) -> None:
        """Abort the clause, like ``throw`` in a ``.logic`` file."""
        raise ExecutionError(error_message(value))

    def record(self, type_name: str, **fields: Any) -> dict[str, Any]:
        """Build a ``$class``-tagged record; ``type_name`` may be short."""
        return {CLASS_KEY: self._resolve(type_name), **fields}


def _module_name(template_name: str, path: str) -> str:
    stem = path.rsplit("/", 1)[-1].removesuffix(".py")
    return "pactum_logic_" + re.sub(r"\W", "_", f"{template_name}_{stem}")


def load_module(source: str, path: str, template_name: str = "template") -> types.ModuleType:
    """
    Execute a logic module's source in a fresh module object.

    Raises:
        TemplateError: If the module does not compile or fails on import.
    """
    module = types.ModuleType(_module_name(template_name, path))
    module.__file__ = path
    try:
        code = compile(source, path, "exec")
        exec(code, module.__dict__)
    except SyntaxError as e:
        raise TemplateError(f"{path}:{e.lineno}: {e.msg}") from e
    except Exception as e:
        raise TemplateError(f"{path}: failed to load logic module: {e}") from e
    return module


class NativeExecutor(Executor):
    """Calls ``@clause`` functions collected from logic modules."""

    target = LogicTarget.PYTHON

    def __init__(self, modules: list[types.ModuleType], manager: ModelManager, namespace: str):
        self.manager = manager
        self._imports = [
            ImportSpec(namespace=f.namespace) for f in manager.user_files
        ] + IMPLICIT_IMPORTS
        self._namespace = namespace
        self._functions: dict[str, Callable[..., Any]] = {}
        self._signatures: list[ClauseSignature] = []

        for module in modules:
            for value in vars(module).values():
                spec = getattr(value, CLAUSE_ATTR, None)
                if not isinstance(spec, ClauseSpec):
                    continue
                if spec.name in self._functions:
                    raise TemplateError(f"Clause '{spec.name}' is defined twice")
                self._functions[spec.name] = value
                self._signatures.append(self._signature(spec))
        if not self._signatures:
            raise TemplateError("No @clause functions found in logic modules")
        logger.debug("Loaded native clauses: %s", ", ".join(self._functions))

    @classmethod
    def for_template(cls, template: Template) -> NativeExecutor:
        """Load the template's logic modules, generating one from ``.logic`` if needed."""
        if template.python_sources:
            sources = dict(template.python_sources)
        elif template.generated_python is not None:
            from pactum.core.template import GENERATED_PYTHON_FILE

            sources = {GENERATED_PYTHON_FILE: template.generated_python}
        else:
            from pactum.core.template import GENERATED_PYTHON_FILE
            from pactum.runtime.codegen import generate_python

            assert template.logic is not None
            sources = {GENERATED_PYTHON_FILE: generate_python(template.logic)}
        modules = [load_module(source, path, template.name) for path, source in sources.items()]
        namespace = template.root_type.rpartition(".")[0]
        return cls(modules, template.model_manager, namespace)

    def resolve_type(self, name: str) -> str:
        fqn = self.manager.resolve_name(name, self._namespace, self._imports)
        if fqn is None or not self.manager.has_type(fqn):
            raise TemplateError(f"Type '{name}' is not declared")
        return fqn

    def _signature(self, spec: ClauseSpec) -> ClauseSignature:
        params = []
        for param_name, type_name in spec.params:
            fqn = self.resolve_type(type_name)
            if self.manager.get_type(fqn).kind != DeclarationKind.TRANSACTION:
                raise TemplateError(
                    f"Clause '{spec.name}': parameter '{param_name}' must be a transaction"
                )
            params.append((param_name, fqn))
        return ClauseSignature(
            name=spec.name,
            params=tuple(params),
            return_fqn=self.resolve_type(spec.returns) if spec.returns else None,
        )

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
        func = self._functions[clause_name]
        ctx = ClauseContext(contract, state, now, self.resolve_type)
        args = [params.get(name) for name in signature.param_names]
        logger.debug("Calling native clause %s", clause_name)
        try:
            response = func(ctx, *args)
        except PactumError:
            raise
        except ExpressionEvalError as e:
            raise ExecutionError(str(e)) from e
        except Exception as e:
            raise ExecutionError(f"Clause '{clause_name}' failed: {e}") from e
        return ExecutionResult(response=response, state=ctx.state, emit=ctx.emitted)
