"""
Logic executors: the ``bytecode`` interpreter and ``python`` native clauses.
"""

from .executor import ClauseSignature, ExecutionResult, Executor, create_executor
from .native import ClauseContext, clause

__all__ = [
    "ClauseContext",
    "ClauseSignature",
    "ExecutionResult",
    "Executor",
    "clause",
    "create_executor",
]
