"""
pactum - smart legal contract templates.

Templates pair a data model, a natural-language grammar and clause logic.
pactum parses contract text into data, drafts text back from data, runs the
logic against requests and packages templates into signed archives.
"""

from __future__ import annotations

from ._version import get_version
from .core.clause import ClauseInstance
from .core.errors import (
    AuthorSignatureError,
    ExecutionError,
    PactumError,
    ParseError,
    TemplateError,
    UnknownTargetError,
)
from .core.template import Template
from .engine import initialize, invoke, trigger
from .grammar import DraftOptions, draft, normalize, parse

__version__ = get_version()

__all__ = [
    "__version__",
    "AuthorSignatureError",
    "ClauseInstance",
    "DraftOptions",
    "ExecutionError",
    "PactumError",
    "ParseError",
    "Template",
    "TemplateError",
    "UnknownTargetError",
    "draft",
    "initialize",
    "invoke",
    "normalize",
    "parse",
    "trigger",
]
