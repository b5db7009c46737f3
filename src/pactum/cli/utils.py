"""
Shared helpers for the pactum CLI.
"""

from __future__ import annotations

import json
import logging
import platform
from typing import Any, NoReturn

import typer
from rich.console import Console

from pactum._version import get_version

console = Console()

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(f"pactum {get_version()}")
        typer.echo(f"Python {platform.python_version()} ({platform.python_implementation()})")
        raise typer.Exit()


def setup_logging(verbose: bool = False) -> None:
    """Route library logging to stderr; DEBUG with ``--verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )


def print_result(result: Any) -> None:
    """Plain text as is, anything else as JSON."""
    if isinstance(result, str):
        typer.echo(result)
    else:
        console.print_json(json.dumps(result))


def fail(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)
