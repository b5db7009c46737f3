"""
Execution commands: trigger, invoke, initialize.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from pactum import commands
from pactum.core.errors import MethodResolutionError

from .grammar import TemplateOption, VerboseOption
from .utils import fail, print_result, setup_logging

SampleOption = Annotated[
    Path | None, typer.Option("--sample", "-s", help="Contract text (default: text/sample.md)")
]
DataOption = Annotated[
    Path | None, typer.Option("--data", "-d", help="JSON data instead of contract text")
]
StateOption = Annotated[
    Path | None, typer.Option("--state", help="Contract state (default: state.json)")
]
TimeOption = Annotated[
    str | None, typer.Option("--current-time", help="ISO-8601 clock (default: now)")
]


def trigger_command(
    template: TemplateOption = Path("."),
    sample: SampleOption = None,
    data: DataOption = None,
    request: Annotated[
        list[Path] | None,
        typer.Option("--request", "-r", help="Request JSON; repeat to send several in order"),
    ] = None,
    state: StateOption = None,
    current_time: TimeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Send requests to a contract."""
    setup_logging(verbose)
    try:
        result = commands.trigger(template, sample, request, state, current_time, data)
    except MethodResolutionError as e:
        fail(f"Error: {e}")
    if result is None:
        fail("Trigger failed")
    print_result(result)


def invoke_command(
    clause_name: Annotated[str, typer.Option("--clause-name", "-c", help="Clause to call")],
    template: TemplateOption = Path("."),
    sample: SampleOption = None,
    data: DataOption = None,
    params: Annotated[
        Path | None, typer.Option("--params", "-p", help="Clause params (default: params.json)")
    ] = None,
    state: StateOption = None,
    current_time: TimeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Call a clause by name."""
    setup_logging(verbose)
    try:
        result = commands.invoke(template, clause_name, sample, params, state, current_time, data)
    except MethodResolutionError as e:
        fail(f"Error: {e}")
    if result is None:
        fail("Invoke failed")
    print_result(result)


def initialize_command(
    template: TemplateOption = Path("."),
    sample: SampleOption = None,
    data: DataOption = None,
    params: Annotated[
        Path | None, typer.Option("--params", "-p", help="Params for the init clause")
    ] = None,
    current_time: TimeOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Compute the initial state of a contract."""
    setup_logging(verbose)
    try:
        result = commands.initialize(template, sample, params, current_time, data)
    except MethodResolutionError as e:
        fail(f"Error: {e}")
    if result is None:
        fail("Initialize failed")
    print_result(result)
