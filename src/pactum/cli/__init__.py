"""
pactum command line.

    pactum parse --template ./latedeliveryandpenalty
    pactum trigger --template ./latedeliveryandpenalty --request request.json
    pactum archive --target python --keystore author.p12
"""

from __future__ import annotations

from typing import Annotated

import typer

from .archive import archive_command, compile_command, verify_command
from .execution import initialize_command, invoke_command, trigger_command
from .grammar import draft_command, normalize_command, parse_command
from .utils import version_callback

app = typer.Typer(
    help="pactum - parse, draft, run and sign smart legal contract templates.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """pactum - smart legal contract templates."""


app.command(name="parse")(parse_command)
app.command(name="draft")(draft_command)
app.command(name="normalize")(normalize_command)
app.command(name="trigger")(trigger_command)
app.command(name="invoke")(invoke_command)
app.command(name="initialize")(initialize_command)
app.command(name="archive")(archive_command)
app.command(name="verify")(verify_command)
app.command(name="compile")(compile_command)


def main() -> None:
    app(standalone_mode=True)


__all__ = ["app", "main"]
