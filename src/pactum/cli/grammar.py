"""
Grammar commands: parse, draft, normalize.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from pactum import commands
from pactum.core.errors import DraftError
from pactum.grammar import DRAFT_FORMATS, DraftOptions

from .utils import fail, print_result, setup_logging

TemplateOption = Annotated[
    Path, typer.Option("--template", "-t", help="Template directory or .cta archive")
]
OutputOption = Annotated[Path | None, typer.Option("--output", "-o", help="Write the result to a file")]
VerboseOption = Annotated[bool, typer.Option("--verbose", help="Debug logging")]


def _draft_options(output_format: str, unquote: bool) -> DraftOptions:
    try:
        return DraftOptions(format=output_format, unquote_variables=unquote)
    except DraftError as e:
        fail(f"Error: {e}")


def parse_command(
    template: TemplateOption = Path("."),
    sample: Annotated[
        Path | None, typer.Option("--sample", "-s", help="Contract text (default: text/sample.md)")
    ] = None,
    output: OutputOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Parse contract text into JSON data."""
    setup_logging(verbose)
    result = commands.parse(template, sample, output)
    if result is None:
        fail("Parse failed")
    print_result(result)


def draft_command(
    template: TemplateOption = Path("."),
    data: Annotated[
        Path | None, typer.Option("--data", "-d", help="JSON data (default: data.json)")
    ] = None,
    output: OutputOption = None,
    output_format: Annotated[
        str, typer.Option("--format", "-f", help=f"One of {', '.join(DRAFT_FORMATS)}")
    ] = "text",
    unquote: Annotated[
        bool, typer.Option("--unquote-variables", help="Render strings without quotes")
    ] = False,
    verbose: VerboseOption = False,
) -> None:
    """Draft contract text from JSON data."""
    setup_logging(verbose)
    result = commands.draft(template, data, output, _draft_options(output_format, unquote))
    if result is None:
        fail("Draft failed")
    print_result(result)


def normalize_command(
    template: TemplateOption = Path("."),
    sample: Annotated[
        Path | None, typer.Option("--sample", "-s", help="Contract text (default: text/sample.md)")
    ] = None,
    overwrite: Annotated[
        bool, typer.Option("--overwrite", help="Replace the sample file with the result")
    ] = False,
    output: OutputOption = None,
    output_format: Annotated[
        str, typer.Option("--format", "-f", help=f"One of {', '.join(DRAFT_FORMATS)}")
    ] = "text",
    verbose: VerboseOption = False,
) -> None:
    """Parse then redraft contract text."""
    setup_logging(verbose)
    result = commands.normalize(template, sample, overwrite, output, _draft_options(output_format, False))
    if result is None:
        fail("Normalize failed")
    print_result(result)
