"""
Archive commands: archive, verify, compile.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from pactum import commands
from pactum.archive import Keystore
from pactum.compile import COMPILERS
from pactum.core.errors import AuthorSignatureError, PactumError, UnknownTargetError

from .grammar import TemplateOption, VerboseOption
from .utils import console, fail, setup_logging


def archive_command(
    template: TemplateOption = Path("."),
    target: Annotated[
        str, typer.Option("--target", help="Logic target: bytecode or python")
    ] = "bytecode",
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Archive file (default: <name>@<version>.cta)")
    ] = None,
    keystore: Annotated[
        Path | None, typer.Option("--keystore", help="PKCS#12 keystore to sign with")
    ] = None,
    passphrase: Annotated[
        str, typer.Option("--passphrase", envvar="PACTUM_KEYSTORE_PASSPHRASE", help="Keystore passphrase")
    ] = "",
    verbose: VerboseOption = False,
) -> None:
    """Package a template into a .cta archive."""
    setup_logging(verbose)
    credentials = Keystore(keystore, passphrase) if keystore else None
    try:
        commands.archive(template, target, output, credentials)
    except UnknownTargetError as e:
        fail(f"Error: {e}")
    except PactumError as e:
        fail(f"Archive failed: {e}")
    signed = " (signed)" if credentials else ""
    console.print(f"[green]✓[/green] Archive created{signed}")


def verify_command(
    template: TemplateOption = Path("."),
    verbose: VerboseOption = False,
) -> None:
    """Check the author signature of an archive."""
    setup_logging(verbose)
    try:
        commands.verify(template)
    except AuthorSignatureError as e:
        fail(f"Verification failed: {e}")
    except PactumError as e:
        fail(f"Error: {e}")
    console.print("[green]✓[/green] Author signature is valid")


def compile_command(
    target: Annotated[
        str, typer.Option("--target", help=f"One of {', '.join(COMPILERS)}")
    ],
    template: TemplateOption = Path("."),
    output: Annotated[Path, typer.Option("--output", "-o", help="Output directory")] = Path("output"),
    verbose: VerboseOption = False,
) -> None:
    """Generate code from the template model."""
    setup_logging(verbose)
    try:
        written = commands.compile(template, target, output)
    except PactumError as e:
        fail(f"Error: {e}")
    if not written:
        console.print(f"[yellow]Nothing generated for target {target}[/yellow]")
        return
    for path in written:
        console.print(f"[green]✓[/green] {path}")
