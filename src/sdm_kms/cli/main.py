"""sdm-kms CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from sdm_kms.cli.chat import chat_cmd
from sdm_kms.cli.common import console
from sdm_kms.cli.context import export_cmd, import_cmd
from sdm_kms.cli.generate import email_cmd, report_cmd
from sdm_kms.cli.ingest import ingest_cmd, remove_cmd
from sdm_kms.cli.risk import risk_app
from sdm_kms.cli.status import status_cmd
from sdm_kms.cli.wiki import wiki_app


def _installed_version() -> str:
    try:
        return importlib.metadata.version("sdm-kms")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"sdm-kms {_installed_version()}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )
    # litellm logs every request at INFO
    logging.getLogger("LiteLLM").setLevel(logging.DEBUG if verbose else logging.ERROR)


app = typer.Typer(
    name="sdm-kms",
    help=(
        "sdm-kms — knowledge-management assistant.\n\n"
        "  sdm-kms ingest   Add documents and extract summaries, topics and risks.\n"
        "  sdm-kms chat     Ask questions across all documents.\n"
        "  sdm-kms wiki     Build a concept wiki.  sdm-kms risk  Score a 5×5 risk register."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output."),
    ] = False,
) -> None:
    """sdm-kms — knowledge-management assistant."""
    _setup_logging(verbose)


app.command("ingest")(ingest_cmd)
app.command("remove")(remove_cmd)
app.command("status")(status_cmd)
app.command("chat")(chat_cmd)
app.command("report")(report_cmd)
app.command("email")(email_cmd)
app.command("export")(export_cmd)
app.command("import")(import_cmd)
app.add_typer(wiki_app, name="wiki")
app.add_typer(risk_app, name="risk")


@app.command("version")
def version_cmd() -> None:
    """Show the installed sdm-kms version."""
    typer.echo(f"sdm-kms {_installed_version()}")


if __name__ == "__main__":
    app()
