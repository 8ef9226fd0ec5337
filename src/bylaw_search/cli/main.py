"""bylaw-search CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer

from bylaw_search.cli.ingest import ingest_cmd
from bylaw_search.cli.init import init_cmd
from bylaw_search.cli.registry import registry_app
from bylaw_search.cli.remove import remove_cmd
from bylaw_search.cli.search import search_cmd
from bylaw_search.cli.show import show_cmd
from bylaw_search.cli.status import status_cmd
from bylaw_search.logging_config import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("bylaw-search")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"bylaw-search {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="bylaw-search",
    help=(
        "Bylaw search: ingest municipal bylaws and search them semantically.\n\n"
        "  bylaw-search ingest   Extract, chunk, embed and index bylaw documents.\n"
        "  bylaw-search search   Ask a question; results are checked against the registry."
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
        bool, typer.Option("--verbose", "-v", help="Debug logging.")
    ] = False,
    json_logs: Annotated[
        bool, typer.Option("--json-logs", help="Log one JSON object per line (batch use).")
    ] = False,
) -> None:
    """Bylaw search CLI."""
    configure_logging(logging.DEBUG if verbose else logging.INFO, json_lines=json_logs)


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("remove")(remove_cmd)
app.command("show")(show_cmd)
app.add_typer(registry_app, name="registry")


@app.command("version")
def version_cmd() -> None:
    """Show the installed bylaw-search version."""
    typer.echo(f"bylaw-search {_installed_version()}")


if __name__ == "__main__":
    app()
