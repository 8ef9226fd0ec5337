"""bylaw-search show: print one indexed record by id."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bylaw_search.cli.common import console, load_cli_config, resolve_db
from bylaw_search.cli.errors import err_no_db, err_record_not_found
from bylaw_search.factory import build_index, open_database

_SHOWN_FIELDS = (
    "bylaw_number",
    "title",
    "section",
    "section_title",
    "category",
    "date_enacted",
    "is_consolidated",
    "consolidated_date",
    "amended_bylaw",
    "filename",
    "chunk",
)


def show_cmd(
    record_id: Annotated[str, typer.Argument(help="Record id, e.g. bylaw-3210-0.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: index.db from config)."),
    ] = None,
) -> None:
    """Show the stored metadata and text of one indexed chunk."""
    cfg = load_cli_config()
    db_path = resolve_db(cfg, db)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    index = build_index(cfg, open_database(cfg, db_path))
    match = index.fetch(cfg.index.namespace, record_id)
    if match is None:
        console.print(err_record_not_found(record_id))
        raise typer.Exit(1)

    meta = match.metadata
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for name in _SHOWN_FIELDS:
        if meta.get(name) not in (None, ""):
            table.add_row(name, Text(str(meta[name])))
    console.print(table)
    console.print(Panel(Text(meta.get("text", "")), title=match.id, expand=False))
