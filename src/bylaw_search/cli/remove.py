"""bylaw-search remove: delete every indexed chunk of a bylaw."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from bylaw_search.cli.common import console, load_cli_config, resolve_db
from bylaw_search.cli.errors import err_no_db
from bylaw_search.factory import build_index, open_database


def remove_cmd(
    bylaw_number: Annotated[str, typer.Argument(help="Bylaw number whose vectors to delete.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: index.db from config)."),
    ] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
) -> None:
    """Remove a bylaw's records from the search index (registry untouched)."""
    cfg = load_cli_config()
    db_path = resolve_db(cfg, db)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    index = build_index(cfg, open_database(cfg, db_path))
    ids = index.list_ids(cfg.index.namespace, bylaw_number)
    if not ids:
        console.print(
            f"[yellow]Nothing indexed for bylaw '{bylaw_number}'.[/]\n"
            "  Run:  bylaw-search status  to see what is indexed."
        )
        raise typer.Exit(0)

    if not yes and not typer.confirm(
        f"Delete {len(ids)} record(s) for bylaw {bylaw_number}?", default=False
    ):
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(0)

    deleted = index.delete_by_bylaw(cfg.index.namespace, bylaw_number)
    console.print(f"[green]✓[/] Removed {deleted} record(s) for bylaw {bylaw_number}")
