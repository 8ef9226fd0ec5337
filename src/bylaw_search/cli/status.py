"""bylaw-search status: configuration, index and registry overview."""

from __future__ import annotations

from contextlib import closing
from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel

from bylaw_search.cli.common import console, load_cli_config, resolve_db
from bylaw_search.config import BylawSearchConfig
from bylaw_search.db.connection import Database
from bylaw_search.db.registry import BylawRegistry
from bylaw_search.db.vectors import SqliteVectorIndex


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: index.db from config)."),
    ] = None,
) -> None:
    """Show configuration, index size and registry size."""
    cfg = load_cli_config()
    db_path = resolve_db(cfg, db)

    _show_config_panel(cfg, db_path)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n  Run:  bylaw-search init",
                title="[bold]Index[/]",
                expand=False,
            )
        )
        return

    database = Database(db_path)
    index = SqliteVectorIndex(database)
    with closing(database.connect()) as conn:
        registry = BylawRegistry(conn)
        bylaws = registry.count_bylaws()
        sections = conn.execute("SELECT COUNT(*) FROM bylaw_sections").fetchone()[0]
        indexed = conn.execute(
            "SELECT COUNT(DISTINCT bylaw_number) FROM vector_records WHERE namespace = ?",
            (cfg.index.namespace,),
        ).fetchone()[0]

    records = index.count(cfg.index.namespace)
    lines = [
        f"Records:   [bold]{records:,}[/]  (namespace {cfg.index.namespace})",
        f"Bylaws:    [bold]{indexed}[/] indexed",
    ]
    if records == 0:
        lines.append("[dim]Nothing indexed yet.  Run:  bylaw-search ingest --source <dir>[/]")
    console.print(Panel("\n".join(lines), title="[bold]Index[/]", expand=False))

    reg_lines = [f"Bylaws: [bold]{bylaws}[/]  |  Sections: [bold]{sections}[/]"]
    if bylaws == 0:
        reg_lines.append(
            "[yellow]Registry is empty: no result can be verified.[/]\n"
            "  Run:  bylaw-search registry load <file.yaml>"
        )
    console.print(Panel("\n".join(reg_lines), title="[bold]Registry[/]", expand=False))


def _show_config_panel(cfg: BylawSearchConfig, db_path: Path) -> None:
    db_info = str(db_path)
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"
    lines = [
        f"Database:   {db_info}",
        f"Embedding:  {cfg.embedding.model} ({cfg.embedding.dimensions} dims)",
        f"Chunking:   {cfg.chunking.chunk_size} chars, {cfg.chunking.overlap} overlap",
        f"Cache:      {cfg.cache.capacity} entries, {cfg.cache.ttl_seconds:.0f}s TTL",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Configuration[/]", expand=False))
