"""bylaw-search init: create the database and a default bylaw-search.yaml."""

from __future__ import annotations

from contextlib import closing
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from bylaw_search.config import PROJECT_CONFIG_NAME, BylawSearchConfig, write_project_config
from bylaw_search.db.connection import Database
from bylaw_search.db.migrations import initialize

console = Console()

_GITIGNORE_ENTRIES = (".bylaw-search.db", ".bylaw-search.db-wal", ".bylaw-search.db-shm")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
) -> None:
    """Initialize a bylaw search project (database + config)."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    config_existed = (project_dir / PROJECT_CONFIG_NAME).exists()
    cfg_path = write_project_config(project_dir)
    if config_existed:
        console.print(f"  [dim]↷ {cfg_path.name} already exists (kept)[/]")
    else:
        console.print(f"  [green]✓[/] {cfg_path.name}")

    db_path = project_dir / BylawSearchConfig().index.db
    with closing(Database(db_path).connect()) as conn:
        initialize(conn)
    console.print(f"  [green]✓[/] {db_path.name} (schema up to date)")

    _update_gitignore(project_dir)

    console.print("\n[bold green]✓ Project initialized.[/]")
    console.print("\nNext steps:")
    console.print("  1. export OPENAI_API_KEY=...                  (embedding provider key)")
    console.print("  2. bylaw-search registry load registry.yaml   (canonical bylaws)")
    console.print("  3. bylaw-search ingest --source bylaws/        (index documents)")
    console.print('  4. bylaw-search search "construction hours"   (query)')


def _update_gitignore(project_dir: Path) -> None:
    gitignore = project_dir / ".gitignore"
    existing = gitignore.read_text(encoding="utf-8").splitlines() if gitignore.exists() else []
    missing = [e for e in _GITIGNORE_ENTRIES if e not in existing]
    if not missing:
        return
    lines = existing + missing
    gitignore.write_text("\n".join(lines) + "\n", encoding="utf-8")
    console.print("  [green]✓[/] .gitignore")
