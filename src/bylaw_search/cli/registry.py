"""bylaw-search registry: curate the canonical bylaw registry.

Commands:
  bylaw-search registry add NUMBER --title T [--section S]...   register a bylaw
  bylaw-search registry load FILE.yaml                         upsert from YAML
  bylaw-search registry seed DIR                               one entry per bylaw PDF
  bylaw-search registry list [--search TERM]                   list / find bylaws
  bylaw-search registry show NUMBER                            one bylaw with sections
  bylaw-search registry feedback NUMBER SECTION VALUE          record citation feedback
"""

from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from bylaw_search.cli.common import console, load_cli_config, resolve_db
from bylaw_search.cli.errors import err_bylaw_not_found
from bylaw_search.db.migrations import initialize
from bylaw_search.db.models import BylawRecord, BylawSection
from bylaw_search.db.registry import (
    FEEDBACK_VALUES,
    BylawRegistry,
    load_registry_yaml,
    seed_from_pdf_dir,
)
from bylaw_search.factory import open_database

registry_app = typer.Typer(
    name="registry",
    help="Curate the canonical bylaw registry (add, load, seed, list, show, feedback).",
    add_completion=False,
)

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Database path (default: index.db from config)."),
]


def _open(db: Path | None) -> sqlite3.Connection:
    cfg = load_cli_config()
    conn = open_database(cfg, resolve_db(cfg, db)).connect()
    initialize(conn)
    return conn


@registry_app.command("add")
def registry_add_cmd(
    number: Annotated[str, typer.Argument(help="Bylaw number, e.g. 3210.")],
    title: Annotated[str, typer.Option("--title", "-t", help="Official title.")],
    section: Annotated[
        list[str] | None,
        typer.Option("--section", "-s", help="Verified section number (repeatable)."),
    ] = None,
    consolidated: Annotated[
        bool, typer.Option("--consolidated", help="Registry copy is a consolidation.")
    ] = False,
    consolidated_date: Annotated[
        str | None, typer.Option("--consolidated-date", help="Consolidation cutoff.")
    ] = None,
    url: Annotated[str | None, typer.Option("--url", help="Official URL.")] = None,
    replace: Annotated[
        bool, typer.Option("--replace", help="Overwrite an existing entry.")
    ] = False,
    db: _DbOption = None,
) -> None:
    """Register a bylaw (and its verified sections)."""
    record = BylawRecord(
        bylaw_number=number,
        title=title,
        is_consolidated=consolidated,
        consolidated_date=consolidated_date,
        official_url=url,
        sections=[BylawSection(bylaw_number=number, section_number=s) for s in section or []],
    )
    with closing(_open(db)) as conn:
        registry = BylawRegistry(conn)
        if registry.get_bylaw(number) is not None:
            if not replace:
                console.print(
                    f"[yellow]Already registered:[/] bylaw {number}\n"
                    "  Re-run with --replace to overwrite it."
                )
                raise typer.Exit(1)
            registry.update_bylaw(record)
        else:
            registry.add_bylaw(record)
    console.print(f"[green]✓[/] Registered bylaw {number} ({len(record.sections)} sections)")


@registry_app.command("load")
def registry_load_cmd(
    path: Annotated[Path, typer.Argument(help="Registry YAML file.", exists=True, dir_okay=False)],
    db: _DbOption = None,
) -> None:
    """Upsert registry entries from a curator-maintained YAML file."""
    with closing(_open(db)) as conn:
        try:
            count = load_registry_yaml(BylawRegistry(conn), path)
        except (KeyError, TypeError, AttributeError) as exc:
            console.print(
                f"[red]Error:[/] Malformed registry file '{path}': {exc}\n"
                "  Each entry under 'bylaws:' needs at least a bylaw_number."
            )
            raise typer.Exit(1) from exc
        except sqlite3.IntegrityError as exc:
            console.print(
                f"[red]Error:[/] Registry file '{path}' was not loaded: {exc}\n"
                "  No entries were written. Remove duplicate section numbers and retry."
            )
            raise typer.Exit(1) from exc
    console.print(f"[green]✓[/] Loaded {count} bylaw(s) from {path}")


@registry_app.command("seed")
def registry_seed_cmd(
    pdf_dir: Annotated[Path, typer.Argument(help="Directory of bylaw PDFs.", file_okay=False)],
    db: _DbOption = None,
) -> None:
    """Register one bylaw per recognised PDF filename (existing entries kept)."""
    if not pdf_dir.is_dir():
        console.print(f"[red]Error:[/] Not a directory: '{pdf_dir}'")
        raise typer.Exit(1)
    cfg = load_cli_config()
    with closing(_open(db)) as conn:
        added = seed_from_pdf_dir(BylawRegistry(conn), pdf_dir, cfg.registry.official_url_base)
    console.print(f"[green]✓[/] Added {added} bylaw(s) from {pdf_dir}")


@registry_app.command("list")
def registry_list_cmd(
    search: Annotated[
        str | None, typer.Option("--search", help="Match title or number.")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", min=1, help="Max rows with --search.")] = 20,
    db: _DbOption = None,
) -> None:
    """List registered bylaws."""
    with closing(_open(db)) as conn:
        registry = BylawRegistry(conn)
        records = registry.find_similar(search, limit) if search else registry.list_bylaws()

    if not records:
        console.print("[yellow]No registered bylaws found.[/]")
        raise typer.Exit(0)

    table = Table(title="Bylaw Registry", show_header=True, header_style="bold")
    table.add_column("Number", style="bold")
    table.add_column("Title")
    table.add_column("Consolidated")
    table.add_column("Amends")
    for r in records:
        consolidated = r.consolidated_date or ("yes" if r.is_consolidated else "")
        table.add_row(r.bylaw_number, r.title, consolidated, ", ".join(r.amended_bylaws))
    console.print(table)


@registry_app.command("show")
def registry_show_cmd(
    number: Annotated[str, typer.Argument(help="Bylaw number.")],
    db: _DbOption = None,
) -> None:
    """Show one bylaw with its verified sections and feedback."""
    with closing(_open(db)) as conn:
        registry = BylawRegistry(conn)
        record = registry.get_bylaw(number)
        feedback = registry.list_feedback(number) if record else []
    if record is None:
        console.print(err_bylaw_not_found(number))
        raise typer.Exit(1)

    console.print(f"[bold]Bylaw {record.bylaw_number}[/]  {record.title}")
    if record.official_url:
        console.print(f"  URL: {record.official_url}")
    if record.is_consolidated:
        console.print(f"  Consolidated: {record.consolidated_date or 'yes'}")
    for s in record.sections:
        console.print(f"  § {s.section_number}  {s.title or ''}")
    for f in feedback:
        console.print(f"  [dim]feedback {f['section']}: {f['feedback']}[/]")


@registry_app.command("feedback")
def registry_feedback_cmd(
    number: Annotated[str, typer.Argument(help="Bylaw number.")],
    section: Annotated[str, typer.Argument(help="Section cited.")],
    value: Annotated[
        str, typer.Argument(help=f"One of: {', '.join(sorted(FEEDBACK_VALUES))}.")
    ],
    comment: Annotated[str | None, typer.Option("--comment", help="Free-text note.")] = None,
    db: _DbOption = None,
) -> None:
    """Record feedback about a citation for curator review."""
    with closing(_open(db)) as conn:
        try:
            BylawRegistry(conn).record_feedback(number, section, value, comment)
        except ValueError as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1) from exc
    console.print(f"[green]✓[/] Recorded '{value}' for bylaw {number} section {section}")
