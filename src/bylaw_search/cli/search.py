"""bylaw-search search: query the index from the terminal."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from bylaw_search.cli.common import console, load_cli_config, require_api_key, resolve_db
from bylaw_search.cli.errors import err_invalid_query, err_no_db, err_search_failed
from bylaw_search.errors import QueryValidationError, SearchFailed
from bylaw_search.factory import build_search_service, open_database, open_registry


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language question.")],
    limit: Annotated[
        int | None, typer.Option("--limit", "-n", help="Maximum results (1-20).")
    ] = None,
    min_score: Annotated[
        float | None, typer.Option("--min-score", help="Minimum similarity (0-1).")
    ] = None,
    bylaw: Annotated[
        str | None, typer.Option("--bylaw", "-b", help="Restrict to one bylaw number.")
    ] = None,
    category: Annotated[
        str | None, typer.Option("--category", "-c", help="Restrict to a category.")
    ] = None,
    date_from: Annotated[
        str | None, typer.Option("--date-from", help="Enacted on/after YYYY-MM-DD.")
    ] = None,
    date_to: Annotated[
        str | None, typer.Option("--date-to", help="Enacted on/before YYYY-MM-DD.")
    ] = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the raw API response as JSON.")
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: index.db from config)."),
    ] = None,
) -> None:
    """Search indexed bylaws."""
    cfg = load_cli_config()
    db_path = resolve_db(cfg, db)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    require_api_key(cfg)

    filters = {
        "bylawNumber": bylaw,
        "category": category,
        "dateFrom": date_from,
        "dateTo": date_to,
    }
    request = {
        "query": query,
        "filters": {k: v for k, v in filters.items() if v is not None},
        "limit": limit,
        "minScore": min_score,
    }

    database = open_database(cfg, db_path)
    registry, conn = open_registry(database)
    try:
        service = build_search_service(cfg, database, registry)
        response = service.handle(request)
    except QueryValidationError as exc:
        console.print(err_invalid_query(exc.client_message))
        raise typer.Exit(2) from exc
    except SearchFailed as exc:
        console.print(err_search_failed())
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(response, indent=2))
        return
    _show_results(response)


def _show_results(response: dict) -> None:
    if not response["results"]:
        console.print("[yellow]No results above the score threshold.[/]")
        return

    table = Table(show_header=True, header_style="bold", show_lines=True)
    table.add_column("Score", justify="right")
    table.add_column("Bylaw")
    table.add_column("Section")
    table.add_column("Excerpt")
    table.add_column("Verified")
    for r in response["results"]:
        excerpt = r["content"].replace("\n", " ")
        if len(excerpt) > 200:
            excerpt = excerpt[:200] + "…"
        bylaw = r["bylawNumber"]
        if r["title"]:
            bylaw += f"\n[dim]{r['title']}[/]"
        verified = "[green]✓[/]" if r["isVerified"] else "[yellow]✗[/]"
        if r["amendmentChainIssue"]:
            verified += f"\n[yellow]chain: {r['amendmentChainIssue']}[/]"
        table.add_row(f"{r['score']:.3f}", bylaw, r["section"] or "", excerpt, verified)
    console.print(table)
    meta = response["meta"]
    cached = " (cached)" if response["fromCache"] else ""
    console.print(
        f"[dim]{response['count']} result(s) in {meta['executionTimeMs']:.0f} ms{cached}[/]"
    )
