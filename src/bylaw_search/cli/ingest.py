"""bylaw-search ingest: index bylaw documents into the vector store.

Accepts files (.pdf, .txt, .md) and directories (expanded to the supported
files they contain; --recursive for subdirectories). Documents run through
the ingestion pipeline on a bounded worker pool; a failed document is
reported and the rest carry on.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from bylaw_search.cli.common import console, load_cli_config, require_api_key, resolve_db
from bylaw_search.cli.errors import err_no_sources, warn_partial_index
from bylaw_search.factory import build_pipeline, open_database
from bylaw_search.ingest.chunker import BylawChunker
from bylaw_search.ingest.documents import (
    SUPPORTED_EXTENSIONS,
    Document,
    extract_text,
    normalize_text,
    scan_directory,
)
from bylaw_search.ingest.metadata import extract_metadata
from bylaw_search.ingest.pipeline import IngestSummary, run_batch


def ingest_cmd(
    source: Annotated[
        list[Path] | None,
        typer.Option("--source", "-s", help="Document file or directory (repeatable)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: index.db from config)."),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option("--workers", "-w", min=1, help="Documents processed concurrently."),
    ] = None,
    recursive: Annotated[
        bool,
        typer.Option("--recursive", help="Recurse into subdirectories."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show extracted metadata and chunk counts only."),
    ] = False,
) -> None:
    """Ingest bylaw documents into the search index."""
    if not source:
        console.print(err_no_sources())
        raise typer.Exit(1)
    paths = _expand_sources(source, recursive=recursive)
    if not paths:
        console.print("[yellow]No supported documents found to ingest.[/]")
        raise typer.Exit(0)

    cfg = load_cli_config()
    documents = [Document.from_path(p) for p in paths]

    if dry_run:
        chunker = BylawChunker(cfg.chunking.chunk_size, cfg.chunking.overlap)
        _show_dry_run(documents, chunker)
        return

    require_api_key(cfg)
    database = open_database(cfg, resolve_db(cfg, db))
    pipeline = build_pipeline(cfg, database)

    console.print(f"[bold]→ Ingesting {len(documents)} document(s)[/]")
    with console.status("Embedding and indexing…"):
        summary = run_batch(pipeline, documents, workers=workers or cfg.ingest.workers)

    _show_summary(summary)
    if summary.failed:
        raise typer.Exit(1)


def _expand_sources(sources: list[Path], recursive: bool) -> list[Path]:
    paths: list[Path] = []
    for src in sources:
        if src.is_dir():
            paths.extend(scan_directory(src, recursive=recursive))
        elif src.is_file() and src.suffix.lower() in SUPPORTED_EXTENSIONS:
            paths.append(src)
        elif src.is_file():
            console.print(f"  [red]✗ Unsupported file type:[/] {src.suffix!r}, skipping {src}")
        else:
            console.print(f"  [red]✗ Not found:[/] {src}")
    return paths


def _show_dry_run(documents: list[Document], chunker: BylawChunker) -> None:
    table = Table(title="Dry run", show_header=True, header_style="bold")
    table.add_column("File")
    table.add_column("Bylaw")
    table.add_column("Title")
    table.add_column("Consolidated")
    table.add_column("Chunks", justify="right")
    for doc in documents:
        text = normalize_text(extract_text(doc))
        meta = extract_metadata(doc.filename, text)
        table.add_row(
            doc.filename,
            meta.number or "[yellow]unknown[/]",
            meta.title or "",
            "yes" if meta.is_consolidated else "",
            str(len(chunker.chunk(text))),
        )
    console.print(table)
    console.print("[dim]Dry run: nothing written to the index[/]")


def _show_summary(summary: IngestSummary) -> None:
    for outcome in summary.outcomes:
        if outcome.ok:
            console.print(
                f"  [green]✓[/] {outcome.filename}  bylaw {outcome.bylaw_number}  "
                f"{len(outcome.record_ids)} chunks"
            )
            for warning in outcome.warnings:
                console.print(f"    [yellow]⚠ {warning}[/]")
        else:
            console.print(
                f"  [red]✗[/] {outcome.filename}  bylaw {outcome.bylaw_number}: {outcome.error}"
            )
            if outcome.batches_written:
                console.print(warn_partial_index(outcome.filename, outcome.batches_written))
    console.print(
        f"\n[bold]{len(summary.succeeded)} succeeded, {len(summary.failed)} failed, "
        f"{summary.records_written} records written[/]"
    )
