"""Rich error messages for the CLI.

Every error shown to the user says what went wrong and the exact action
that fixes it.

Usage:
    from bylaw_search.cli.errors import err_no_db
    console.print(err_no_db(str(db)))
    raise typer.Exit(1)
"""

from __future__ import annotations

_PROVIDER_ENV = {
    "openai": "OPENAI_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "azure": "AZURE_API_KEY",
    "voyage": "VOYAGE_API_KEY",
}


def err_no_api_key(model: str) -> str:
    """No API key for the provider of *model*."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}' (embedding model {model}).\n"
        f"  Set:  export {env_var}=..."
    )


def err_no_db(db_path: str) -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  bylaw-search init"
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix bylaw-search.yaml (or ~/.bylaw-search/config.yaml) and retry."
    )


def err_invalid_query(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  Queries must be 2-500 characters, --limit 1-20, --min-score 0-1,\n"
        "  and dates YYYY-MM-DD."
    )


def err_search_failed() -> str:
    return (
        "[red]Error:[/] Search failed.\n"
        "  Re-run with --verbose for details, then retry."
    )


def err_bylaw_not_found(bylaw_number: str) -> str:
    return (
        f"[yellow]Bylaw not found:[/] '{bylaw_number}' is not in the registry.\n"
        "  Run:  bylaw-search registry list  to see registered bylaws."
    )


def err_record_not_found(record_id: str) -> str:
    return (
        f"[red]Error:[/] No indexed record with id '{record_id}'.\n"
        "  Ids look like bylaw-3210-0; run:  bylaw-search search --json ...  to find them."
    )


def err_no_sources() -> str:
    return "[red]Error:[/] No --source specified. Use --source FILE_OR_DIR."


def warn_partial_index(filename: str, written_batches: int) -> str:
    """Shown when a document failed after some batches were already written."""
    return (
        f"[yellow]⚠[/] {filename}: {written_batches} batch(es) were written before the failure\n"
        "  and remain in the index. Re-run ingest for this file to overwrite them."
    )
