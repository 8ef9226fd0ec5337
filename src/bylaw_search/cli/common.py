"""Shared helpers for CLI commands: config loading and database paths."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from bylaw_search.cli.errors import err_config, err_no_api_key
from bylaw_search.config import BylawSearchConfig, load_config
from bylaw_search.errors import ConfigError
from bylaw_search.ingest.embedding import validate_api_key

console = Console()


def load_cli_config() -> BylawSearchConfig:
    """load_config() with errors rendered for the terminal."""
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def resolve_db(cfg: BylawSearchConfig, db: Path | None) -> Path:
    return db if db is not None else Path(cfg.index.db)


def require_api_key(cfg: BylawSearchConfig) -> None:
    try:
        validate_api_key(cfg.embedding.model)
    except EnvironmentError as exc:
        console.print(err_no_api_key(cfg.embedding.model))
        raise typer.Exit(1) from exc
