"""Bylaw search database layer: registry and vector index."""

from bylaw_search.db.connection import Database
from bylaw_search.db.migrations import MIGRATIONS, initialize, run_migrations
from bylaw_search.db.registry import BylawRegistry
from bylaw_search.db.vectors import SqliteVectorIndex, VectorIndex

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "BylawRegistry",
    "SqliteVectorIndex",
    "VectorIndex",
]
