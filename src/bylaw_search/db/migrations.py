"""Forward-only migration runner for the bylaw search database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# Canonical registry: written by the curation process, read by verification.
_V1_SQL = """
CREATE TABLE IF NOT EXISTS bylaws (
    bylaw_number        TEXT PRIMARY KEY,
    title               TEXT NOT NULL,
    is_consolidated     INTEGER NOT NULL DEFAULT 0,
    consolidated_date   TEXT,
    enactment_date      TEXT,
    amendments          TEXT NOT NULL DEFAULT '',
    official_url        TEXT,
    pdf_path            TEXT,
    last_verified       DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS bylaw_sections (
    bylaw_number    TEXT NOT NULL REFERENCES bylaws(bylaw_number) ON DELETE CASCADE,
    section_number  TEXT NOT NULL,
    title           TEXT,
    content         TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (bylaw_number, section_number)
);

CREATE TABLE IF NOT EXISTS citation_feedback (
    bylaw_number    TEXT NOT NULL,
    section         TEXT NOT NULL,
    feedback        TEXT NOT NULL,
    user_comment    TEXT,
    recorded_at     DATETIME NOT NULL DEFAULT (datetime('now'))
);
"""

# Vector index: one row per VectorRecord, keyed by (namespace, id) so that
# re-ingestion overwrites in place. Filterable fields are lifted out of the
# metadata JSON into columns.
_V2_SQL = """
CREATE TABLE IF NOT EXISTS vector_records (
    namespace       TEXT NOT NULL,
    id              TEXT NOT NULL,
    embedding       BLOB NOT NULL,
    metadata        TEXT NOT NULL DEFAULT '{}',
    bylaw_number    TEXT,
    category        TEXT,
    date_enacted    TEXT,
    updated_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (namespace, id)
);

CREATE INDEX IF NOT EXISTS idx_vector_records_bylaw
    ON vector_records (namespace, bylaw_number);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]

CURRENT_VERSION = MIGRATIONS[-1][0]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    run_migrations(conn)
