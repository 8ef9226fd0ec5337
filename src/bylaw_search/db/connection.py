"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

# Seconds a connection waits on a locked database before raising.
DEFAULT_TIMEOUT = 30.0


class Database:
    """Bylaw search database (registry + vector index) with sqlite-vec loaded."""

    def __init__(self, db_path: Path | str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing).
            timeout: Busy timeout in seconds for every connection opened.
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._conn: sqlite3.Connection | None = None

    def connect(self, check_same_thread: bool = True) -> sqlite3.Connection:
        """Open a connection, load sqlite-vec, and return the connection.

        Pass ``check_same_thread=False`` when the connection is shared between
        worker threads behind the caller's own lock.
        """
        conn = sqlite3.connect(
            self.db_path, timeout=self.timeout, check_same_thread=check_same_thread
        )
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None
