"""Vector index: the narrow upsert/query interface plus a sqlite-vec backend.

Any service offering ``upsert(namespace, records)`` and
``query(namespace, vector, top_k, filter)`` can stand in for
``SqliteVectorIndex``; the ingestion and search layers depend only on the
``VectorIndex`` protocol.

Filters use a small operator vocabulary over the filterable fields::

    {"bylaw_number": {"$eq": "3210"}, "date_enacted": {"$gte": "2019-01-01"}}
    {"bylaw_number": {"$nin": ["3210", "4013"]}}
"""

from __future__ import annotations

import json
import logging
from contextlib import closing
from typing import Any, Protocol

import sqlite_vec

from bylaw_search.db.connection import Database
from bylaw_search.db.migrations import initialize
from bylaw_search.db.models import Match, VectorRecord

logger = logging.getLogger(__name__)

# Metadata keys that are lifted into indexed columns and may be filtered on.
FILTER_FIELDS: frozenset[str] = frozenset(["bylaw_number", "category", "date_enacted"])

_OPERATORS: dict[str, str] = {"$eq": "=", "$gte": ">=", "$lte": "<="}


class VectorIndex(Protocol):
    def upsert(self, namespace: str, records: list[VectorRecord]) -> None: ...

    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        filter: dict[str, dict[str, Any]] | None = None,
    ) -> list[Match]: ...


class SqliteVectorIndex:
    """Exact cosine-similarity index stored in the project database.

    Each call opens its own short-lived connection, so one instance can be
    shared by ingestion workers and concurrent search requests. Embeddings
    are stored as float32 blobs and compared with sqlite-vec's
    ``vec_distance_cosine``; the returned score is ``1 - distance``.

    Args:
        db: Database wrapper pointing at the project database.
        dimensions: Expected embedding dimension; mismatching vectors are
            rejected. None disables the check.
    """

    def __init__(self, db: Database, dimensions: int | None = None) -> None:
        if dimensions is not None and dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self._db = db
        self.dimensions = dimensions
        with closing(self._db.connect()) as conn:
            initialize(conn)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        """Insert or overwrite *records* (keyed by namespace + id) atomically."""
        if not records:
            return
        rows = []
        for record in records:
            self._check_dimensions(record.embedding)
            meta = record.metadata
            rows.append(
                (
                    namespace,
                    record.id,
                    sqlite_vec.serialize_float32(record.embedding),
                    json.dumps(meta),
                    meta.get("bylaw_number"),
                    meta.get("category"),
                    meta.get("date_enacted"),
                )
            )
        with closing(self._db.connect()) as conn:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO vector_records
                        (namespace, id, embedding, metadata, bylaw_number, category, date_enacted)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(namespace, id) DO UPDATE SET
                        embedding = excluded.embedding,
                        metadata = excluded.metadata,
                        bylaw_number = excluded.bylaw_number,
                        category = excluded.category,
                        date_enacted = excluded.date_enacted,
                        updated_at = datetime('now')
                    """,
                    rows,
                )

    def delete_by_bylaw(self, namespace: str, bylaw_number: str) -> int:
        """Delete every record of *bylaw_number*; returns the number deleted."""
        with closing(self._db.connect()) as conn:
            with conn:
                cur = conn.execute(
                    "DELETE FROM vector_records WHERE namespace = ? AND bylaw_number = ?",
                    (namespace, bylaw_number),
                )
        return cur.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        filter: dict[str, dict[str, Any]] | None = None,
    ) -> list[Match]:
        """Return up to *top_k* matches, best (highest score) first.

        Equal scores come back in storage order; callers must not rely on
        tie ordering.
        """
        self._check_dimensions(vector)
        where, params = _build_where(filter or {})
        sql = (
            "SELECT id, metadata, 1 - vec_distance_cosine(embedding, ?) AS score "
            f"FROM vector_records WHERE namespace = ?{where} "
            "ORDER BY score DESC LIMIT ?"
        )
        with closing(self._db.connect()) as conn:
            rows = conn.execute(
                sql,
                (sqlite_vec.serialize_float32(vector), namespace, *params, top_k),
            ).fetchall()
        return [
            Match(id=r["id"], score=float(r["score"]), metadata=json.loads(r["metadata"]))
            for r in rows
        ]

    def fetch(self, namespace: str, record_id: str) -> Match | None:
        """Direct lookup by id; a direct hit scores 1.0."""
        with closing(self._db.connect()) as conn:
            row = conn.execute(
                "SELECT id, metadata FROM vector_records WHERE namespace = ? AND id = ?",
                (namespace, record_id),
            ).fetchone()
        if row is None:
            return None
        return Match(id=row["id"], score=1.0, metadata=json.loads(row["metadata"]))

    def count(self, namespace: str) -> int:
        with closing(self._db.connect()) as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM vector_records WHERE namespace = ?", (namespace,)
            ).fetchone()[0]

    def list_ids(self, namespace: str, bylaw_number: str | None = None) -> list[str]:
        sql = "SELECT id FROM vector_records WHERE namespace = ?"
        params: list[Any] = [namespace]
        if bylaw_number is not None:
            sql += " AND bylaw_number = ?"
            params.append(bylaw_number)
        with closing(self._db.connect()) as conn:
            return [r["id"] for r in conn.execute(sql + " ORDER BY id", params).fetchall()]

    def _check_dimensions(self, vector: list[float]) -> None:
        if self.dimensions is not None and len(vector) != self.dimensions:
            raise ValueError(
                f"Expected a {self.dimensions}-dimension vector, got {len(vector)}"
            )


def _build_where(filter: dict[str, dict[str, Any]]) -> tuple[str, list[Any]]:
    """Translate a filter dict into a SQL fragment over the indexed columns."""
    clauses: list[str] = []
    params: list[Any] = []
    for field_name, conditions in filter.items():
        if field_name not in FILTER_FIELDS:
            raise ValueError(f"Cannot filter on {field_name!r}")
        for op, value in conditions.items():
            if op == "$nin":
                values = list(value)
                if values:
                    marks = ", ".join("?" * len(values))
                    clauses.append(f"({field_name} IS NULL OR {field_name} NOT IN ({marks}))")
                    params.extend(values)
                continue
            if op not in _OPERATORS:
                raise ValueError(f"Unsupported filter operator {op!r}")
            clauses.append(f"{field_name} {_OPERATORS[op]} ?")
            params.append(value)
    where = "".join(f" AND {c}" for c in clauses)
    return where, params
