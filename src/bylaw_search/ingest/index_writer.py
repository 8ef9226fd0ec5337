"""Batched, retried writes of VectorRecords to the vector index."""

from __future__ import annotations

import logging

from bylaw_search.db.models import VectorRecord
from bylaw_search.db.vectors import VectorIndex
from bylaw_search.errors import IndexWriteError
from bylaw_search.retry import RetryPolicy

logger = logging.getLogger(__name__)


class IndexWriter:
    """Upsert one document's records in bounded batches.

    Each batch is retried according to *retry*. When a batch exhausts its
    retries, IndexWriteError is raised and the batches already written are
    left in place: a failed document may be partially indexed until it is
    re-ingested (ids are deterministic, so re-ingestion overwrites).
    """

    def __init__(
        self,
        index: VectorIndex,
        namespace: str = "bylaws",
        batch_size: int = 100,
        retry: RetryPolicy | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._index = index
        self.namespace = namespace
        self.batch_size = batch_size
        self._retry = retry or RetryPolicy()

    def write(self, records: list[VectorRecord], document: str = "") -> int:
        """Write *records*; returns the number of batches written."""
        written = 0
        for batch_index, start in enumerate(range(0, len(records), self.batch_size)):
            batch = records[start : start + self.batch_size]
            label = f"index batch {batch_index} of {document or '<unnamed>'}"
            try:
                self._retry.call(lambda: self._index.upsert(self.namespace, batch), label)
            except Exception as exc:
                if written:
                    logger.warning(
                        "%s: %d earlier batch(es) remain in the index (not rolled back)",
                        document,
                        written,
                    )
                raise IndexWriteError(
                    f"{label} failed: {exc}",
                    document=document,
                    batch_index=batch_index,
                    written_batches=written,
                ) from exc
            written += 1
        return written
