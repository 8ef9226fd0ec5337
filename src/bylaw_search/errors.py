"""Exception taxonomy for ingestion and retrieval.

Ingestion errors carry the document identity and batch index so the batch
job can log them and move on to the next document. Query-time errors are
logged in full server-side; only ``client_message`` crosses the API boundary.
"""

from __future__ import annotations


class BylawSearchError(Exception):
    """Base class for every error raised by bylaw_search."""

    client_message = "Search failed"


class ConfigError(BylawSearchError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


class ExtractionAmbiguity(BylawSearchError):
    """No metadata pattern matched. Non-fatal: recorded, never raised out of ingest."""

    def __init__(self, field: str, filename: str) -> None:
        super().__init__(f"no {field} pattern matched filename {filename!r}")
        self.field = field
        self.filename = filename


class EmbeddingProviderError(BylawSearchError):
    """An embedding call failed; fatal to the current document only."""

    def __init__(self, message: str, document: str = "", batch_index: int | None = None) -> None:
        super().__init__(message)
        self.document = document
        self.batch_index = batch_index


class IndexWriteError(BylawSearchError):
    """A batch upsert failed after retry exhaustion.

    Batches written before ``batch_index`` stay in the index; nothing is
    rolled back.
    """

    def __init__(
        self, message: str, document: str = "", batch_index: int = 0, written_batches: int = 0
    ) -> None:
        super().__init__(message)
        self.document = document
        self.batch_index = batch_index
        self.written_batches = written_batches


class QueryValidationError(BylawSearchError, ValueError):
    """Malformed search request, rejected before any network call."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.detail = message

    @property
    def client_message(self) -> str:  # type: ignore[override]
        return f"Invalid search parameters: {self}"


class IndexQueryError(BylawSearchError):
    """The vector index failed at query time."""


class SearchFailed(BylawSearchError):
    """Generic, client-safe failure raised at the query API boundary."""
