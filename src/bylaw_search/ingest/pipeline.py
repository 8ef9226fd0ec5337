"""Per-document ingestion pipeline and the bounded-concurrency batch job.

One document runs sequentially: extract text, normalize, extract metadata,
chunk, classify each chunk, embed (batch by batch) and write (batch by
batch). Documents are independent; ``run_batch`` fans them out over a
thread pool and a failure in one never cancels the others.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from bylaw_search.db.models import UNKNOWN_BYLAW, Chunk, VectorRecord
from bylaw_search.errors import BylawSearchError
from bylaw_search.ingest.chunker import BylawChunker
from bylaw_search.ingest.documents import Document, extract_text, normalize_text
from bylaw_search.ingest.embedding import EmbeddingClient
from bylaw_search.ingest.index_writer import IndexWriter
from bylaw_search.ingest.metadata import BylawMetadata, extract_from_filename, extract_metadata
from bylaw_search.ingest.sections import categorize, section_for_chunk

logger = logging.getLogger(__name__)

SOURCE_TAG = "bylaws"


@dataclass
class DocumentOutcome:
    """Result of ingesting one document; ``error`` is None on success."""

    filename: str
    bylaw_number: str = UNKNOWN_BYLAW
    record_ids: list[str] = field(default_factory=list)
    chunks: int = 0
    batches_written: int = 0
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class IngestSummary:
    outcomes: list[DocumentOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[DocumentOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[DocumentOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def records_written(self) -> int:
        return sum(len(o.record_ids) for o in self.succeeded)


class IngestPipeline:
    def __init__(
        self,
        embedder: EmbeddingClient,
        writer: IndexWriter,
        chunker: BylawChunker | None = None,
    ) -> None:
        self._embedder = embedder
        self._writer = writer
        self._chunker = chunker or BylawChunker()

    def build_records(
        self, document: Document, meta: BylawMetadata, chunks: list[Chunk]
    ) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(record_id, metadata)`` pairs for *chunks*, in chunk order."""
        number = meta.number or UNKNOWN_BYLAW
        processed = datetime.now(timezone.utc).isoformat()
        pairs = []
        for chunk in chunks:
            section = section_for_chunk(chunk.text, chunk.index)
            metadata: dict[str, Any] = {
                "bylaw_number": number,
                "title": meta.title,
                "section": section.section,
                "section_title": section.section_title,
                "category": categorize(meta.title, chunk.text),
                "chunk": chunk.index,
                "text": chunk.text,
                "filename": document.filename,
                "file_size": document.size,
                "last_modified": document.modified.isoformat(),
                "processing_date": processed,
                "is_consolidated": meta.is_consolidated,
                "consolidated_date": meta.consolidated_date,
                "amended_bylaw": meta.amended_bylaw,
                "amendment_references": list(meta.amendment_references),
                "date_enacted": meta.enactment_date,
                "last_amendment_date": meta.last_amendment_date,
                "source": SOURCE_TAG,
            }
            pairs.append((VectorRecord.make_id(number, chunk.index), metadata))
        return pairs

    def process(self, document: Document) -> DocumentOutcome:
        """Ingest *document*. Raises on embedding or index failure."""
        outcome = DocumentOutcome(filename=document.filename)
        text = normalize_text(extract_text(document))
        meta = extract_metadata(document.filename, text)
        outcome.warnings.extend(str(a) for a in meta.ambiguities)
        for note in meta.ambiguities:
            logger.warning("%s: %s", document.filename, note)
        if meta.number is None:
            logger.warning(
                "%s: stored under bylaw '%s'; ids may collide with other unnumbered documents",
                document.filename,
                UNKNOWN_BYLAW,
            )
        outcome.bylaw_number = meta.number or UNKNOWN_BYLAW

        chunks = self._chunker.chunk(text)
        outcome.chunks = len(chunks)
        if not chunks:
            outcome.warnings.append("no text extracted")
            logger.warning("%s: no text extracted; nothing indexed", document.filename)
            return outcome

        pairs = self.build_records(document, meta, chunks)
        vectors = self._embedder.embed_texts([c.text for c in chunks], document.filename)
        records = [
            VectorRecord(id=record_id, embedding=vector, metadata=metadata)
            for (record_id, metadata), vector in zip(pairs, vectors)
        ]
        outcome.batches_written = self._writer.write(records, document.filename)
        outcome.record_ids = [r.id for r in records]
        logger.info(
            "%s: indexed %d chunks as bylaw %s",
            document.filename,
            len(records),
            outcome.bylaw_number,
        )
        return outcome

    def run(self, document: Document) -> DocumentOutcome:
        """Like process() but records failures on the outcome instead of raising.

        The bylaw number comes from the filename alone, so a failed outcome
        still names the bylaw it was for.
        """
        number = extract_from_filename(document.filename).number or UNKNOWN_BYLAW
        try:
            return self.process(document)
        except BylawSearchError as exc:
            batch = getattr(exc, "batch_index", None)
            logger.error(
                "%s: ingestion of bylaw %s failed at batch %s: %s",
                document.filename,
                number,
                batch,
                exc,
                extra={"document": document.filename, "batch_index": batch},
            )
            return DocumentOutcome(
                filename=document.filename,
                bylaw_number=number,
                batches_written=getattr(exc, "written_batches", 0),
                error=str(exc),
            )
        except Exception as exc:
            logger.exception("%s: ingestion of bylaw %s failed", document.filename, number)
            return DocumentOutcome(
                filename=document.filename,
                bylaw_number=number,
                error=f"{type(exc).__name__}: {exc}",
            )


def run_batch(
    pipeline: IngestPipeline, documents: Iterable[Document], workers: int = 4
) -> IngestSummary:
    """Ingest *documents* with at most *workers* in flight; returns all outcomes."""
    if workers < 1:
        raise ValueError("workers must be >= 1")
    summary = IngestSummary()
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as pool:
        futures = [pool.submit(pipeline.run, doc) for doc in documents]
        for future in as_completed(futures):
            summary.outcomes.append(future.result())
    summary.outcomes.sort(key=lambda o: o.filename)
    logger.info(
        "ingestion finished: %d succeeded, %d failed, %d records written",
        len(summary.succeeded),
        len(summary.failed),
        summary.records_written,
    )
    return summary
