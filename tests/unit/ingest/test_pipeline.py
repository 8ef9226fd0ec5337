"""Tests for IngestPipeline and run_batch."""

from __future__ import annotations

import pytest

from bylaw_search.db.vectors import SqliteVectorIndex
from bylaw_search.ingest.chunker import BylawChunker
from bylaw_search.ingest.embedding import EmbeddingClient, EmbeddingConfig
from bylaw_search.ingest.index_writer import IndexWriter
from bylaw_search.ingest.pipeline import IngestPipeline, run_batch
from bylaw_search.retry import NO_RETRY
from conftest import DIMS, FakeProvider, make_document

NOISE_TEXT = (
    "ANTI-NOISE BYLAW\n\n"
    "5(7)(a) Construction noise\n\n"
    "No person shall make construction noise except between the hours of "
    "7:00 a.m. and 7:00 p.m., except Sunday."
)


class ExplodingProvider(FakeProvider):
    """Fails for any batch containing the word EXPLODE."""

    def embed(self, texts):
        if any("EXPLODE" in t for t in texts):
            raise RuntimeError("provider unavailable")
        return super().embed(texts)


@pytest.fixture
def index(database):
    return SqliteVectorIndex(database, dimensions=DIMS)


def _pipeline(index, provider=None, chunker=None) -> IngestPipeline:
    embedder = EmbeddingClient(
        provider=provider or FakeProvider(),
        config=EmbeddingConfig(model="openai/test", dimensions=DIMS),
        retry=NO_RETRY,
    )
    writer = IndexWriter(index, namespace="bylaws", retry=NO_RETRY)
    return IngestPipeline(embedder, writer, chunker)


# ------------------------------------------------------------------
# Single document
# ------------------------------------------------------------------


def test_process_indexes_chunks_with_metadata(index):
    doc = make_document("bylaw-3210-anti-noise.txt", NOISE_TEXT)
    outcome = _pipeline(index).process(doc)

    assert outcome.ok
    assert outcome.bylaw_number == "3210"
    assert outcome.record_ids == ["bylaw-3210-0"]
    assert outcome.batches_written == 1

    meta = index.fetch("bylaws", "bylaw-3210-0").metadata
    assert meta["bylaw_number"] == "3210"
    assert meta["title"] == "anti noise"
    assert meta["section"] == "5(7)(a)"
    assert meta["section_title"] == "Construction noise"
    assert meta["category"] == "building"
    assert meta["chunk"] == 0
    assert "7:00 a.m." in meta["text"]
    assert meta["filename"] == "bylaw-3210-anti-noise.txt"
    assert meta["file_size"] == len(NOISE_TEXT.encode("utf-8"))
    assert meta["last_modified"].startswith("2024-01-15")
    assert meta["is_consolidated"] is False
    assert meta["source"] == "bylaws"


def test_reingestion_overwrites_instead_of_duplicating(index):
    doc = make_document("bylaw-3210-anti-noise.txt", NOISE_TEXT)
    pipeline = _pipeline(index)
    pipeline.process(doc)
    pipeline.process(doc)
    assert index.count("bylaws") == 1


def test_multiple_chunks_get_sequential_ids(index):
    paragraphs = "\n\n".join(f"{i}. Heading {i}\n" + "word " * 30 for i in range(1, 5))
    doc = make_document("bylaw-77-parks.txt", paragraphs)
    outcome = _pipeline(index, chunker=BylawChunker(chunk_size=200, overlap=0)).process(doc)

    assert outcome.chunks > 1
    assert outcome.record_ids == [f"bylaw-77-{i}" for i in range(outcome.chunks)]


def test_unnumbered_document_recorded_as_unknown_with_warnings(index, caplog):
    doc = make_document("scan0001.txt", "Some bylaw text.")
    outcome = _pipeline(index).process(doc)

    assert outcome.ok
    assert outcome.bylaw_number == "unknown"
    assert outcome.record_ids == ["bylaw-unknown-0"]
    assert len(outcome.warnings) == 2
    assert "may collide" in caplog.text


def test_empty_document_indexes_nothing(index):
    outcome = _pipeline(index).process(make_document("bylaw-1-empty.txt", "  \n\n "))
    assert outcome.ok
    assert outcome.chunks == 0
    assert outcome.warnings == ["no text extracted"]
    assert index.count("bylaws") == 0


def test_run_records_embedding_failure_without_raising(index, caplog):
    doc = make_document("bylaw-9-bad.txt", "EXPLODE")
    outcome = _pipeline(index, provider=ExplodingProvider()).run(doc)

    assert not outcome.ok
    assert "provider unavailable" in outcome.error
    assert index.count("bylaws") == 0
    record = next(r for r in caplog.records if "failed at batch" in r.getMessage())
    assert record.document == "bylaw-9-bad.txt"
    assert record.batch_index == 0


def test_failed_outcome_keeps_bylaw_number(index):
    doc = make_document("bylaw-4742-tree-protection.txt", "EXPLODE")
    outcome = _pipeline(index, provider=ExplodingProvider()).run(doc)
    assert not outcome.ok
    assert outcome.bylaw_number == "4742"


def test_unexpected_failure_keeps_bylaw_number(index, monkeypatch):
    def broken_extract(document):
        raise OSError("unreadable file")

    monkeypatch.setattr("bylaw_search.ingest.pipeline.extract_text", broken_extract)
    outcome = _pipeline(index).run(make_document("bylaw-4742-tree-protection.txt", "text"))

    assert outcome.error == "OSError: unreadable file"
    assert outcome.bylaw_number == "4742"


# ------------------------------------------------------------------
# Batch job
# ------------------------------------------------------------------


def test_run_batch_isolates_failures(index):
    docs = [
        make_document("bylaw-1-a.txt", "First bylaw text."),
        make_document("bylaw-2-b.txt", "EXPLODE here."),
        make_document("bylaw-3-c.txt", "Third bylaw text."),
    ]
    summary = run_batch(_pipeline(index, provider=ExplodingProvider()), docs, workers=2)

    assert [o.filename for o in summary.outcomes] == [d.filename for d in docs]
    assert [o.filename for o in summary.failed] == ["bylaw-2-b.txt"]
    assert len(summary.succeeded) == 2
    assert summary.records_written == 2
    assert index.list_ids("bylaws") == ["bylaw-1-0", "bylaw-3-0"]


def test_run_batch_rejects_zero_workers(index):
    with pytest.raises(ValueError):
        run_batch(_pipeline(index), [], workers=0)
