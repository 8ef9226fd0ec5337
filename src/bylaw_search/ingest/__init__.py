"""Ingestion: documents → metadata → chunks → embeddings → vector index."""

from bylaw_search.ingest.chunker import BylawChunker
from bylaw_search.ingest.documents import Document, extract_text, normalize_text
from bylaw_search.ingest.embedding import EmbeddingClient, EmbeddingConfig, LiteLLMProvider
from bylaw_search.ingest.index_writer import IndexWriter
from bylaw_search.ingest.metadata import extract_metadata
from bylaw_search.ingest.pipeline import DocumentOutcome, IngestPipeline, IngestSummary, run_batch
from bylaw_search.ingest.sections import categorize, classify_section

__all__ = [
    "BylawChunker",
    "Document",
    "extract_text",
    "normalize_text",
    "EmbeddingClient",
    "EmbeddingConfig",
    "LiteLLMProvider",
    "IndexWriter",
    "extract_metadata",
    "DocumentOutcome",
    "IngestPipeline",
    "IngestSummary",
    "run_batch",
    "categorize",
    "classify_section",
]
