"""Build configured ingestion and search components from a BylawSearchConfig."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from bylaw_search.config import BylawSearchConfig
from bylaw_search.db.connection import Database
from bylaw_search.db.migrations import initialize
from bylaw_search.db.registry import BylawRegistry
from bylaw_search.db.vectors import SqliteVectorIndex
from bylaw_search.ingest.chunker import BylawChunker
from bylaw_search.ingest.embedding import EmbeddingClient, EmbeddingConfig, EmbeddingProvider
from bylaw_search.ingest.index_writer import IndexWriter
from bylaw_search.ingest.pipeline import IngestPipeline
from bylaw_search.retry import RetryPolicy
from bylaw_search.search.cache import ResultCache
from bylaw_search.search.service import SearchService
from bylaw_search.search.verification import VerificationLayer


def open_database(cfg: BylawSearchConfig, db_path: Path | None = None) -> Database:
    return Database(db_path or Path(cfg.index.db), timeout=cfg.index.timeout)


def build_embedder(
    cfg: BylawSearchConfig, provider: EmbeddingProvider | None = None
) -> EmbeddingClient:
    return EmbeddingClient(
        provider=provider,
        config=EmbeddingConfig(
            model=cfg.embedding.model,
            dimensions=cfg.embedding.dimensions,
            batch_size=cfg.embedding.batch_size,
            timeout=cfg.embedding.timeout,
        ),
        retry=RetryPolicy(max_retries=cfg.embedding.max_retries),
    )


def build_index(cfg: BylawSearchConfig, db: Database) -> SqliteVectorIndex:
    return SqliteVectorIndex(db, dimensions=cfg.embedding.dimensions)


def build_pipeline(
    cfg: BylawSearchConfig, db: Database, provider: EmbeddingProvider | None = None
) -> IngestPipeline:
    writer = IndexWriter(
        build_index(cfg, db),
        namespace=cfg.index.namespace,
        batch_size=cfg.index.batch_size,
        retry=RetryPolicy(max_retries=cfg.index.max_retries),
    )
    chunker = BylawChunker(chunk_size=cfg.chunking.chunk_size, overlap=cfg.chunking.overlap)
    return IngestPipeline(build_embedder(cfg, provider), writer, chunker)


def open_registry(db: Database) -> tuple[BylawRegistry, sqlite3.Connection]:
    """Open a registry on a connection shareable across threads; caller closes it."""
    conn = db.connect(check_same_thread=False)
    initialize(conn)
    return BylawRegistry(conn), conn


def build_search_service(
    cfg: BylawSearchConfig,
    db: Database,
    registry: BylawRegistry,
    provider: EmbeddingProvider | None = None,
    cache: ResultCache | None = None,
) -> SearchService:
    return SearchService(
        embedder=build_embedder(cfg, provider),
        index=build_index(cfg, db),
        verifier=VerificationLayer(registry, cfg.registry.official_url_base),
        cache=cache or ResultCache(cfg.cache.ttl_seconds, cfg.cache.capacity),
        namespace=cfg.index.namespace,
        default_limit=cfg.search.default_limit,
        default_min_score=cfg.search.default_min_score,
    )
