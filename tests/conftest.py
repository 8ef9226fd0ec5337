"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from bylaw_search.db.connection import Database
from bylaw_search.db.migrations import initialize
from bylaw_search.ingest.documents import Document

DIMS = 8


class FakeProvider:
    """Deterministic in-process embedding provider.

    Every text maps to a vector derived from its SHA-256 digest, or to
    *constant* when given (every similarity is then 1.0).
    """

    def __init__(self, dimensions: int = DIMS, constant: list[float] | None = None) -> None:
        self.dimensions = dimensions
        self.constant = constant
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.constant is not None:
            return [list(self.constant) for _ in texts]
        return [self._vector(t) for t in texts]

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [float(b) + 1.0 for b in digest[: self.dimensions]]


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo configure_logging() (called by the CLI) so caplog keeps working."""
    logger = logging.getLogger("bylaw_search")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".bylaw-search.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def database(tmp_path) -> Database:
    """Database wrapper (not yet connected) in tmp_path."""
    return Database(tmp_path / ".bylaw-search.db")


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested waits."""
    waits: list[float] = []
    return waits.append, waits


@pytest.fixture
def cli_project(tmp_path, monkeypatch):
    """A project dir as CWD with an 8-dim config, no global config and a fake key.

    litellm.embedding is patched to return deterministic vectors; the mock is
    returned so tests can inspect or override it.
    """
    import bylaw_search.config as config_module

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "_GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("BYLAW_SEARCH_EMBEDDING_MODEL", "BYLAW_SEARCH_NAMESPACE", "BYLAW_SEARCH_DB"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    (tmp_path / "bylaw-search.yaml").write_text(
        f"embedding:\n  model: openai/test\n  dimensions: {DIMS}\n  max_retries: 0\n"
        "index:\n  max_retries: 0\n",
        encoding="utf-8",
    )

    provider = FakeProvider()

    def _embedding(model, input, timeout):
        response = MagicMock()
        response.data = [{"embedding": v} for v in provider.embed(input)]
        return response

    with patch("bylaw_search.ingest.embedding.litellm.embedding", side_effect=_embedding) as mock:
        yield mock


def make_document(filename: str, text: str) -> Document:
    return Document(
        filename=filename,
        data=text.encode("utf-8"),
        modified=datetime(2024, 1, 15, tzinfo=timezone.utc),
    )
