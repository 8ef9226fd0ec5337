"""Tests for EmbeddingClient and the LiteLLM provider."""

from __future__ import annotations

import math
from unittest.mock import MagicMock, patch

import pytest

from bylaw_search.errors import EmbeddingProviderError
from bylaw_search.ingest.embedding import (
    EmbeddingClient,
    EmbeddingConfig,
    LiteLLMProvider,
    normalize,
    validate_api_key,
)
from bylaw_search.retry import NO_RETRY, RetryPolicy
from conftest import DIMS, FakeProvider


def _client(provider, batch_size: int = 5, retry: RetryPolicy = NO_RETRY) -> EmbeddingClient:
    config = EmbeddingConfig(model="openai/test", dimensions=DIMS, batch_size=batch_size)
    return EmbeddingClient(provider=provider, config=config, retry=retry)


def _litellm_response(vectors: list[list[float]]):
    response = MagicMock()
    response.data = [{"embedding": v, "index": i} for i, v in enumerate(vectors)]
    return response


# ------------------------------------------------------------------
# normalize
# ------------------------------------------------------------------


def test_normalize_unit_length():
    v = normalize([3.0, 4.0])
    assert v == pytest.approx([0.6, 0.8])
    assert math.isclose(sum(x * x for x in v), 1.0)


def test_normalize_zero_vector_raises():
    with pytest.raises(ValueError):
        normalize([0.0, 0.0])


# ------------------------------------------------------------------
# Batching
# ------------------------------------------------------------------


def test_embed_texts_batches_by_batch_size(fake_provider):
    client = _client(fake_provider, batch_size=2)
    vectors = client.embed_texts(["a", "b", "c", "d", "e"], document="doc.pdf")

    assert len(vectors) == 5
    assert fake_provider.calls == [["a", "b"], ["c", "d"], ["e"]]
    for v in vectors:
        assert len(v) == DIMS
        assert math.isclose(math.fsum(x * x for x in v), 1.0, rel_tol=1e-9)


def test_embed_texts_empty_makes_no_calls(fake_provider):
    assert _client(fake_provider).embed_texts([]) == []
    assert fake_provider.calls == []


def test_same_text_same_vector_for_query_and_chunk(fake_provider):
    client = _client(fake_provider)
    assert client.embed_query("noise after 10pm") == client.embed_texts(["noise after 10pm"])[0]


def test_batch_size_must_be_positive(fake_provider):
    with pytest.raises(ValueError):
        _client(fake_provider, batch_size=0)


# ------------------------------------------------------------------
# Failures
# ------------------------------------------------------------------


def test_provider_failure_carries_document_and_batch(fake_provider):
    calls = {"n": 0}

    def embed(texts):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("rate limited")
        return fake_provider.embed(texts)

    provider = MagicMock()
    provider.embed.side_effect = embed
    with pytest.raises(EmbeddingProviderError) as exc_info:
        _client(provider, batch_size=1).embed_texts(["a", "b", "c"], document="doc.pdf")

    assert exc_info.value.document == "doc.pdf"
    assert exc_info.value.batch_index == 1
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_transient_failure_is_retried(fake_provider, no_sleep):
    sleep, waits = no_sleep
    provider = MagicMock()
    provider.embed.side_effect = [RuntimeError("timeout"), fake_provider.embed(["a"])]
    retry = RetryPolicy(max_retries=3, sleep=sleep)

    vectors = _client(provider, retry=retry).embed_texts(["a"])
    assert len(vectors) == 1
    assert waits == [2.0]


def test_retries_exhausted_raises(no_sleep):
    sleep, waits = no_sleep
    provider = MagicMock()
    provider.embed.side_effect = RuntimeError("down")
    retry = RetryPolicy(max_retries=2, sleep=sleep)

    with pytest.raises(EmbeddingProviderError):
        _client(provider, retry=retry).embed_texts(["a"], document="x.pdf")
    assert provider.embed.call_count == 3
    assert waits == [2.0, 4.0]


def test_wrong_vector_count_rejected():
    provider = FakeProvider()
    provider.embed = lambda texts: [[1.0] * DIMS]
    with pytest.raises(EmbeddingProviderError, match="1 vectors for 2 texts"):
        _client(provider).embed_texts(["a", "b"])


def test_wrong_dimensions_rejected():
    with pytest.raises(EmbeddingProviderError, match="dimensions"):
        _client(FakeProvider(dimensions=4)).embed_texts(["a"])


def test_zero_vector_rejected():
    with pytest.raises(EmbeddingProviderError, match="zero vector"):
        _client(FakeProvider(constant=[0.0] * DIMS)).embed_texts(["a"])


# ------------------------------------------------------------------
# LiteLLM provider
# ------------------------------------------------------------------


def test_litellm_provider_passes_model_and_timeout():
    config = EmbeddingConfig(model="openai/text-embedding-3-small", timeout=12.0)
    with patch("bylaw_search.ingest.embedding.litellm") as mock_litellm:
        mock_litellm.embedding.return_value = _litellm_response([[0.1, 0.2], [0.3, 0.4]])
        vectors = LiteLLMProvider(config).embed(["a", "b"])

    mock_litellm.embedding.assert_called_once_with(
        model="openai/text-embedding-3-small", input=["a", "b"], timeout=12.0
    )
    assert vectors == [[0.1, 0.2], [0.3, 0.4]]


# ------------------------------------------------------------------
# API key validation
# ------------------------------------------------------------------


def test_validate_api_key_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("openai/text-embedding-3-small")


def test_validate_api_key_bare_model_means_openai(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    validate_api_key("text-embedding-3-small")


def test_validate_api_key_local_and_unknown_providers_pass(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    validate_api_key("ollama/nomic-embed-text")
    validate_api_key("someprovider/model")
