"""Embedding client: batched LiteLLM embeddings, normalized to unit length.

Chunk text at ingestion time and query text at search time go through the
same ``EmbeddingClient`` (same provider, same model, same normalization);
scores are only comparable under that condition.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Protocol

import litellm

from bylaw_search.errors import EmbeddingProviderError
from bylaw_search.retry import RetryPolicy

logger = logging.getLogger(__name__)

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # local, no key
}


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 5
    timeout: float = 30.0


class EmbeddingProvider(Protocol):
    """Anything that turns a list of texts into an equal-length list of vectors."""

    def embed(self, texts: list[str]) -> list[list[float]]: ...


class LiteLLMProvider:
    """Embedding provider backed by ``litellm.embedding()``."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    def embed(self, texts: list[str]) -> list[list[float]]:
        response = litellm.embedding(
            model=self._config.model,
            input=texts,
            timeout=self._config.timeout,
        )
        return [item["embedding"] for item in response.data]


def validate_api_key(model: str) -> None:
    """Raise EnvironmentError if the key for *model*'s provider is not set."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def normalize(vector: list[float]) -> list[float]:
    """Scale *vector* to unit L2 length."""
    norm = math.sqrt(math.fsum(x * x for x in vector))
    if norm == 0.0:
        raise ValueError("cannot normalize a zero vector")
    return [x / norm for x in vector]


class EmbeddingClient:
    """Batch texts through a provider, validate and normalize the vectors.

    Args:
        provider: Embedding provider; defaults to LiteLLM with *config*.
        config: Model, dimensions, batch size and timeout.
        retry: Retry policy for each provider call.
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None = None,
        config: EmbeddingConfig | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.config = config or EmbeddingConfig()
        if self.config.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._provider = provider or LiteLLMProvider(self.config)
        self._retry = retry or RetryPolicy()

    def embed_texts(self, texts: list[str], document: str = "") -> list[list[float]]:
        """Embed *texts* in batches; any batch failure aborts the whole call.

        Raises:
            EmbeddingProviderError: With the document and failing batch index.
                No partial result is returned.
        """
        vectors: list[list[float]] = []
        size = self.config.batch_size
        for batch_index, start in enumerate(range(0, len(texts), size)):
            batch = texts[start : start + size]
            vectors.extend(self._embed_batch(batch, document, batch_index))
        return vectors

    def embed_query(self, text: str) -> list[float]:
        return self._embed_batch([text], document="<query>", batch_index=0)[0]

    def _embed_batch(
        self, batch: list[str], document: str, batch_index: int
    ) -> list[list[float]]:
        label = f"embedding batch {batch_index} of {document or '<unnamed>'}"
        try:
            raw = self._retry.call(lambda: self._provider.embed(batch), label)
        except Exception as exc:
            raise EmbeddingProviderError(
                f"{label} failed: {exc}", document=document, batch_index=batch_index
            ) from exc

        if len(raw) != len(batch):
            raise EmbeddingProviderError(
                f"{label}: provider returned {len(raw)} vectors for {len(batch)} texts",
                document=document,
                batch_index=batch_index,
            )
        result: list[list[float]] = []
        for vector in raw:
            if len(vector) != self.config.dimensions:
                raise EmbeddingProviderError(
                    f"{label}: expected {self.config.dimensions} dimensions, got {len(vector)}",
                    document=document,
                    batch_index=batch_index,
                )
            try:
                result.append(normalize([float(x) for x in vector]))
            except ValueError as exc:
                raise EmbeddingProviderError(
                    f"{label}: {exc}", document=document, batch_index=batch_index
                ) from exc
        logger.debug("embedded %d texts (%s)", len(batch), label)
        return result
