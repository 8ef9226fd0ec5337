"""Search service: cache → registry lookup → embed → filtered similarity search → verify.

``SearchService.handle()`` is the query API boundary used by whatever web
layer sits in front: it accepts the request body as a dict and returns the
response envelope ``{results, count, fromCache, meta}``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from bylaw_search.db.vectors import VectorIndex
from bylaw_search.errors import IndexQueryError, QueryValidationError, SearchFailed
from bylaw_search.ingest.embedding import EmbeddingClient
from bylaw_search.search.cache import ResultCache, fingerprint
from bylaw_search.search.query import (
    DEFAULT_LIMIT,
    DEFAULT_MIN_SCORE,
    SearchQuery,
    extract_bylaw_references,
)
from bylaw_search.search.verification import SearchResult, VerificationLayer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResponse:
    results: tuple[SearchResult, ...]
    from_cache: bool
    execution_time_ms: float
    filters: dict[str, str]

    @property
    def count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "count": self.count,
            "fromCache": self.from_cache,
            "meta": {
                "executionTimeMs": round(self.execution_time_ms, 2),
                "filters": self.filters,
            },
        }


class SearchService:
    """Answer SearchQuery requests against one namespace of the vector index.

    Registry sections of any bylaw the query names ("bylaw 3210") come
    first, scored 1.0. The rest come back in the order the index returns
    them (descending score). Equal scores are not re-ordered, so ties may
    come back in any order between runs.

    Args:
        embedder: Must be configured exactly as the one used at ingestion.
        index: Vector index to query.
        verifier: Registry reconciliation for every fresh result set.
        cache: Shared result cache; one instance per process.
        namespace: Index namespace holding the bylaw vectors.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: VectorIndex,
        verifier: VerificationLayer,
        cache: ResultCache[tuple[SearchResult, ...]] | None = None,
        namespace: str = "bylaws",
        default_limit: int = DEFAULT_LIMIT,
        default_min_score: float = DEFAULT_MIN_SCORE,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._verifier = verifier
        self._cache = cache if cache is not None else ResultCache()
        self.namespace = namespace
        self.default_limit = default_limit
        self.default_min_score = default_min_score

    @property
    def cache(self) -> ResultCache[tuple[SearchResult, ...]]:
        return self._cache

    def search(self, query: SearchQuery) -> SearchResponse:
        """Run *query*. Raises EmbeddingProviderError or IndexQueryError on failure."""
        started = time.perf_counter()
        filters = query.filters.to_dict()
        key = fingerprint(query.query, filters, query.limit, query.min_score)

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("cache hit for %r", query.query)
            return SearchResponse(cached, True, _elapsed_ms(started), filters)

        direct = self._direct_results(query)
        remaining = query.limit - len(direct)
        matches = []
        if remaining > 0:
            index_filter = query.filters.to_index_filter()
            if direct:
                excluded = sorted({r.bylaw_number for r in direct})
                index_filter.setdefault("bylaw_number", {})["$nin"] = excluded
            vector = self._embedder.embed_query(query.query)
            try:
                matches = self._index.query(self.namespace, vector, remaining, index_filter)
            except Exception as exc:
                raise IndexQueryError(f"vector index query failed: {exc}") from exc

        ranked = direct[: query.limit] + [
            SearchResult.from_match(m) for m in matches[:remaining]
        ]
        candidates = [r for r in ranked if r.score >= query.min_score]
        results = tuple(self._verifier.verify(candidates))
        self._cache.put(key, results)
        logger.info(
            "search %r returned %d results",
            query.query,
            len(results),
            extra={"filters": filters, "result_count": len(results)},
        )
        return SearchResponse(results, False, _elapsed_ms(started), filters)

    def _direct_results(self, query: SearchQuery) -> list[SearchResult]:
        """Registry sections of bylaws the query names, subject to its filters.

        These rank first with score 1.0, and their bylaws are excluded from
        the vector query so the same bylaw is not returned twice.
        """
        numbers = extract_bylaw_references(query.query)
        if not numbers:
            return []
        results = [
            r
            for r in self._verifier.registry_results(numbers)
            if query.filters.accepts(r.bylaw_number, r.category, r.date_enacted)
        ]
        if results:
            logger.debug(
                "query names registered bylaw(s) %s; %d registry result(s)",
                ", ".join(numbers),
                len(results),
            )
        return results

    def handle(self, request: dict[str, Any]) -> dict[str, Any]:
        """Query API entry point.

        Raises:
            QueryValidationError: Bad request; its message is safe to show.
            SearchFailed: Anything else. Detail is logged, not returned.
        """
        query = SearchQuery.from_dict(
            request, default_limit=self.default_limit, default_min_score=self.default_min_score
        )
        try:
            return self.search(query).to_dict()
        except QueryValidationError:
            raise
        except Exception as exc:
            logger.exception("search failed for %r", query.query)
            raise SearchFailed("Search failed") from exc


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
