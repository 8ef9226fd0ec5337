"""Retrieval: query validation, result cache, verification and the search service."""

from bylaw_search.search.cache import ResultCache, fingerprint
from bylaw_search.search.query import SearchFilters, SearchQuery
from bylaw_search.search.service import SearchResponse, SearchService
from bylaw_search.search.verification import SearchResult, VerificationLayer

__all__ = [
    "ResultCache",
    "fingerprint",
    "SearchFilters",
    "SearchQuery",
    "SearchResponse",
    "SearchService",
    "SearchResult",
    "VerificationLayer",
]
