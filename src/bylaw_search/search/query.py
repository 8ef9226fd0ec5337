"""SearchQuery: the validated query contract."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any

from bylaw_search.errors import QueryValidationError
from bylaw_search.ingest.metadata import is_iso_date

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 500
MIN_LIMIT = 1
MAX_LIMIT = 20
DEFAULT_LIMIT = 5
DEFAULT_MIN_SCORE = 0.5

# "bylaw 3210", "Bylaw No. 3210", "bylaw no 3210"
_BYLAW_REFERENCE_RE = re.compile(r"\bbylaw\s+(?:no\.?\s*)?(\d{4})\b", re.IGNORECASE)

_FILTER_KEYS = {
    "category": "category",
    "bylawNumber": "bylaw_number",
    "bylaw_number": "bylaw_number",
    "dateFrom": "date_from",
    "date_from": "date_from",
    "dateTo": "date_to",
    "date_to": "date_to",
}


@dataclass(frozen=True)
class SearchFilters:
    category: str | None = None
    bylaw_number: str | None = None
    date_from: str | None = None
    date_to: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SearchFilters":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise QueryValidationError("filters", "must be an object")
        values: dict[str, str] = {}
        for key, value in data.items():
            if key not in _FILTER_KEYS:
                raise QueryValidationError("filters", f"unknown filter {key!r}")
            if value is None:
                continue
            if not isinstance(value, str) or not value.strip():
                raise QueryValidationError(key, "must be a non-empty string")
            values[_FILTER_KEYS[key]] = value.strip()
        return cls(**values)

    def validate(self) -> None:
        for name in ("date_from", "date_to"):
            value = getattr(self, name)
            if value is not None and not is_iso_date(value):
                raise QueryValidationError(name, "must be a YYYY-MM-DD date")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise QueryValidationError("date_from", "must not be after date_to")

    def accepts(
        self, bylaw_number: str | None, category: str | None, date_enacted: str | None
    ) -> bool:
        """Apply the filters to an in-memory record the way the index applies them.

        A missing field never satisfies a filter on that field.
        """
        if self.bylaw_number and bylaw_number != self.bylaw_number:
            return False
        if self.category and category != self.category:
            return False
        if self.date_from and (date_enacted is None or date_enacted < self.date_from):
            return False
        if self.date_to and (date_enacted is None or date_enacted > self.date_to):
            return False
        return True

    def to_index_filter(self) -> dict[str, dict[str, Any]]:
        """Translate to the vector index filter vocabulary."""
        index_filter: dict[str, dict[str, Any]] = {}
        if self.bylaw_number:
            index_filter["bylaw_number"] = {"$eq": self.bylaw_number}
        if self.category:
            index_filter["category"] = {"$eq": self.category}
        date_range: dict[str, Any] = {}
        if self.date_from:
            date_range["$gte"] = self.date_from
        if self.date_to:
            date_range["$lte"] = self.date_to
        if date_range:
            index_filter["date_enacted"] = date_range
        return index_filter

    def to_dict(self) -> dict[str, str]:
        """Set filters only, keyed as the API spells them."""
        names = {
            "category": "category",
            "bylaw_number": "bylawNumber",
            "date_from": "dateFrom",
            "date_to": "dateTo",
        }
        return {names[k]: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class SearchQuery:
    query: str
    filters: SearchFilters = field(default_factory=SearchFilters)
    limit: int = DEFAULT_LIMIT
    min_score: float = DEFAULT_MIN_SCORE

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise QueryValidationError on the first out-of-range field."""
        if not isinstance(self.query, str):
            raise QueryValidationError("query", "must be a string")
        length = len(self.query.strip())
        if length < MIN_QUERY_LENGTH:
            raise QueryValidationError(
                "query", f"must be at least {MIN_QUERY_LENGTH} characters"
            )
        if len(self.query) > MAX_QUERY_LENGTH:
            raise QueryValidationError(
                "query", f"must be at most {MAX_QUERY_LENGTH} characters"
            )
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise QueryValidationError("limit", "must be an integer")
        if not MIN_LIMIT <= self.limit <= MAX_LIMIT:
            raise QueryValidationError("limit", f"must be between {MIN_LIMIT} and {MAX_LIMIT}")
        if isinstance(self.min_score, bool) or not isinstance(self.min_score, (int, float)):
            raise QueryValidationError("minScore", "must be a number")
        if not 0.0 <= self.min_score <= 1.0:
            raise QueryValidationError("minScore", "must be between 0 and 1")
        self.filters.validate()

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        default_limit: int = DEFAULT_LIMIT,
        default_min_score: float = DEFAULT_MIN_SCORE,
    ) -> "SearchQuery":
        """Build from an API request body (``minScore`` or ``min_score``)."""
        if not isinstance(data, dict):
            raise QueryValidationError("request", "must be an object")
        if "query" not in data:
            raise QueryValidationError("query", "is required")
        min_score = data.get("minScore", data.get("min_score"))
        limit = data.get("limit")
        return cls(
            query=data["query"],
            filters=SearchFilters.from_dict(data.get("filters")),
            limit=default_limit if limit is None else limit,
            min_score=default_min_score if min_score is None else min_score,
        )


def extract_bylaw_references(query: str) -> list[str]:
    """Bylaw numbers named in *query*, in order of first mention."""
    numbers: list[str] = []
    for match in _BYLAW_REFERENCE_RE.finditer(query):
        if match.group(1) not in numbers:
            numbers.append(match.group(1))
    return numbers
