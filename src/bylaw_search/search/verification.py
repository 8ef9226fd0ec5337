"""Verification layer: reconcile search hits with the canonical registry.

Text-mined metadata is never trusted on its own. A result is verified only
when its (bylaw, section) pair is registered, or when the record itself was
loaded from the registry. Registry consolidation facts replace whatever
the extractor guessed from the filename.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import quote

from bylaw_search.db.models import UNKNOWN_BYLAW, BylawRecord, Match
from bylaw_search.db.registry import BylawRegistry

logger = logging.getLogger(__name__)

REGISTRY_SOURCE = "registry"
WHOLE_BYLAW_CONTENT = "Section text is not in the registry; refer to the official bylaw."

CHAIN_UNKNOWN = "unknown"
CHAIN_CYCLE = "cycle"


@dataclass(frozen=True)
class SearchResult:
    """A ranked hit projected from a VectorRecord, plus trust annotations."""

    id: str
    score: float
    bylaw_number: str
    title: str | None
    section: str | None
    section_title: str | None
    category: str | None
    content: str
    is_consolidated: bool = False
    consolidated_date: str | None = None
    amended_bylaw: str | None = None
    date_enacted: str | None = None
    source: str | None = None
    is_verified: bool = False
    official_url: str | None = None
    amendment_chain_issue: str | None = None

    @classmethod
    def from_match(cls, match: Match) -> "SearchResult":
        meta = match.metadata
        return cls(
            id=match.id,
            score=match.score,
            bylaw_number=str(meta.get("bylaw_number") or UNKNOWN_BYLAW),
            title=meta.get("title"),
            section=meta.get("section"),
            section_title=meta.get("section_title"),
            category=meta.get("category"),
            content=meta.get("text", ""),
            is_consolidated=bool(meta.get("is_consolidated", False)),
            consolidated_date=meta.get("consolidated_date"),
            amended_bylaw=meta.get("amended_bylaw"),
            date_enacted=meta.get("date_enacted"),
            source=meta.get("source"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "score": self.score,
            "bylawNumber": self.bylaw_number,
            "title": self.title,
            "section": self.section,
            "sectionTitle": self.section_title,
            "category": self.category,
            "content": self.content,
            "isConsolidated": self.is_consolidated,
            "consolidatedDate": self.consolidated_date,
            "amendedBylaw": self.amended_bylaw,
            "dateEnacted": self.date_enacted,
            "isVerified": self.is_verified,
            "officialUrl": self.official_url,
            "amendmentChainIssue": self.amendment_chain_issue,
        }


def fallback_url(base: str, bylaw_number: str, section: str | None = None) -> str:
    url = f"{base.rstrip('/')}/{quote(bylaw_number, safe='')}"
    if section:
        url += f"?section={quote(section, safe='')}"
    return url


class VerificationLayer:
    """Annotate results with ``is_verified``, registry facts and an official URL.

    Amendment chains are followed through the registry only to report
    problems (an unknown bylaw number or a cycle) on the result; the chain
    never affects ``is_verified`` and no attempt is made to repair it.
    """

    def __init__(self, registry: BylawRegistry, official_url_base: str) -> None:
        self._registry = registry
        self._url_base = official_url_base

    def registry_results(self, bylaw_numbers: list[str]) -> list[SearchResult]:
        """Project registered sections of *bylaw_numbers* as score-1.0 results.

        A registered bylaw without sections yields one whole-bylaw result.
        Unregistered numbers yield nothing. Every result is tagged with the
        registry as its source, so ``verify`` marks it verified by origin.
        """
        results: list[SearchResult] = []
        for number in bylaw_numbers:
            record = self._registry.get_bylaw(number)
            if record is None:
                continue
            base = dict(
                score=1.0,
                bylaw_number=record.bylaw_number,
                title=record.title,
                category=None,
                is_consolidated=record.is_consolidated,
                consolidated_date=record.consolidated_date,
                date_enacted=record.enactment_date,
                source=REGISTRY_SOURCE,
            )
            if not record.sections:
                results.append(
                    SearchResult(
                        id=f"registry-{number}",
                        section=None,
                        section_title=None,
                        content=WHOLE_BYLAW_CONTENT,
                        **base,
                    )
                )
                continue
            for section in record.sections:
                results.append(
                    SearchResult(
                        id=f"registry-{number}-{section.section_number}",
                        section=section.section_number,
                        section_title=section.title,
                        content=section.content,
                        **base,
                    )
                )
        return results

    def verify(self, results: list[SearchResult]) -> list[SearchResult]:
        records: dict[str, BylawRecord | None] = {}
        return [self._verify_one(r, records) for r in results]

    def _lookup(self, number: str, records: dict[str, BylawRecord | None]) -> BylawRecord | None:
        if number not in records:
            records[number] = self._registry.get_bylaw(number)
        return records[number]

    def _verify_one(
        self, result: SearchResult, records: dict[str, BylawRecord | None]
    ) -> SearchResult:
        number = result.bylaw_number
        record = None if number == UNKNOWN_BYLAW else self._lookup(number, records)

        verified = result.source == REGISTRY_SOURCE
        if not verified and record is not None and result.section:
            verified = self._registry.has_section(number, result.section)

        updates: dict[str, Any] = {"is_verified": verified}
        if record is not None:
            updates["is_consolidated"] = record.is_consolidated
            updates["consolidated_date"] = record.consolidated_date
        if record is not None and record.official_url:
            updates["official_url"] = record.official_url
        elif number != UNKNOWN_BYLAW:
            updates["official_url"] = fallback_url(self._url_base, number, result.section)

        issue = self._chain_issue(number, result.amended_bylaw, record, records)
        if issue:
            logger.warning(
                "Amendment chain for bylaw %s needs review: %s", number, issue
            )
            updates["amendment_chain_issue"] = issue
        return replace(result, **updates)

    def _chain_issue(
        self,
        number: str,
        hint: str | None,
        record: BylawRecord | None,
        records: dict[str, BylawRecord | None],
    ) -> str | None:
        """Walk amendment links depth-first; report the first problem found."""
        start: list[str] = []
        if hint:
            start.append(hint)
        if record is not None:
            start.extend(a for a in record.amended_bylaws if a not in start)
        if not start:
            return None

        # Stack of (bylaw, path-to-it); a link back onto the path is a cycle.
        stack: list[tuple[str, tuple[str, ...]]] = [(s, (number,)) for s in reversed(start)]
        done: set[str] = set()
        while stack:
            current, path = stack.pop()
            if current in path:
                return CHAIN_CYCLE
            if current in done:
                continue
            linked = self._lookup(current, records)
            if linked is None:
                return CHAIN_UNKNOWN
            done.add(current)
            for nxt in reversed(linked.amended_bylaws):
                stack.append((nxt, path + (current,)))
        return None
