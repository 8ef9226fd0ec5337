"""Domain models shared by the ingestion and retrieval layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

UNKNOWN_BYLAW = "unknown"


@dataclass
class BylawSection:
    bylaw_number: str
    section_number: str
    content: str = ""
    title: str | None = None


@dataclass
class BylawRecord:
    """Canonical, human-verified bylaw entry from the registry.

    Attributes:
        bylaw_number: Registry key, e.g. ``"3210"``.
        title: Official bylaw title.
        is_consolidated: Whether the registry copy is a consolidation.
        consolidated_date: Consolidation cutoff as written by the curator.
        enactment_date: ISO date the bylaw was adopted, when known.
        amended_bylaws: Bylaw numbers this bylaw's amendment chain points to.
        official_url: Municipal URL for the bylaw; None falls back to a
            constructed URL at verification time.
        pdf_path: Local path of the source PDF, if the curator recorded one.
        last_verified: Timestamp of the last curator review.
        sections: Verified sections of this bylaw.
    """

    bylaw_number: str
    title: str
    is_consolidated: bool = False
    consolidated_date: str | None = None
    enactment_date: str | None = None
    amended_bylaws: list[str] = field(default_factory=list)
    official_url: str | None = None
    pdf_path: str | None = None
    last_verified: str | None = None
    sections: list[BylawSection] = field(default_factory=list)


@dataclass
class Chunk:
    """A slice of normalized document text, the unit of embedding.

    ``position`` is the character offset of the chunk's first new paragraph in
    the source text. ``overlap_length`` is the length of the carried-over
    prefix taken from the previous chunk (0 for the first chunk).
    """

    index: int
    text: str
    position: int = 0
    overlap_length: int = 0

    @property
    def length(self) -> int:
        return len(self.text)


@dataclass
class VectorRecord:
    id: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def make_id(bylaw_number: str | None, chunk_index: int) -> str:
        """Deterministic record id, so re-ingestion overwrites instead of duplicating."""
        return f"bylaw-{bylaw_number or UNKNOWN_BYLAW}-{chunk_index}"


@dataclass
class Match:
    """A single hit returned by the vector index."""

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)
