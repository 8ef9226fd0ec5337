"""Section heading detection and keyword categorisation for chunks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

# "5", "5.2", "5(7)(a)", "12.3(b)"
_NUM = r"\d+(?:\.\d+)*(?:\([0-9A-Za-z]+\))*"
_ROMAN = r"[IVXLC]+"
# Separator between a heading number and its title: ":", "-", en/em dash or "."
_SEP = r"[ \t]*[:.\-–—]?[ \t]*"

DEFAULT_CATEGORY = "general"


@dataclass(frozen=True)
class SectionInfo:
    section: str
    section_title: str | None = None


@dataclass(frozen=True)
class HeadingRule:
    name: str
    pattern: re.Pattern[str]
    extract: Callable[[re.Match[str]], SectionInfo]


def _numbered(m: re.Match[str]) -> SectionInfo:
    return SectionInfo(section=m.group(1), section_title=_clean_title(m.group(2)))


def _labelled(label: str) -> Callable[[re.Match[str]], SectionInfo]:
    def extract(m: re.Match[str]) -> SectionInfo:
        return SectionInfo(
            section=f"{label} {m.group(1)}", section_title=_clean_title(m.group(2))
        )

    return extract


def _clean_title(title: str | None) -> str | None:
    if title is None:
        return None
    title = title.strip().rstrip(":.-")
    return title or None


# Ordered: the first rule that matches anywhere in the chunk wins.
HEADING_RULES: list[HeadingRule] = [
    # "5. Construction Noise"
    HeadingRule(
        "numbered",
        re.compile(rf"^[ \t]*({_NUM})\.[ \t]+([^\n.]+)", re.MULTILINE),
        _numbered,
    ),
    # "Section 5: Noise" / "SECTION 5.2 - Permits"
    HeadingRule(
        "section",
        re.compile(rf"^[ \t]*(?:Section|SECTION)[ \t]+({_NUM}){_SEP}([^\n]*)", re.MULTILINE),
        _numbered,
    ),
    # "Part 3 – Zones" / "PART IV Definitions"
    HeadingRule(
        "part",
        re.compile(rf"^[ \t]*(?:Part|PART)[ \t]+({_ROMAN}|\d+){_SEP}([^\n]*)", re.MULTILINE),
        _labelled("Part"),
    ),
    HeadingRule(
        "division",
        re.compile(
            rf"^[ \t]*(?:Division|DIVISION)[ \t]+({_ROMAN}|\d+){_SEP}([^\n]*)", re.MULTILINE
        ),
        _labelled("Division"),
    ),
    # "Schedule A - Fees"
    HeadingRule(
        "schedule",
        re.compile(
            rf"^[ \t]*(?:Schedule|SCHEDULE)[ \t]+([A-Za-z\d]+){_SEP}([^\n]*)", re.MULTILINE
        ),
        _labelled("Schedule"),
    ),
    # "5(7)(a) Construction noise"
    HeadingRule(
        "leading_number",
        re.compile(rf"^[ \t]*({_NUM})[ \t]+([^\n.]+)", re.MULTILINE),
        _numbered,
    ),
]

# Ordered keyword groups; the first group with any hit wins.
CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("zoning", ("zoning", "zone", "land use", "residential", "commercial")),
    ("building", ("building", "construction", "structure", "permit")),
    ("traffic", ("traffic", "parking", "vehicle", "street", "road")),
    ("utilities", ("utilities", "water", "sewer", "drainage", "waste")),
    ("finance", ("finance", "tax", "fee", "budget", "revenue")),
    ("parks", ("park", "recreation", "beach", "playground")),
    ("governance", ("council", "committee", "procedure", "election")),
    ("licensing", ("license", "permit", "business", "application")),
]


def classify_section(text: str) -> SectionInfo | None:
    """Return the first heading found in *text*, or None."""
    for rule in HEADING_RULES:
        match = rule.pattern.search(text)
        if match:
            return rule.extract(match)
    return None


def categorize(title: str | None, text: str) -> str:
    """Keyword category for a chunk; the title is checked before the body."""
    haystacks = [h.lower() for h in (title, text) if h]
    for haystack in haystacks:
        for category, keywords in CATEGORY_KEYWORDS:
            if any(keyword in haystack for keyword in keywords):
                return category
    return DEFAULT_CATEGORY


def section_for_chunk(text: str, chunk_index: int) -> SectionInfo:
    """Like classify_section() but never empty: falls back to ``chunk-{index}``."""
    return classify_section(text) or SectionInfo(section=f"chunk-{chunk_index}")
