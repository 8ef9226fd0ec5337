"""Bylaw metadata extraction from filenames and body text.

Every cascade here is an ordered list of ``(pattern, extractor)`` entries:
the first entry whose pattern matches wins and the search stops. Fields no
pattern supplies stay ``None``; nothing is guessed. New filename or date
formats are added by appending to the relevant list.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from bylaw_search.errors import ExtractionAmbiguity

_EXTENSION_RE = re.compile(r"\.(?:pdf|txt|text|md)$", re.IGNORECASE)
_CONSOLIDATED_RE = re.compile(r"consolidated", re.IGNORECASE)

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
    "|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec"
)


@dataclass(frozen=True)
class Rule:
    """One step of a first-match-wins cascade."""

    name: str
    pattern: re.Pattern[str]
    extract: Callable[[re.Match[str]], dict[str, str | None]]


@dataclass
class FilenameInfo:
    number: str | None = None
    title: str | None = None
    consolidated_date: str | None = None
    amended_bylaw: str | None = None
    is_consolidated: bool = False
    matched_rule: str | None = None


@dataclass
class TextInfo:
    """Facts mined from the body text. Dates are ISO ``YYYY-MM-DD`` strings."""

    amended_bylaws: list[str] = field(default_factory=list)
    enactment_date: str | None = None
    last_amendment_date: str | None = None


@dataclass
class BylawMetadata:
    """Combined best-effort metadata for one document."""

    number: str | None
    title: str | None
    is_consolidated: bool
    consolidated_date: str | None = None
    amended_bylaw: str | None = None
    amendment_references: list[str] = field(default_factory=list)
    enactment_date: str | None = None
    last_amendment_date: str | None = None
    ambiguities: list[ExtractionAmbiguity] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Filename rules
# ---------------------------------------------------------------------------

FILENAME_RULES: list[Rule] = [
    # "bylaw-4742-tree-protection"
    Rule(
        "organized",
        re.compile(r"^bylaw-(\d+)(?:-(.+))?$", re.IGNORECASE),
        lambda m: {
            "number": m.group(1),
            "title": m.group(2).replace("-", " ") if m.group(2) else None,
        },
    ),
    # "4747, Reserve Funds Bylaw, 2020 CONSOLIDATED"
    Rule(
        "comma",
        re.compile(r"^(\d+),\s+(.+)"),
        lambda m: {"number": m.group(1), "title": m.group(2)},
    ),
    # "4747 Reserve Funds Bylaw 2020 CONSOLIDATED"
    Rule(
        "space",
        re.compile(r"^(\d+)\s+(.+)"),
        lambda m: {"number": m.group(1), "title": m.group(2)},
    ),
    # "Tax Rates Bylaw 2024, No. 4861" / "Bylaw No. 4891, 2024"
    Rule(
        "bylaw_no",
        re.compile(r"\b(?:Bylaw\s+)?No\.?\s+(\d+)(?:,|\s|$)", re.IGNORECASE),
        lambda m: {"number": m.group(1)},
    ),
]

# Consolidation cutoff written into the filename: "... CONSOLIDATED to May 8 2023".
_SEP = r"[\s_-]+"
# "to" not preceded by a letter; filenames use "_" between words.
_TO = r"(?<![A-Za-z])to"
CONSOLIDATION_DATE_RULES: list[Rule] = [
    Rule(
        "month_day_year",
        re.compile(rf"{_TO}{_SEP}((?:{_MONTHS}){_SEP}\d{{1,2}},?{_SEP}\d{{4}})", re.IGNORECASE),
        lambda m: {"date": m.group(1)},
    ),
    Rule(
        "day_month_year",
        re.compile(rf"{_TO}{_SEP}(\d{{1,2}}{_SEP}(?:{_MONTHS}),?{_SEP}\d{{4}})", re.IGNORECASE),
        lambda m: {"date": m.group(1)},
    ),
    Rule(
        "iso",
        re.compile(rf"{_TO}{_SEP}(\d{{4}}-\d{{2}}-\d{{2}})", re.IGNORECASE),
        lambda m: {"date": m.group(1)},
    ),
    Rule(
        "month_year",
        re.compile(rf"{_TO}{_SEP}((?:{_MONTHS}){_SEP}\d{{4}})", re.IGNORECASE),
        lambda m: {"date": m.group(1)},
    ),
    Rule(
        "numeric",
        re.compile(rf"{_TO}{_SEP}(\d{{1,2}}[-/]\d{{1,2}}[-/]\d{{4}})", re.IGNORECASE),
        lambda m: {"date": m.group(1)},
    ),
]

# "Consolidated to 4594" / "Consolidated-up to-4858": a later amending bylaw.
_AMENDED_IN_FILENAME_RE = re.compile(
    rf"{_TO}{_SEP}(?:bylaw{_SEP})?(?:no\.?[\s_-]*)?(\d{{4}})(?![\d/-]*\d{{4}})\b", re.IGNORECASE
)


def extract_from_filename(filename: str) -> FilenameInfo:
    """Derive bylaw identity and consolidation facts from *filename*."""
    basename = _EXTENSION_RE.sub("", filename.strip())
    info = FilenameInfo(is_consolidated=bool(_CONSOLIDATED_RE.search(basename)))

    for rule in CONSOLIDATION_DATE_RULES:
        match = rule.pattern.search(basename)
        if match:
            info.consolidated_date = rule.extract(match)["date"]
            break

    amended = _AMENDED_IN_FILENAME_RE.search(basename)
    if amended and not (
        info.consolidated_date and amended.group(1) in info.consolidated_date
    ):
        info.amended_bylaw = amended.group(1)

    for rule in FILENAME_RULES:
        match = rule.pattern.search(basename)
        if match:
            fields = rule.extract(match)
            info.number = fields.get("number")
            info.title = fields.get("title")
            info.matched_rule = rule.name
            break

    return info


# ---------------------------------------------------------------------------
# Body text rules
# ---------------------------------------------------------------------------

_AMENDMENT_REF_RE = re.compile(
    r"amended\s+by\s+bylaw(?:\s+No\.?)?(?:\s+#?)?\s*(\d+)", re.IGNORECASE
)
_ORDINAL = r"(?:st|nd|rd|th)?"


def _dmy(m: re.Match[str]) -> dict[str, str | None]:
    return {"date": _to_iso(f"{m.group(1)} {m.group(2)} {m.group(3)}", ("%d %B %Y", "%d %b %Y"))}


def _mdy(m: re.Match[str]) -> dict[str, str | None]:
    return {"date": _to_iso(f"{m.group(1)} {m.group(2)} {m.group(3)}", ("%B %d %Y", "%b %d %Y"))}


def _ymd(m: re.Match[str]) -> dict[str, str | None]:
    return {"date": _to_iso(f"{m.group(1)}-{m.group(2)}-{m.group(3)}", ("%Y-%m-%d",))}


def _date_rules(keywords: str) -> list[Rule]:
    """Date ladder anchored on *keywords*; first hit wins."""
    lead = rf"\b(?:{keywords})\b(?:\s+on)?(?:\s+the)?[^\n\d]{{0,40}}?"
    return [
        # "adopted the 12th day of March, 2019"
        Rule(
            "day_of_month",
            re.compile(rf"{lead}(\d{{1,2}}){_ORDINAL}\s+day\s+of\s+([A-Za-z]+),?\s+(\d{{4}})", re.I),
            _dmy,
        ),
        # "adopted 12 March 2019"
        Rule(
            "day_month_year",
            re.compile(rf"{lead}(\d{{1,2}}){_ORDINAL}\s+([A-Za-z]+),?\s+(\d{{4}})", re.I),
            _dmy,
        ),
        # "adopted on March 12, 2019"
        Rule(
            "month_day_year",
            re.compile(rf"{lead}([A-Za-z]+)\s+(\d{{1,2}}){_ORDINAL},?\s+(\d{{4}})", re.I),
            _mdy,
        ),
        # "dated 2019-03-12" / "2019/3/12"
        Rule(
            "iso",
            re.compile(rf"{lead}(\d{{4}})[-/](\d{{1,2}})[-/](\d{{1,2}})", re.I),
            _ymd,
        ),
    ]


ENACTMENT_DATE_RULES: list[Rule] = _date_rules(r"enacted|adopted|passed|dated")
AMENDMENT_DATE_RULES: list[Rule] = _date_rules(r"last\s+amended|amended\s+on")


def _first_date(rules: list[Rule], text: str) -> str | None:
    for rule in rules:
        match = rule.pattern.search(text)
        if match:
            parsed = rule.extract(match)["date"]
            if parsed:
                return parsed
    return None


def _to_iso(value: str, formats: tuple[str, ...]) -> str | None:
    cleaned = re.sub(r"\s+", " ", value.replace(",", " ")).strip()
    for fmt in formats:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def extract_from_text(text: str) -> TextInfo:
    """Collect amendment references and enactment/amendment dates from *text*."""
    refs: list[str] = []
    for match in _AMENDMENT_REF_RE.finditer(text):
        if match.group(1) not in refs:
            refs.append(match.group(1))
    return TextInfo(
        amended_bylaws=refs,
        enactment_date=_first_date(ENACTMENT_DATE_RULES, text),
        last_amendment_date=_first_date(AMENDMENT_DATE_RULES, text),
    )


def extract_metadata(filename: str, text: str) -> BylawMetadata:
    """Combine filename and body facts; record (never raise) what was not found."""
    name_info = extract_from_filename(filename)
    text_info = extract_from_text(text)

    ambiguities: list[ExtractionAmbiguity] = []
    if name_info.number is None:
        ambiguities.append(ExtractionAmbiguity("bylaw number", filename))
    if name_info.title is None:
        ambiguities.append(ExtractionAmbiguity("title", filename))

    return BylawMetadata(
        number=name_info.number,
        title=name_info.title,
        is_consolidated=name_info.is_consolidated,
        consolidated_date=name_info.consolidated_date,
        amended_bylaw=name_info.amended_bylaw,
        amendment_references=text_info.amended_bylaws,
        enactment_date=text_info.enactment_date,
        last_amendment_date=text_info.last_amendment_date,
        ambiguities=ambiguities,
    )


def is_iso_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True
