"""Raw documents and text extraction (pypdf for PDFs, UTF-8 otherwise)."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import pypdf

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset([".pdf", ".txt", ".text", ".md"])

_PAGE_MARKER_RE = re.compile(
    r"^[ \t]*(?:page[ \t]+\d+(?:[ \t]+of[ \t]+\d+)?|\d+[ \t]+of[ \t]+\d+)[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_HSPACE_RE = re.compile(r"[ \t\f\v ]+")
_EXTRA_BLANK_LINES_RE = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


@dataclass(frozen=True)
class Document:
    """Raw bytes of a bylaw document, read once per ingestion run."""

    filename: str
    data: bytes
    modified: datetime

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path) -> "Document":
        stat = path.stat()
        return cls(
            filename=path.name,
            data=path.read_bytes(),
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )


def extract_text(document: Document) -> str:
    """Return the raw text of *document*; PDFs are read page by page."""
    if document.filename.lower().endswith(".pdf"):
        return _pdf_text(document.data)
    return document.data.decode("utf-8", errors="replace")


def _pdf_text(data: bytes) -> str:
    reader = pypdf.PdfReader(io.BytesIO(data))
    parts: list[str] = []
    for page in reader.pages:
        stripped = (page.extract_text() or "").strip()
        if stripped:
            parts.append(stripped)
    return "\n\n".join(parts)


def normalize_text(text: str) -> str:
    """Clean extracted text while keeping blank-line paragraph boundaries.

    - CRLF / CR become LF.
    - Lines that are only a page marker ("Page 3", "3 of 12") are dropped.
    - Runs of horizontal whitespace collapse to one space; lines are trimmed.
    - Two or more blank lines collapse to a single blank line.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _PAGE_MARKER_RE.sub("", text)
    lines = [_HSPACE_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = "\n".join(lines)
    text = _EXTRA_BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def scan_directory(directory: Path, recursive: bool = False) -> list[Path]:
    """Return supported document files under *directory*, sorted by name."""
    pattern = "**/*" if recursive else "*"
    return sorted(
        p
        for p in directory.glob(pattern)
        if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
    )
