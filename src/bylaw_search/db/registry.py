"""Canonical bylaw registry: human-verified bylaws and sections.

The registry is the trust source for the verification layer. It is written
by an out-of-band curation process (``bylaw-search registry ...``) and read
during search.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import yaml

from bylaw_search.db.models import BylawRecord, BylawSection

logger = logging.getLogger(__name__)

FEEDBACK_VALUES: frozenset[str] = frozenset(
    ["accurate", "inaccurate", "incomplete", "outdated"]
)

# Leading bylaw number in a registry seed filename: "bylaw-4742..." or "4742, ...".
_SEED_NUMBER_RE = re.compile(r"^(?:bylaw[-\s])?(\d{4})|^(\d{4})[-,\s]", re.IGNORECASE)
_CONSOLIDATED_RE = re.compile(r"consolidat(?:ed|ion)", re.IGNORECASE)


class BylawRegistry:
    """Data access layer for the canonical registry tables.

    Wraps an open sqlite3.Connection. The connection is owned by the caller.
    All statements run under an internal lock so a connection opened with
    ``check_same_thread=False`` can be shared by concurrent search requests.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group writes into one unit: commit on success, roll back on any error.

        Nested calls join the outermost transaction, so only the outermost
        block commits or rolls back.
        """
        with self._lock:
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self._conn.rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                self._conn.commit()

    # ------------------------------------------------------------------
    # Bylaws
    # ------------------------------------------------------------------

    def add_bylaw(self, record: BylawRecord) -> None:
        """Insert a new bylaw and its sections.

        Raises:
            sqlite3.IntegrityError: If the bylaw number is already registered
                or a section number repeats. Nothing is written in that case.
        """
        with self.transaction():
            self._conn.execute(
                """
                INSERT INTO bylaws (bylaw_number, title, is_consolidated, consolidated_date,
                                    enactment_date, amendments, official_url, pdf_path)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                _record_params(record),
            )
            self._insert_sections(record)

    def update_bylaw(self, record: BylawRecord) -> None:
        """Replace an existing bylaw's fields and its full section list.

        On failure the previous fields and sections are left intact.
        """
        with self.transaction():
            cur = self._conn.execute(
                """
                UPDATE bylaws SET title = ?, is_consolidated = ?, consolidated_date = ?,
                    enactment_date = ?, amendments = ?, official_url = ?, pdf_path = ?,
                    last_verified = datetime('now')
                WHERE bylaw_number = ?
                """,
                (*_record_params(record)[1:], record.bylaw_number),
            )
            if cur.rowcount == 0:
                raise KeyError(f"Bylaw {record.bylaw_number} is not registered")
            self._conn.execute(
                "DELETE FROM bylaw_sections WHERE bylaw_number = ?", (record.bylaw_number,)
            )
            self._insert_sections(record)

    def upsert_bylaw(self, record: BylawRecord) -> None:
        if self.get_bylaw(record.bylaw_number) is None:
            self.add_bylaw(record)
        else:
            self.update_bylaw(record)

    def get_bylaw(self, bylaw_number: str) -> BylawRecord | None:
        """Return the registry entry (with sections) for *bylaw_number*, or None."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM bylaws WHERE bylaw_number = ?", (bylaw_number,)
            ).fetchone()
            if row is None:
                return None
            sections = self._sections_for(bylaw_number)
        return _row_to_record(row, sections)

    def list_bylaws(self) -> list[BylawRecord]:
        """Return every registered bylaw ordered by number (sections omitted)."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM bylaws ORDER BY bylaw_number"
            ).fetchall()
        return [_row_to_record(r, []) for r in rows]

    def find_similar(self, term: str, limit: int = 5) -> list[BylawRecord]:
        """Case-insensitive match on title or bylaw number."""
        pattern = f"%{term}%"
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM bylaws
                WHERE title LIKE ? COLLATE NOCASE OR bylaw_number LIKE ?
                ORDER BY bylaw_number LIMIT ?
                """,
                (pattern, pattern, limit),
            ).fetchall()
        return [_row_to_record(r, []) for r in rows]

    def count_bylaws(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM bylaws").fetchone()[0]

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def has_section(self, bylaw_number: str, section_number: str) -> bool:
        """True iff the (bylaw, section) pair exists in the registry."""
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM bylaw_sections WHERE bylaw_number = ? AND section_number = ?",
                (bylaw_number, section_number),
            ).fetchone()
        return row is not None

    def _sections_for(self, bylaw_number: str) -> list[BylawSection]:
        rows = self._conn.execute(
            """
            SELECT bylaw_number, section_number, title, content FROM bylaw_sections
            WHERE bylaw_number = ? ORDER BY section_number
            """,
            (bylaw_number,),
        ).fetchall()
        return [
            BylawSection(
                bylaw_number=r["bylaw_number"],
                section_number=r["section_number"],
                title=r["title"],
                content=r["content"],
            )
            for r in rows
        ]

    def _insert_sections(self, record: BylawRecord) -> None:
        self._conn.executemany(
            """
            INSERT INTO bylaw_sections (bylaw_number, section_number, title, content)
            VALUES (?, ?, ?, ?)
            """,
            [
                (record.bylaw_number, s.section_number, s.title, s.content)
                for s in record.sections
            ],
        )

    # ------------------------------------------------------------------
    # Citation feedback
    # ------------------------------------------------------------------

    def record_feedback(
        self,
        bylaw_number: str,
        section: str,
        feedback: str,
        comment: str | None = None,
    ) -> None:
        """Store reader feedback about a citation for later curator review.

        Raises:
            ValueError: If *feedback* is not one of FEEDBACK_VALUES.
        """
        if feedback not in FEEDBACK_VALUES:
            raise ValueError(
                f"feedback must be one of {sorted(FEEDBACK_VALUES)}, got {feedback!r}"
            )
        with self.transaction():
            self._conn.execute(
                """
                INSERT INTO citation_feedback (bylaw_number, section, feedback, user_comment)
                VALUES (?, ?, ?, ?)
                """,
                (bylaw_number, section, feedback, comment),
            )

    def list_feedback(self, bylaw_number: str) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT section, feedback, user_comment, recorded_at FROM citation_feedback
                WHERE bylaw_number = ? ORDER BY recorded_at, rowid
                """,
                (bylaw_number,),
            ).fetchall()
        return [dict(r) for r in rows]


# ------------------------------------------------------------------
# Curation helpers
# ------------------------------------------------------------------


def seed_from_pdf_dir(
    registry: BylawRegistry, pdf_dir: Path, official_url_base: str
) -> int:
    """Register one bylaw per recognised PDF filename in *pdf_dir*.

    Existing registry entries are left untouched. Titles are derived from the
    filename with the leading number stripped; no sections are created, so
    seeded bylaws never verify a section on their own.

    Returns:
        Number of bylaws added.
    """
    added = 0
    for path in sorted(pdf_dir.iterdir()):
        if path.suffix.lower() != ".pdf":
            continue
        match = _SEED_NUMBER_RE.match(path.name)
        if not match:
            logger.info("Skipping %s: no bylaw number in filename", path.name)
            continue
        number = match.group(1) or match.group(2)
        if registry.get_bylaw(number) is not None:
            continue
        title = re.sub(r"^(?:bylaw[-\s])?\d{4}[-,\s]+", "", path.stem, flags=re.IGNORECASE)
        registry.add_bylaw(
            BylawRecord(
                bylaw_number=number,
                title=title.strip() or f"Bylaw No. {number}",
                is_consolidated=bool(_CONSOLIDATED_RE.search(path.name)),
                pdf_path=str(path),
                official_url=f"{official_url_base.rstrip('/')}/{number}",
            )
        )
        added += 1
    logger.info("Seeded registry with %d bylaws from %s", added, pdf_dir)
    return added


def load_registry_yaml(registry: BylawRegistry, path: Path) -> int:
    """Upsert bylaw records from a curator-maintained YAML file.

    Expected shape::

        bylaws:
          - bylaw_number: "3210"
            title: Anti-Noise Bylaw
            is_consolidated: true
            amended_bylaws: ["4594"]
            sections:
              - section_number: "5(7)(a)"
                title: Construction hours
                content: ...

    The file is applied all-or-nothing: if any record fails, none are written.

    Returns:
        Number of records written.
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    entries = data.get("bylaws", [])
    with registry.transaction():
        for entry in entries:
            number = str(entry["bylaw_number"])
            registry.upsert_bylaw(
                BylawRecord(
                    bylaw_number=number,
                    title=str(entry.get("title", f"Bylaw No. {number}")),
                    is_consolidated=bool(entry.get("is_consolidated", False)),
                    consolidated_date=_opt_str(entry.get("consolidated_date")),
                    enactment_date=_opt_str(entry.get("enactment_date")),
                    amended_bylaws=[str(a) for a in entry.get("amended_bylaws", [])],
                    official_url=entry.get("official_url"),
                    pdf_path=entry.get("pdf_path"),
                    sections=[
                        BylawSection(
                            bylaw_number=number,
                            section_number=str(s["section_number"]),
                            title=s.get("title"),
                            content=str(s.get("content", "")),
                        )
                        for s in entry.get("sections", [])
                    ],
                )
            )
    return len(entries)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _record_params(record: BylawRecord) -> tuple:
    return (
        record.bylaw_number,
        record.title,
        int(record.is_consolidated),
        record.consolidated_date,
        record.enactment_date,
        ",".join(record.amended_bylaws),
        record.official_url,
        record.pdf_path,
    )


def _row_to_record(row: sqlite3.Row, sections: list[BylawSection]) -> BylawRecord:
    amendments = row["amendments"] or ""
    return BylawRecord(
        bylaw_number=row["bylaw_number"],
        title=row["title"],
        is_consolidated=bool(row["is_consolidated"]),
        consolidated_date=row["consolidated_date"],
        enactment_date=row["enactment_date"],
        amended_bylaws=[a for a in amendments.split(",") if a],
        official_url=row["official_url"],
        pdf_path=row["pdf_path"],
        last_verified=row["last_verified"],
        sections=sections,
    )
