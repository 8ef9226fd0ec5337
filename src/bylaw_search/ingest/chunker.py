"""Paragraph-aware chunker with a trailing word overlap."""

from __future__ import annotations

import re

from bylaw_search.db.models import Chunk

# A paragraph is a maximal run of text containing no blank line.
_PARAGRAPH_RE = re.compile(r"(?:(?!\n\s*\n).)+", re.DOTALL)

# Average English word plus its separating space, in characters.
_CHARS_PER_WORD = 7


class BylawChunker:
    """Greedily pack paragraphs into chunks of at most ``chunk_size`` characters.

    When the next paragraph would push the buffer past ``chunk_size`` the buffer
    is emitted and the next one is seeded with the trailing words of the
    emitted chunk (roughly ``overlap`` characters worth), so a provision split
    across a boundary stays retrievable from either side.

    A single paragraph longer than ``chunk_size`` is emitted whole rather than
    cut mid-sentence; the limit is a packing target, not a hard cap.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, text: str) -> list[Chunk]:
        """Split *text* into sequentially indexed chunks; empty text yields []."""
        chunks: list[Chunk] = []
        buf = ""
        buf_position = 0
        buf_overlap = 0

        for match in _PARAGRAPH_RE.finditer(text):
            raw = match.group(0)
            para = raw.strip()
            if not para:
                continue
            offset = match.start() + len(raw) - len(raw.lstrip())

            if buf and len(buf) + len(para) > self.chunk_size:
                chunks.append(
                    Chunk(
                        index=len(chunks),
                        text=buf,
                        position=buf_position,
                        overlap_length=buf_overlap,
                    )
                )
                carried = self._overlap_text(buf)
                buf = f"{carried}\n\n{para}" if carried else para
                buf_overlap = len(carried)
                buf_position = offset
            elif buf:
                buf = f"{buf}\n\n{para}"
            else:
                buf = para
                buf_position = offset
                buf_overlap = 0

        if buf:
            chunks.append(
                Chunk(
                    index=len(chunks),
                    text=buf,
                    position=buf_position,
                    overlap_length=buf_overlap,
                )
            )
        return chunks

    def _overlap_text(self, text: str) -> str:
        """Trailing words of *text* totalling at most ``overlap`` characters.

        If even the last word is longer than ``overlap``, its final
        ``overlap`` characters are carried instead.
        """
        if self.overlap <= 0:
            return ""
        word_budget = max(self.overlap // _CHARS_PER_WORD, 1)
        words = text.split()[-word_budget:]
        while words and len(" ".join(words)) > self.overlap:
            words.pop(0)
        if words:
            return " ".join(words)
        return text.rstrip()[-self.overlap :]
