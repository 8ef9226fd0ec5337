"""Tests for BylawChunker."""

from __future__ import annotations

import pytest

from bylaw_search.ingest.chunker import BylawChunker


def _para(prefix: str, n: int = 15) -> str:
    # 15 words: a0..a9 (2 chars) + a10..a14 (3 chars) + 14 spaces = 49 chars
    return " ".join(f"{prefix}{i}" for i in range(n))


P1, P2, P3 = _para("a"), _para("b"), _para("c")
TEXT = "\n\n".join([P1, P2, P3])


# ------------------------------------------------------------------
# Construction
# ------------------------------------------------------------------


def test_rejects_bad_parameters():
    with pytest.raises(ValueError):
        BylawChunker(chunk_size=0)
    with pytest.raises(ValueError):
        BylawChunker(chunk_size=100, overlap=100)
    with pytest.raises(ValueError):
        BylawChunker(chunk_size=100, overlap=-1)


# ------------------------------------------------------------------
# Basic splitting
# ------------------------------------------------------------------


def test_empty_text_yields_no_chunks():
    assert BylawChunker().chunk("") == []
    assert BylawChunker().chunk("\n\n   \n\n") == []


def test_short_text_is_single_chunk():
    chunks = BylawChunker().chunk("Title\n\nBody paragraph.")
    assert len(chunks) == 1
    assert chunks[0].index == 0
    assert chunks[0].text == "Title\n\nBody paragraph."
    assert chunks[0].position == 0
    assert chunks[0].overlap_length == 0


def test_paragraphs_packed_until_size_exceeded():
    assert len(P1) == 49
    chunks = BylawChunker(chunk_size=100, overlap=30).chunk(TEXT)

    assert len(chunks) == 2
    assert chunks[0].text == f"{P1}\n\n{P2}"
    # overlap budget 30 chars -> 30 // 7 = 4 trailing words
    assert chunks[1].text == f"b11 b12 b13 b14\n\n{P3}"
    assert chunks[1].overlap_length == len("b11 b12 b13 b14")
    assert chunks[1].position == TEXT.index(P3)
    assert [c.index for c in chunks] == [0, 1]


def test_chunks_reconstruct_original_text():
    text = "\n\n".join(_para(p) for p in "abcdefgh")
    chunks = BylawChunker(chunk_size=120, overlap=40).chunk(text)
    assert len(chunks) > 1

    rebuilt = chunks[0].text
    for chunk in chunks[1:]:
        assert chunk.overlap_length > 0
        # strip the carried words and their "\n\n" separator
        rebuilt += "\n\n" + chunk.text[chunk.overlap_length + 2 :]
    assert rebuilt == text


def test_consecutive_chunks_share_overlap():
    text = "\n\n".join(_para(p) for p in "abcdef")
    chunks = BylawChunker(chunk_size=100, overlap=30).chunk(text)
    for prev, nxt in zip(chunks, chunks[1:]):
        carried = nxt.text[: nxt.overlap_length]
        assert carried
        assert prev.text.endswith(carried)


def test_overlap_never_exceeds_budget():
    long_words = " ".join(["abcdefghijklmnop"] * 6)
    text = "\n\n".join([long_words, long_words, long_words])
    chunks = BylawChunker(chunk_size=120, overlap=20).chunk(text)
    assert len(chunks) > 1
    assert all(c.overlap_length <= 20 for c in chunks)


def test_long_trailing_token_still_overlaps():
    # e.g. a URL or a run of table cells with no spaces
    token = "x" * 250
    text = f"Schedule A\n\n{token}\n\nNext provision."
    chunks = BylawChunker(chunk_size=270, overlap=200).chunk(text)

    assert len(chunks) == 2
    assert chunks[1].overlap_length == 200
    carried = chunks[1].text[:200]
    assert chunks[0].text.endswith(carried)


def test_overlap_below_one_word_still_carries_text():
    chunks = BylawChunker(chunk_size=60, overlap=3).chunk(TEXT)
    assert len(chunks) > 1
    for prev, nxt in zip(chunks, chunks[1:]):
        carried = nxt.text[: nxt.overlap_length]
        assert 0 < len(carried) <= 3
        assert prev.text.endswith(carried)


def test_zero_overlap_carries_nothing():
    chunks = BylawChunker(chunk_size=60, overlap=0).chunk(TEXT)
    assert [c.text for c in chunks] == [P1, P2, P3]
    assert all(c.overlap_length == 0 for c in chunks)


# ------------------------------------------------------------------
# Oversized paragraphs
# ------------------------------------------------------------------


def test_oversized_paragraph_emitted_whole():
    huge = "word " * 100
    chunks = BylawChunker(chunk_size=50, overlap=10).chunk(huge)
    assert len(chunks) == 1
    assert chunks[0].text == huge.strip()


def test_oversized_paragraph_after_small_one():
    huge = " ".join(["word"] * 40)
    chunks = BylawChunker(chunk_size=50, overlap=10).chunk(f"Heading\n\n{huge}")
    assert chunks[0].text == "Heading"
    assert chunks[1].text.endswith(huge)
    assert chunks[1].length > 50
