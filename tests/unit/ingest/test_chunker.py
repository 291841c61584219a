"""Tests for the paragraph-first text chunker."""

from __future__ import annotations

import pytest

from ragchat.ingest.chunker import ParagraphChunker, chunk_text, split_sentences


def test_short_text_is_one_chunk():
    assert chunk_text("Hello world.", max_chunk_size=100) == ["Hello world."]


def test_empty_and_whitespace_yield_nothing():
    assert chunk_text("") == []
    assert chunk_text("   \n\n  \n\n") == []


def test_paragraphs_are_merged_while_they_fit():
    text = "aaaa\n\nbbbb\n\ncccc"
    # "aaaa\n\nbbbb" is 10 characters; adding the third paragraph would exceed 12.
    assert chunk_text(text, max_chunk_size=12) == ["aaaa\n\nbbbb", "cccc"]


def test_every_chunk_respects_the_limit():
    paragraphs = [f"Paragraph number {i} has some words in it." for i in range(40)]
    chunks = chunk_text("\n\n".join(paragraphs), max_chunk_size=120)
    assert len(chunks) > 1
    assert all(len(c) <= 120 for c in chunks)


def test_chunks_preserve_paragraph_order():
    paragraphs = [f"p{i}" * 10 for i in range(10)]
    chunks = chunk_text("\n\n".join(paragraphs), max_chunk_size=50)
    joined = "\n\n".join(chunks)
    positions = [joined.index(p) for p in paragraphs]
    assert positions == sorted(positions)


def test_long_paragraph_splits_on_sentences():
    paragraph = "First sentence here. Second one is here! Third, a question? Fourth."
    chunks = chunk_text(paragraph, max_chunk_size=30)
    assert chunks == [
        "First sentence here.",
        "Second one is here!",
        "Third, a question? Fourth.",
    ]


def test_single_oversized_sentence_is_kept_whole():
    sentence = "x" * 50 + "."
    assert chunk_text(sentence, max_chunk_size=10) == [sentence]


def test_unterminated_tail_is_kept():
    paragraph = "One sentence. Then a trailing fragment without a stop"
    chunks = chunk_text(paragraph, max_chunk_size=20)
    assert "".join(chunks).replace(" ", "") == paragraph.replace(" ", "")


def test_chunking_is_deterministic():
    text = "\n\n".join(f"Line {i}. More text follows here." for i in range(30))
    assert chunk_text(text, 90) == chunk_text(text, 90)


def test_rejects_non_positive_size():
    with pytest.raises(ValueError):
        chunk_text("abc", max_chunk_size=0)


def test_split_sentences_rejoins_to_input():
    paragraph = "Hi there. How are you? Fine!  Trailing"
    assert "".join(split_sentences(paragraph)) == paragraph


def test_split_sentences_without_terminator():
    assert split_sentences("no punctuation") == ["no punctuation"]


def test_paragraph_chunker_uses_configured_size():
    chunker = ParagraphChunker(max_chunk_size=12)
    assert chunker.chunk("aaaa\n\nbbbb\n\ncccc") == ["aaaa\n\nbbbb", "cccc"]
    with pytest.raises(ValueError):
        ParagraphChunker(max_chunk_size=0)
