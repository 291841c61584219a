"""Paragraph-first text chunker for embedding long documents.

Greedy accumulate-and-flush:
  1. Split on blank lines ("\\n\\n") into paragraphs.
  2. Append paragraphs to the running chunk while the joined length stays
     within ``max_chunk_size``; on overflow, flush and start a new chunk.
  3. A paragraph longer than ``max_chunk_size`` on its own is split into
     sentences (runs ending in '.', '!' or '?') and accumulated the same way.
     A single sentence longer than the limit is kept whole.

Pure function of its input: the same text always yields the same chunks.
"""

from __future__ import annotations

import re

DEFAULT_MAX_CHUNK_SIZE = 8000

_PARAGRAPH_SEP = "\n\n"
# Sentence runs plus any unterminated tail, so the pieces re-join to the paragraph.
_SENTENCE_RE: re.Pattern[str] = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")


def split_sentences(paragraph: str) -> list[str]:
    """Split *paragraph* into sentence runs; ``"".join()`` restores the input."""
    return _SENTENCE_RE.findall(paragraph) or [paragraph]


def chunk_text(text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[str]:
    """Split *text* into stripped chunks of at most *max_chunk_size* characters.

    Only an indivisible sentence longer than the limit produces an oversized
    chunk. Empty or whitespace-only input yields ``[]``.

    Raises:
        ValueError: If *max_chunk_size* < 1.
    """
    if max_chunk_size < 1:
        raise ValueError("max_chunk_size must be >= 1")

    chunks: list[str] = []
    current = ""

    def flush() -> None:
        nonlocal current
        stripped = current.strip()
        if stripped:
            chunks.append(stripped)
        current = ""

    for paragraph in text.split(_PARAGRAPH_SEP):
        joined = current + _PARAGRAPH_SEP + paragraph if current else paragraph
        if len(joined) <= max_chunk_size:
            current = joined
            continue

        flush()

        if len(paragraph) <= max_chunk_size:
            current = paragraph
            continue

        for sentence in split_sentences(paragraph):
            if len(current + sentence) > max_chunk_size:
                flush()
                current = sentence
            else:
                current += sentence

    flush()
    return chunks


class ParagraphChunker:
    """``chunk_text`` bound to a configured chunk size."""

    def __init__(self, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> None:
        if max_chunk_size < 1:
            raise ValueError("max_chunk_size must be >= 1")
        self.max_chunk_size = max_chunk_size

    def chunk(self, text: str) -> list[str]:
        return chunk_text(text, self.max_chunk_size)
