"""ragchat ingest helpers — text chunking ahead of embedding."""

from ragchat.ingest.chunker import (
    DEFAULT_MAX_CHUNK_SIZE,
    ParagraphChunker,
    chunk_text,
    split_sentences,
)

__all__ = ["DEFAULT_MAX_CHUNK_SIZE", "ParagraphChunker", "chunk_text", "split_sentences"]
