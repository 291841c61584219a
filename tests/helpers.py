"""Test doubles and vector helpers shared across test modules."""

from __future__ import annotations

import math
from collections.abc import Iterator

from ragchat.errors import ProviderUnavailableError
from ragchat.ingest.chunker import chunk_text
from ragchat.rag.completion import Completion, TokenUsage

DIMS = 2


def unit(similarity: float) -> list[float]:
    """2-d unit vector whose cosine similarity with [1, 0] is *similarity*."""
    return [similarity, math.sqrt(1.0 - similarity**2)]


class FakeEmbeddings:
    """Deterministic embedding provider: looks texts up in *vectors*."""

    model = "openai/text-embedding-3-small"

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        fail_on: set[str] | None = None,
        max_chunk_size: int = 8000,
    ) -> None:
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0]
        self.fail_on = fail_on or set()
        self.max_chunk_size = max_chunk_size
        self.configured = True
        self.calls: list[str] = []

    def is_configured(self) -> bool:
        return self.configured

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise ProviderUnavailableError(f"embedding failed for {text!r}")
        return list(self.vectors.get(text, self.default))

    def chunk(self, text: str, max_chunk_size: int | None = None) -> list[str]:
        return chunk_text(text, max_chunk_size or self.max_chunk_size)


class FakeCompletions:
    """Completion provider that records its inputs and returns a fixed answer."""

    model = "openai/gpt-4-turbo-preview"

    def __init__(self, answer: str = "Here is the answer.", error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.configured = True
        self.calls: list[dict] = []

    def is_configured(self) -> bool:
        return self.configured

    def complete(self, user_message, context_docs=None, history=None, options=None) -> Completion:
        self.calls.append(
            {"user_message": user_message, "context_docs": context_docs, "history": history}
        )
        if self.error is not None:
            raise self.error
        return Completion(text=self.answer, usage=TokenUsage(12, 8, 20))

    def stream(self, user_message, context_docs=None, history=None, options=None) -> Iterator[str]:
        self.calls.append({"user_message": user_message, "context_docs": context_docs})
        return self._fragments()

    def _fragments(self) -> Iterator[str]:
        # Lazy like a provider stream: errors surface on the first read.
        if self.error is not None:
            raise self.error
        yield from ["Here ", "is ", "the ", "answer."]
