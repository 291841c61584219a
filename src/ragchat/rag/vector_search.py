"""Vector search facade over DocumentRepository.

Pass-through policy layer: adds diagnostics and result formatting on top of
the store. Search semantics (limit window, then threshold) belong to
DocumentRepository.vector_search().
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from ragchat.db.models import Document, DocumentSource, SearchResult
from ragchat.db.repository import DocumentRepository

logger = logging.getLogger(__name__)

_CONTEXT_SEPARATOR = "\n\n---\n\n"


class VectorSearch:
    """Add, search, and describe the document collection.

    Args:
        documents: Backing document store.
        dimension: Configured embedding dimension, reported by get_stats().
        notable_similarity: Top similarity at or above which a search is
            logged as notable. Diagnostic only.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        dimension: int | None = None,
        notable_similarity: float = 0.85,
    ) -> None:
        self._documents = documents
        self._dimension = dimension if dimension is not None else documents.dimensions
        self._notable_similarity = notable_similarity

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_document(
        self,
        content: str,
        embedding: Sequence[float],
        metadata: dict[str, Any] | None = None,
    ) -> Document:
        """Store a document whose embedding was computed by the caller."""
        return self._documents.create(content, embedding, metadata)

    def add_documents(self, items: Iterable[dict[str, Any]]) -> list[Document]:
        """Store ``{content, embedding, metadata?}`` items one at a time, in order."""
        return [
            self.add_document(item["content"], item["embedding"], item.get("metadata"))
            for item in items
        ]

    def update_embedding(self, doc_id: str, embedding: Sequence[float]) -> Document:
        return self._documents.update_embedding(doc_id, embedding)

    def delete_document(self, doc_id: str) -> bool:
        return self._documents.delete(doc_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_document(self, doc_id: str) -> Document | None:
        return self._documents.find_by_id(doc_id)

    def get_all_documents(self, limit: int = 100, offset: int = 0) -> list[Document]:
        return self._documents.find_all(limit, offset)

    def search(
        self,
        query_embedding: Sequence[float],
        limit: int = 5,
        threshold: float = 0.7,
    ) -> list[SearchResult]:
        """Delegate to the store and log whether the best match is notable."""
        results = self._documents.vector_search(query_embedding, limit, threshold)
        if results:
            top = results[0].similarity
            logger.info(
                "vector search returned %d result(s); top similarity %.4f%s",
                len(results),
                top,
                " (notable)" if top >= self._notable_similarity else "",
            )
        else:
            logger.info(
                "vector search returned no results (limit=%d, threshold=%.2f)",
                limit,
                threshold,
            )
        return results

    def find_missing_embeddings(self, limit: int = 100) -> list[Document]:
        return self._documents.find_missing_embeddings(limit)

    def count_missing_embeddings(self) -> int:
        return self._documents.count_missing_embeddings()

    def cleanup_missing_embeddings(self) -> int:
        """Delete documents that never received an embedding. Returns the count."""
        removed = self._documents.delete_missing_embeddings()
        logger.info("removed %d document(s) without embeddings", removed)
        return removed

    def get_stats(self) -> dict[str, int]:
        return {
            "totalDocuments": self._documents.count(),
            "embeddingDimension": self._dimension,
        }

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def format_sources(results: Iterable[SearchResult]) -> list[DocumentSource]:
        """Snapshot search results for persistence on an assistant message."""
        return [
            DocumentSource(
                id=r.id,
                content=r.content,
                metadata=dict(r.metadata),
                similarity=r.similarity,
            )
            for r in results
        ]

    @staticmethod
    def build_context(results: Sequence[SearchResult]) -> str:
        """Flatten results into one prompt fragment ('' when there are none)."""
        return _CONTEXT_SEPARATOR.join(
            f"[Document {i}] (Relevance: {r.similarity * 100:.1f}%)\n{r.content}"
            for i, r in enumerate(results, start=1)
        )
