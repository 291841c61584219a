"""RAG pipeline: query answering and best-effort document ingestion.

query():
  1. Fail fast if the embedding/completion providers lack credentials.
  2. Create a conversation when none is given.
  3. Persist the user turn (kept even if a later step fails).
  4. Embed the query.
  5. Vector search (nearest ``max_sources``, then similarity threshold).
  6. Load history: drop the turn just stored, keep the last ``history_limit``.
  7. Ask the completion provider.
  8. Persist the assistant turn with source snapshots.
  9. Return answer, sources, conversation id, and token usage.

Steps 4-8 run sequentially and any failure propagates; nothing is retried or
rolled back. ingest_documents() processes documents and chunks one at a time
and records per-item failures instead of raising.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ragchat.config import RagChatConfig, RetrievalCfg
from ragchat.db.connection import Database
from ragchat.db.models import ConversationWithMessages, SearchResult
from ragchat.db.repository import ConversationRepository, DocumentRepository
from ragchat.errors import ProviderUnconfiguredError, RagChatError, ValidationError
from ragchat.rag import llm_client
from ragchat.rag.completion import ChatMessage, CompletionProvider, TokenUsage
from ragchat.rag.embeddings import EmbeddingProvider
from ragchat.rag.vector_search import VectorSearch

logger = logging.getLogger(__name__)

# Per-item failures that ingestion records instead of raising.
_ITEM_ERRORS = (RagChatError, sqlite3.Error, ValueError, TypeError)


@dataclass
class QueryOptions:
    """Per-query overrides; ``None`` uses the retrieval config default."""

    max_sources: int | None = None
    similarity_threshold: float | None = None
    include_history: bool = True


@dataclass
class RagResponse:
    answer: str
    sources: list[SearchResult]
    conversation_id: str
    usage: TokenUsage = field(default_factory=TokenUsage)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.answer,
            "conversationId": self.conversation_id,
            "sources": [s.to_dict() for s in self.sources],
            "usage": self.usage.to_dict(),
        }


@dataclass
class IngestResult:
    """Outcome of one stored document or chunk (``status``: success | error)."""

    status: str
    document_index: int
    chunk_index: int | None = None
    id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status, "documentIndex": self.document_index}
        if self.chunk_index is not None:
            data["chunkIndex"] = self.chunk_index
        if self.id is not None:
            data["id"] = self.id
        if self.error is not None:
            data["error"] = self.error
        return data


class RagPipeline:
    """Coordinates embedding, search, history, completion, and persistence.

    All collaborators are injected; build a fully wired instance from config
    with ``RagPipeline.from_config()``.
    """

    def __init__(
        self,
        embeddings: EmbeddingProvider,
        completions: CompletionProvider,
        vector_search: VectorSearch,
        conversations: ConversationRepository,
        retrieval: RetrievalCfg | None = None,
    ) -> None:
        self.embeddings = embeddings
        self.completions = completions
        self.vector_search = vector_search
        self.conversations = conversations
        self._retrieval = retrieval or RetrievalCfg()

    @classmethod
    def from_config(cls, config: RagChatConfig, db: Database) -> RagPipeline:
        documents = DocumentRepository(db, dimensions=config.embedding.dimensions)
        return cls(
            embeddings=EmbeddingProvider(config.embedding, config.providers, config.ingest),
            completions=CompletionProvider(config.generation, config.providers),
            vector_search=VectorSearch(
                documents,
                dimension=config.embedding.dimensions,
                notable_similarity=config.retrieval.notable_similarity,
            ),
            conversations=ConversationRepository(db),
            retrieval=config.retrieval,
        )

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(
        self,
        user_message: str,
        conversation_id: str | None = None,
        options: QueryOptions | None = None,
    ) -> RagResponse:
        """Answer *user_message* with retrieved context and record both turns.

        Raises:
            ProviderUnconfiguredError: Before any side effect, if a provider
                has no credential.
            NotFoundError: If *conversation_id* does not exist.
            ProviderError: Embedding or completion failure after the user turn
                was stored.
        """
        options = options or QueryOptions()
        max_sources, threshold = self._resolve_search_params(options)

        self._require_configured()

        conv_id = conversation_id
        if not conv_id:
            conv_id = self.conversations.create_conversation().id
            logger.info("started conversation %s", conv_id)

        self.conversations.add_message(conv_id, "user", user_message)

        logger.info("generating query embedding")
        query_embedding = self.embeddings.embed(user_message)

        logger.info("searching for relevant documents")
        sources = self.vector_search.search(query_embedding, max_sources, threshold)

        history = self._load_history(conv_id) if options.include_history else []

        logger.info("generating answer with %d source(s)", len(sources))
        completion = self.completions.complete(user_message, sources, history or None)

        self.conversations.add_message(
            conv_id,
            "assistant",
            completion.text,
            sources=self.vector_search.format_sources(sources),
        )
        logger.info("answer stored for conversation %s", conv_id)

        return RagResponse(
            answer=completion.text,
            sources=sources,
            conversation_id=conv_id,
            usage=completion.usage,
        )

    def stream(
        self,
        user_message: str,
        options: QueryOptions | None = None,
    ) -> Iterator[str]:
        """Retrieve context and stream the answer. Nothing is persisted."""
        options = options or QueryOptions()
        max_sources, threshold = self._resolve_search_params(options)
        self._require_configured()
        sources = self.vector_search.search(
            self.embeddings.embed(user_message), max_sources, threshold
        )
        return self.completions.stream(user_message, sources)

    def get_history(self, conversation_id: str) -> ConversationWithMessages | None:
        return self.conversations.get_conversation_with_messages(conversation_id)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_documents(self, documents: Sequence[Mapping[str, Any]]) -> list[IngestResult]:
        """Chunk, embed, and store each ``{content, metadata?}`` document.

        Documents and chunks are handled one at a time, in order. A failure
        is recorded as an error result and the remaining items still run.

        Raises:
            ProviderUnconfiguredError: Before any side effect, if the embedding
                provider has no credential.
        """
        self._require_configured()
        logger.info("starting ingestion of %d document(s)", len(documents))

        results: list[IngestResult] = []
        for index, doc in enumerate(documents):
            results.extend(self._ingest_one(index, doc))

        succeeded = sum(1 for r in results if r.ok)
        logger.info("ingestion complete: %d/%d successful", succeeded, len(results))
        return results

    def ingest_document(
        self, content: str, metadata: dict[str, Any] | None = None
    ) -> list[IngestResult]:
        return self.ingest_documents([{"content": content, "metadata": metadata}])

    def reembed_missing(self, limit: int = 100) -> list[IngestResult]:
        """Compute embeddings for stored documents that have none.

        Best-effort like ingestion: each document's failure is recorded.
        ``document_index`` is the position in this batch.
        """
        self._require_configured()
        results: list[IngestResult] = []
        for index, doc in enumerate(self.vector_search.find_missing_embeddings(limit)):
            try:
                self.vector_search.update_embedding(doc.id, self.embeddings.embed(doc.content))
            except _ITEM_ERRORS as exc:
                logger.error("could not embed document %s: %s", doc.id, exc)
                results.append(
                    IngestResult(status="error", document_index=index, id=doc.id, error=str(exc))
                )
            else:
                results.append(IngestResult(status="success", document_index=index, id=doc.id))
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ingest_one(self, index: int, doc: Mapping[str, Any]) -> list[IngestResult]:
        try:
            content = doc.get("content")
            if not isinstance(content, str) or not content.strip():
                raise ValidationError("Document content must be a non-empty string")
            metadata = dict(doc.get("metadata") or {})
            chunks = self.embeddings.chunk(content)
        except _ITEM_ERRORS as exc:
            logger.error("error processing document %d: %s", index + 1, exc)
            return [IngestResult(status="error", document_index=index, error=str(exc))]

        if len(chunks) <= 1:
            logger.info("processing document %d", index + 1)
            return [self._store(index, None, content, metadata)]

        logger.info("document %d split into %d chunks", index + 1, len(chunks))
        return [
            self._store(
                index,
                chunk_index,
                chunk,
                {
                    **metadata,
                    "chunkIndex": chunk_index,
                    "totalChunks": len(chunks),
                    "isChunked": True,
                },
            )
            for chunk_index, chunk in enumerate(chunks)
        ]

    def _store(
        self,
        index: int,
        chunk_index: int | None,
        content: str,
        metadata: dict[str, Any],
    ) -> IngestResult:
        try:
            embedding = self.embeddings.embed(content)
            document = self.vector_search.add_document(content, embedding, metadata)
        except _ITEM_ERRORS as exc:
            where = f"document {index + 1}" + (
                f" chunk {chunk_index + 1}" if chunk_index is not None else ""
            )
            logger.error("error processing %s: %s", where, exc)
            return IngestResult(
                status="error", document_index=index, chunk_index=chunk_index, error=str(exc)
            )
        return IngestResult(
            status="success", document_index=index, chunk_index=chunk_index, id=document.id
        )

    def _load_history(self, conversation_id: str) -> list[ChatMessage]:
        """Prior turns oldest first, excluding the user turn just stored."""
        limit = self._retrieval.history_limit
        if limit <= 0:
            return []
        previous = self.conversations.get_messages(conversation_id)[:-1]
        return [ChatMessage(role=m.role, content=m.content) for m in previous[-limit:]]

    def _resolve_search_params(self, options: QueryOptions) -> tuple[int, float]:
        max_sources = (
            options.max_sources
            if options.max_sources is not None
            else self._retrieval.max_sources
        )
        threshold = (
            options.similarity_threshold
            if options.similarity_threshold is not None
            else self._retrieval.similarity_threshold
        )
        if max_sources < 1:
            raise ValidationError(f"maxSources must be >= 1, got {max_sources}")
        return max_sources, threshold

    def _require_configured(self) -> None:
        for provider in (self.embeddings, self.completions):
            if not provider.is_configured():
                env_var = llm_client.provider_env_var(provider.model)
                raise ProviderUnconfiguredError(
                    f"Model provider for '{provider.model}' is not configured. "
                    f"Set the {env_var} environment variable."
                )
