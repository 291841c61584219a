"""Repositories for documents and conversations.

DocumentRepository owns document persistence and the similarity-search
policy. ConversationRepository owns conversations and their messages.
Both open a short-lived connection per call through Database.connection(),
hold no in-process cache, and never touch the network.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Sequence
from typing import Any

from ragchat.db.connection import Database
from ragchat.db.models import (
    ROLES,
    Conversation,
    ConversationWithMessages,
    Document,
    DocumentSource,
    Message,
    SearchResult,
)
from ragchat.db.vectors import (
    MAX_KNN,
    check_dimension,
    ensure_vec_table,
    parse_vector,
    serialize_vector,
)
from ragchat.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_DOCUMENT_COLUMNS = "id, content, embedding, metadata, created_at, updated_at"
_MESSAGE_COLUMNS = "id, conversation_id, role, content, sources, created_at"
_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


class DocumentRepository:
    """Data access for documents: CRUD plus cosine-similarity search.

    Args:
        db: Database whose schema has been initialised.
        dimensions: Required length of every stored or query embedding.
    """

    def __init__(self, db: Database, dimensions: int = 1536) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        self._db = db
        self.dimensions = dimensions

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        content: str,
        embedding: Sequence[float] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Document:
        """Insert a document. The embedding is stored as NULL when omitted.

        Raises:
            ValidationError: If *embedding* does not have the configured dimension.
        """
        embedding_value = self._encode(embedding) if embedding is not None else None
        doc_id = str(uuid.uuid4())
        with self._db.connection() as conn:
            conn.execute(
                "INSERT INTO documents (id, content, embedding, metadata) VALUES (?, ?, ?, ?)",
                (doc_id, content, embedding_value, json.dumps(metadata or {})),
            )
            if embedding_value is not None:
                self._index(conn, doc_id, embedding_value)
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (doc_id,)
            ).fetchone()
        return _row_to_document(row)

    def update_embedding(self, doc_id: str, embedding: Sequence[float]) -> Document:
        """Replace the embedding of *doc_id*; updated_at advances.

        Raises:
            NotFoundError: If no document has this id.
            ValidationError: If *embedding* does not have the configured dimension.
        """
        embedding_value = self._encode(embedding)
        with self._db.connection() as conn:
            cur = conn.execute(
                f"UPDATE documents SET embedding = ?, updated_at = {_NOW} WHERE id = ?",
                (embedding_value, doc_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Document with id {doc_id} not found")
            self._index(conn, doc_id, embedding_value)
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (doc_id,)
            ).fetchone()
        return _row_to_document(row)

    def delete(self, doc_id: str) -> bool:
        """Delete a document. Returns True iff a row was removed."""
        with self._db.connection() as conn:
            conn.execute(
                f"DELETE FROM {self._knn_table(conn)} WHERE document_id = ?", (doc_id,)
            )
            cur = conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))
            return cur.rowcount > 0

    def delete_missing_embeddings(self) -> int:
        """Delete every document whose embedding is NULL. Returns the count removed."""
        with self._db.connection() as conn:
            cur = conn.execute("DELETE FROM documents WHERE embedding IS NULL")
            return cur.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, doc_id: str) -> Document | None:
        with self._db.connection() as conn:
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (doc_id,)
            ).fetchone()
        return _row_to_document(row) if row else None

    def find_all(self, limit: int = 100, offset: int = 0) -> list[Document]:
        """Return documents newest first."""
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_DOCUMENT_COLUMNS} FROM documents
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()
        return [_row_to_document(r) for r in rows]

    def find_missing_embeddings(self, limit: int = 100) -> list[Document]:
        """Return documents whose embedding has not been computed yet, oldest first."""
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_DOCUMENT_COLUMNS} FROM documents
                WHERE embedding IS NULL
                ORDER BY created_at, rowid
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [_row_to_document(r) for r in rows]

    def count(self) -> int:
        with self._db.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def count_missing_embeddings(self) -> int:
        with self._db.connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM documents WHERE embedding IS NULL"
            ).fetchone()[0]

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------

    def vector_search(
        self,
        query_embedding: Sequence[float],
        limit: int = 5,
        threshold: float = 0.7,
    ) -> list[SearchResult]:
        """Return the nearest documents whose similarity clears *threshold*.

        Two steps, in this order:
          1. take the *limit* nearest documents from the vec0 cosine index
             (documents without an embedding are never indexed);
          2. keep those with ``1 - distance >= threshold``.

        The threshold is applied inside the limit window, so a high threshold
        can return fewer than *limit* results even when more qualifying
        documents exist further out. Request a larger *limit* for exhaustive
        threshold filtering.

        Raises:
            ValidationError: If the query vector has the wrong dimension or
                *limit* is outside 1..MAX_KNN.
        """
        if not 1 <= limit <= MAX_KNN:
            raise ValidationError(f"limit must be between 1 and {MAX_KNN}, got {limit}")
        query_value = self._encode(query_embedding)

        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                WITH knn AS (
                    SELECT document_id, distance
                    FROM {self._knn_table(conn)}
                    WHERE embedding MATCH vec_f32(?) AND k = ?
                )
                SELECT d.id, d.content, d.metadata, knn.distance
                FROM knn JOIN documents d ON d.id = knn.document_id
                ORDER BY knn.distance
                """,
                (query_value, limit),
            ).fetchall()

        candidates = [
            SearchResult(
                id=r["id"],
                content=r["content"],
                metadata=json.loads(r["metadata"]),
                similarity=1.0 - float(r["distance"]),
            )
            for r in rows
        ]
        logger.debug(
            "vector search limit=%d threshold=%.3f candidates=%s",
            limit,
            threshold,
            [round(c.similarity, 4) for c in candidates],
        )
        results = [c for c in candidates if c.similarity >= threshold]
        logger.debug("after threshold filter: %d result(s)", len(results))
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _knn_table(self, conn: sqlite3.Connection) -> str:
        return ensure_vec_table(conn, self.dimensions)

    def _index(self, conn: sqlite3.Connection, doc_id: str, embedding_value: str) -> None:
        table = self._knn_table(conn)
        conn.execute(f"DELETE FROM {table} WHERE document_id = ?", (doc_id,))
        conn.execute(
            f"INSERT INTO {table} (document_id, embedding) VALUES (?, vec_f32(?))",
            (doc_id, embedding_value),
        )

    def _encode(self, embedding: Sequence[float]) -> str:
        try:
            check_dimension(embedding, self.dimensions)
            return serialize_vector(embedding)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc


class ConversationRepository:
    """Data access for conversations and their ordered, immutable messages."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create_conversation(self) -> Conversation:
        conv_id = str(uuid.uuid4())
        with self._db.connection() as conn:
            conn.execute("INSERT INTO conversations (id) VALUES (?)", (conv_id,))
            row = conn.execute(
                "SELECT id, created_at, updated_at FROM conversations WHERE id = ?",
                (conv_id,),
            ).fetchone()
        return _row_to_conversation(row)

    def find_conversation_by_id(self, conv_id: str) -> Conversation | None:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT id, created_at, updated_at FROM conversations WHERE id = ?",
                (conv_id,),
            ).fetchone()
        return _row_to_conversation(row) if row else None

    def delete_conversation(self, conv_id: str) -> bool:
        """Delete a conversation and (by cascade) all of its messages."""
        with self._db.connection() as conn:
            cur = conn.execute("DELETE FROM conversations WHERE id = ?", (conv_id,))
            return cur.rowcount > 0

    def get_recent_conversations(self, limit: int = 20, offset: int = 0) -> list[Conversation]:
        """Return conversations most recently active first."""
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, created_at, updated_at FROM conversations
                ORDER BY updated_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()
        return [_row_to_conversation(r) for r in rows]

    def get_conversation_with_messages(self, conv_id: str) -> ConversationWithMessages | None:
        conversation = self.find_conversation_by_id(conv_id)
        if conversation is None:
            return None
        return ConversationWithMessages(
            conversation=conversation, messages=self.get_messages(conv_id)
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        sources: Sequence[DocumentSource] | None = None,
    ) -> Message:
        """Append a message and touch the parent conversation's updated_at.

        Raises:
            ValidationError: If *role* is not 'user' or 'assistant'.
            NotFoundError: If the conversation does not exist.
        """
        if role not in ROLES:
            raise ValidationError(f"Invalid message role: {role!r}")
        msg_id = str(uuid.uuid4())
        sources_json = json.dumps([s.to_dict() for s in sources or []])

        with self._db.connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO messages (id, conversation_id, role, content, sources)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (msg_id, conversation_id, role, content, sources_json),
                )
            except sqlite3.IntegrityError as exc:
                raise NotFoundError(
                    f"Conversation with id {conversation_id} not found"
                ) from exc
            conn.execute(
                f"UPDATE conversations SET updated_at = {_NOW} WHERE id = ?",
                (conversation_id,),
            )
            row = conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?", (msg_id,)
            ).fetchone()
        return _row_to_message(row)

    def get_messages(self, conversation_id: str) -> list[Message]:
        """Return the conversation's messages oldest first (insertion order on ties)."""
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM messages
                WHERE conversation_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (conversation_id,),
            ).fetchall()
        return [_row_to_message(r) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        content=row["content"],
        embedding=parse_vector(row["embedding"]) if row["embedding"] else None,
        metadata=json.loads(row["metadata"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        sources=[DocumentSource.from_dict(s) for s in json.loads(row["sources"])],
        created_at=row["created_at"],
    )
