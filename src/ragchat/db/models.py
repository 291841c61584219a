"""Domain models for the ragchat database layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant"]
ROLES: frozenset[str] = frozenset({"user", "assistant"})


@dataclass
class Document:
    id: str
    content: str
    embedding: list[float] | None = None  # None until computed
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class SearchResult:
    """A document returned by vector search, with similarity = 1 - cosine distance."""

    id: str
    content: str
    metadata: dict[str, Any]
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata,
            "similarity": self.similarity,
        }


@dataclass(frozen=True)
class DocumentSource:
    """Point-in-time snapshot of a search result attached to an assistant message.

    Does not follow the live document: later edits or deletes are not reflected.
    """

    id: str
    content: str
    metadata: dict[str, Any]
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "similarity": self.similarity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentSource:
        return cls(
            id=str(data["id"]),
            content=str(data["content"]),
            metadata=dict(data.get("metadata") or {}),
            similarity=float(data["similarity"]),
        )


@dataclass
class Conversation:
    id: str
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "createdAt": self.created_at, "updatedAt": self.updated_at}


@dataclass
class Message:
    id: str
    conversation_id: str
    role: Role
    content: str
    sources: list[DocumentSource] = field(default_factory=list)
    created_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "sources": [s.to_dict() for s in self.sources],
            "createdAt": self.created_at,
        }


@dataclass
class ConversationWithMessages:
    conversation: Conversation
    messages: list[Message]
