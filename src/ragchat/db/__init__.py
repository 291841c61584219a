"""ragchat database layer."""

from ragchat.db.connection import Database
from ragchat.db.migrations import MIGRATIONS, run_migrations
from ragchat.db.repository import ConversationRepository, DocumentRepository
from ragchat.db.schema import initialize
from ragchat.db.vectors import parse_vector, serialize_vector

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "DocumentRepository",
    "ConversationRepository",
    "parse_vector",
    "serialize_vector",
]
