"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Use litellm's bundled model cost map; the remote fetch fails offline and
# breaks litellm's import.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest  # noqa: E402
from helpers import DIMS, FakeCompletions, FakeEmbeddings

from ragchat.config import RetrievalCfg
from ragchat.db.connection import Database
from ragchat.db.repository import ConversationRepository, DocumentRepository
from ragchat.rag.pipeline import RagPipeline
from ragchat.rag.vector_search import VectorSearch


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """No real credentials, RAGCHAT_* overrides, or home config leak into tests."""
    for key in (
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "RAGCHAT_EMBEDDING_MODEL",
        "RAGCHAT_EMBEDDING_DIMENSIONS",
        "RAGCHAT_GENERATION_MODEL",
        "RAGCHAT_MAX_SOURCES",
        "RAGCHAT_SIMILARITY_THRESHOLD",
        "RAGCHAT_DB_PATH",
        "RAGCHAT_LOG_LEVEL",
        "RAGCHAT_DEBUG",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(
        "ragchat.config._GLOBAL_CONFIG_PATH", tmp_path / "home" / ".ragchat" / "config.yaml"
    )


@pytest.fixture
def db(tmp_path) -> Database:
    """File-based DB in tmp_path with all migrations applied."""
    database = Database(tmp_path / ".ragchat.db")
    database.initialize()
    return database


@pytest.fixture
def documents(db) -> DocumentRepository:
    return DocumentRepository(db, dimensions=DIMS)


@pytest.fixture
def conversations(db) -> ConversationRepository:
    return ConversationRepository(db)


@pytest.fixture
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def fake_completions() -> FakeCompletions:
    return FakeCompletions()


@pytest.fixture
def pipeline(documents, conversations, fake_embeddings, fake_completions) -> RagPipeline:
    return RagPipeline(
        embeddings=fake_embeddings,
        completions=fake_completions,
        vector_search=VectorSearch(documents, dimension=DIMS),
        conversations=conversations,
        retrieval=RetrievalCfg(),
    )
