"""Tests for EmbeddingProvider."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from ragchat.config import EmbeddingCfg, IngestCfg, ProvidersCfg
from ragchat.errors import ProviderUnavailableError, ProviderUnconfiguredError
from ragchat.rag.embeddings import EmbeddingProvider


@pytest.fixture
def provider():
    return EmbeddingProvider(
        EmbeddingCfg(model="openai/text-embedding-3-small", dimensions=2),
        ProvidersCfg(num_retries=1, timeout=5.0),
        IngestCfg(max_chunk_size=12),
    )


def _response(*vectors):
    response = MagicMock()
    response.data = [{"index": i, "embedding": v} for i, v in enumerate(vectors)]
    return response


def test_embed(provider, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch("litellm.embedding", return_value=_response([0.6, 0.8])) as mock_embedding:
        assert provider.embed("hello") == [0.6, 0.8]
    kwargs = mock_embedding.call_args.kwargs
    assert kwargs["num_retries"] == 1
    assert kwargs["timeout"] == 5.0


def test_embed_batch_preserves_order(provider, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch("litellm.embedding", return_value=_response([1.0, 0.0], [0.0, 1.0])):
        assert provider.embed_batch(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]


def test_embed_batch_empty_makes_no_call(provider):
    with patch("litellm.embedding") as mock_embedding:
        assert provider.embed_batch([]) == []
    mock_embedding.assert_not_called()


def test_unconfigured_fails_before_network(provider):
    assert provider.is_configured() is False
    with patch("litellm.embedding") as mock_embedding:
        with pytest.raises(ProviderUnconfiguredError):
            provider.embed("hello")
    mock_embedding.assert_not_called()


def test_wrong_dimension_from_provider(provider, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch("litellm.embedding", return_value=_response([1.0, 0.0, 0.0])):
        with pytest.raises(ProviderUnavailableError, match="expected 2"):
            provider.embed("hello")


def test_embedding_dimension_is_configured_value(provider):
    assert provider.embedding_dimension() == 2


def test_chunk_uses_ingest_config(provider):
    assert provider.chunk("aaaa\n\nbbbb\n\ncccc") == ["aaaa\n\nbbbb", "cccc"]
    assert provider.chunk("aaaa\n\nbbbb\n\ncccc", max_chunk_size=100) == ["aaaa\n\nbbbb\n\ncccc"]
