"""Embedding provider adapter: text → fixed-dimension vectors, plus chunking."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ragchat.config import EmbeddingCfg, IngestCfg, ProvidersCfg
from ragchat.errors import ProviderUnavailableError
from ragchat.ingest.chunker import chunk_text
from ragchat.rag import llm_client

logger = logging.getLogger(__name__)


class EmbeddingProvider:
    """Generate embeddings through LiteLLM for the configured model.

    Args:
        config: Embedding model and output dimension.
        providers: Retry count and timeout shared by provider calls.
        ingest: Chunking limits used by ``chunk()``.
    """

    def __init__(
        self,
        config: EmbeddingCfg | None = None,
        providers: ProvidersCfg | None = None,
        ingest: IngestCfg | None = None,
    ) -> None:
        self._config = config or EmbeddingCfg()
        self._providers = providers or ProvidersCfg()
        self._ingest = ingest or IngestCfg()

    @property
    def model(self) -> str:
        return self._config.model

    def is_configured(self) -> bool:
        return llm_client.is_configured(self._config.model)

    def embedding_dimension(self) -> int:
        """Configured output size. No network call."""
        return self._config.dimensions

    def embed(self, text: str) -> list[float]:
        """Embed one text.

        Raises:
            ProviderUnconfiguredError: No credential for the provider.
            ProviderAuthError / ProviderRateLimitedError / ProviderUnavailableError:
                Translated provider failures.
        """
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* in one request; output order matches input order."""
        if not texts:
            return []
        llm_client.validate_api_key(self._config.model)
        vectors = llm_client.embed_many(
            self._config.model,
            texts,
            num_retries=self._providers.num_retries,
            timeout=self._providers.timeout,
        )
        for vector in vectors:
            if len(vector) != self._config.dimensions:
                raise ProviderUnavailableError(
                    f"Model '{self._config.model}' returned {len(vector)} dimensions, "
                    f"expected {self._config.dimensions}"
                )
        logger.debug("embedded %d text(s) with %s", len(texts), self._config.model)
        return vectors

    def chunk(self, text: str, max_chunk_size: int | None = None) -> list[str]:
        """Split *text* for embedding; see ragchat.ingest.chunker.chunk_text."""
        return chunk_text(text, max_chunk_size or self._ingest.max_chunk_size)
