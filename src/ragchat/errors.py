"""Error taxonomy shared by the stores, provider adapters, and the API layer.

Adapters raise these typed failures; the API layer maps each class to an
HTTP status via its ``status_code`` attribute.
"""

from __future__ import annotations


class RagChatError(Exception):
    """Base class for all ragchat errors."""

    status_code: int = 500


class ConfigError(RagChatError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


class ProviderUnconfiguredError(ConfigError):
    """No usable credential for the model provider (missing or placeholder)."""

    status_code = 503


class ProviderError(RagChatError):
    """Base class for failures reported by an embedding/completion provider."""

    status_code = 503


class ProviderAuthError(ProviderError):
    """The provider rejected the configured credential."""

    status_code = 502


class ProviderRateLimitedError(ProviderError):
    """The provider throttled the request. Retryable by the caller with backoff."""

    status_code = 429


class ProviderUnavailableError(ProviderError):
    """Upstream 5xx, timeout, or connection failure. Retryable by the caller."""

    status_code = 503


class NotFoundError(RagChatError, LookupError):
    """A referenced id does not exist."""

    status_code = 404


class ValidationError(RagChatError, ValueError):
    """Malformed input at a component or request boundary."""

    status_code = 400
