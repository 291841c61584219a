"""Tests for logging setup and the error taxonomy."""

from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from ragchat.errors import (
    ConfigError,
    NotFoundError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderUnavailableError,
    ProviderUnconfiguredError,
    RagChatError,
    ValidationError,
)
from ragchat.logging_config import setup_logging


def test_setup_logging_is_idempotent():
    setup_logging("DEBUG")
    setup_logging("INFO")
    logger = logging.getLogger("ragchat")
    assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1
    assert logger.level == logging.INFO
    assert logging.getLogger("LiteLLM").level == logging.WARNING


def test_setup_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        setup_logging("CHATTY")


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (ValidationError, 400),
        (NotFoundError, 404),
        (ProviderRateLimitedError, 429),
        (ConfigError, 500),
        (ProviderAuthError, 502),
        (ProviderUnconfiguredError, 503),
        (ProviderUnavailableError, 503),
    ],
)
def test_error_status_codes(error, status):
    assert error.status_code == status
    assert issubclass(error, RagChatError)


def test_error_hierarchy():
    assert issubclass(ProviderUnconfiguredError, ConfigError)
    assert issubclass(ProviderAuthError, ProviderError)
    assert issubclass(NotFoundError, LookupError)
    assert issubclass(ValidationError, ValueError)
