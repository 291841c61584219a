"""LiteLLM client wrapper: API key validation, retry, and error translation.

All embedding and chat-completion calls route through this module.
LiteLLM's built-in retry is used (``num_retries``, exponential backoff).
Provider failures are re-raised as the ragchat error taxonomy so callers
never see litellm exception types.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import litellm

from ragchat.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderUnavailableError,
    ProviderUnconfiguredError,
)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

PLACEHOLDER_KEY = "placeholder-key"

# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


@dataclass
class Completion:
    """Text of the first choice plus token accounting."""

    text: str
    usage: TokenUsage


def provider_env_var(model: str) -> str | None:
    """Return the env var holding the credential for *model*'s provider."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    if provider in _PROVIDER_ENV:
        return _PROVIDER_ENV[provider]
    return f"{provider.upper()}_API_KEY"


def is_configured(model: str) -> bool:
    """True if *model* needs no key, or its key is set and not the placeholder."""
    env_var = provider_env_var(model)
    if env_var is None:
        return True
    value = os.getenv(env_var)
    return bool(value) and value != PLACEHOLDER_KEY


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        ProviderUnconfiguredError: If the key is missing or still the placeholder.
    """
    if not is_configured(model):
        env_var = provider_env_var(model)
        raise ProviderUnconfiguredError(
            f"API key not configured for model '{model}'. "
            f"Set the {env_var} environment variable."
        )


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Re-raise litellm exceptions as ragchat provider errors.

    litellm status errors have no common litellm base class; every handled
    type is listed explicitly.
    """
    try:
        yield
    except (litellm.AuthenticationError, litellm.PermissionDeniedError) as exc:
        raise ProviderAuthError(f"Invalid API key ({action})") from exc
    except litellm.RateLimitError as exc:
        raise ProviderRateLimitedError(
            f"Provider rate limit exceeded ({action}). Please try again later."
        ) from exc
    except (
        litellm.Timeout,
        litellm.APIConnectionError,
        litellm.ServiceUnavailableError,
        litellm.BadGatewayError,
        litellm.InternalServerError,
    ) as exc:
        raise ProviderUnavailableError(
            f"Provider unavailable ({action}). Please try again later."
        ) from exc
    except litellm.APIError as exc:
        raise ProviderUnavailableError(f"Provider error ({action}): {exc}") from exc
    except (
        litellm.BadRequestError,
        litellm.NotFoundError,
        litellm.UnprocessableEntityError,
        litellm.APIResponseValidationError,
    ) as exc:
        raise ProviderError(f"Provider rejected the request ({action}): {exc}") from exc


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 1000,
    temperature: float = 0.7,
    num_retries: int = 3,
    timeout: float | None = None,
) -> Completion:
    """Call litellm.completion() with retry/backoff.

    Args:
        model: LiteLLM model string (provider/model format).
        messages: OpenAI-style message list.
        max_tokens: Maximum output tokens.
        temperature: Sampling temperature.
        num_retries: Number of retries on transient errors (exponential backoff).
        timeout: Per-request timeout in seconds.

    Returns:
        Completion with the first choice's text and token usage (zeros if the
        provider did not report usage).

    Raises:
        ProviderError: Translated provider failure, or no choices returned.
    """
    with translate_errors("chat completion"):
        response = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
            timeout=timeout,
        )

    if not response.choices:
        raise ProviderUnavailableError("No response generated by the provider")

    usage = getattr(response, "usage", None)
    return Completion(
        text=response.choices[0].message.content or "",
        usage=TokenUsage(
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            total_tokens=getattr(usage, "total_tokens", 0) or 0,
        ),
    )


def stream(
    model: str,
    messages: list[dict],
    max_tokens: int = 1000,
    temperature: float = 0.7,
    num_retries: int = 3,
    timeout: float | None = None,
) -> Iterator[str]:
    """Yield non-empty content deltas from a streaming completion.

    Closing the generator early closes the underlying provider stream.
    """
    with translate_errors("streaming completion"):
        response = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
            timeout=timeout,
            stream=True,
        )
    try:
        with translate_errors("streaming completion"):
            for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
    finally:
        close = getattr(response, "close", None)
        if callable(close):
            close()


def embed_many(
    model: str,
    texts: Sequence[str],
    num_retries: int = 3,
    timeout: float | None = None,
) -> list[list[float]]:
    """Embed *texts* in one request. Results follow input order.

    Providers may return items out of order; each item's ``index`` decides
    its position.
    """
    with translate_errors("embedding"):
        response = litellm.embedding(
            model=model,
            input=list(texts),
            num_retries=num_retries,
            timeout=timeout,
        )

    data = list(response.data or [])
    if len(data) != len(texts):
        raise ProviderUnavailableError(
            f"Provider returned {len(data)} embedding(s) for {len(texts)} input(s)"
        )
    indexed = [
        (_item_value(item, "index"), position, item) for position, item in enumerate(data)
    ]
    indexed.sort(key=lambda t: t[0] if t[0] is not None else t[1])
    return [list(_item_value(item, "embedding")) for _, _, item in indexed]


def _item_value(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)
