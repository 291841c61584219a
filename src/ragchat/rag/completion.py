"""Completion provider adapter: system prompt + history + user turn → answer.

Message layout sent to the model:
  1. system — base instruction, plus numbered context sources when supplied
  2. history — prior turns, oldest first
  3. user — the current message
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from ragchat.config import GenerationCfg, ProvidersCfg
from ragchat.db.models import SearchResult
from ragchat.rag import llm_client
from ragchat.rag.llm_client import Completion, TokenUsage

logger = logging.getLogger(__name__)

__all__ = ["ChatMessage", "Completion", "CompletionOptions", "CompletionProvider", "TokenUsage"]

_BASE_PROMPT = (
    "You are a helpful AI customer service assistant. You provide accurate, "
    "relevant, and concise answers based on the information available to you."
)

_CONTEXT_INSTRUCTION = (
    "Use the following context to answer the user's question. If the context "
    "doesn't contain relevant information, please alert the user clearly that "
    "it is from your general knowledge."
)

_CITATION_HINT = (
    "When using information from the context, try to reference which source "
    'it came from (e.g., "According to Source 1...").'
)

_SUMMARY_SYSTEM = "You are a helpful assistant that summarizes text concisely."


@dataclass
class ChatMessage:
    role: str  # system | user | assistant
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class CompletionOptions:
    """Per-call overrides; ``None`` falls back to the generation config."""

    temperature: float | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None


def build_system_prompt(context: Sequence[SearchResult] | None = None) -> str:
    """Return the system instruction, enumerating *context* as numbered sources."""
    prompt = _BASE_PROMPT
    if not context:
        return prompt

    blocks = [
        f"[Source {i}] (Relevance: {doc.similarity * 100:.1f}%)\n{doc.content}\n\n"
        for i, doc in enumerate(context, start=1)
    ]
    prompt += f"\n\n{_CONTEXT_INSTRUCTION}\n\nCONTEXT:\n---\n"
    prompt += "---\n".join(blocks)
    prompt += f"\n{_CITATION_HINT}"
    return prompt


class CompletionProvider:
    """Chat completions through LiteLLM for the configured generation model."""

    def __init__(
        self,
        config: GenerationCfg | None = None,
        providers: ProvidersCfg | None = None,
    ) -> None:
        self._config = config or GenerationCfg()
        self._providers = providers or ProvidersCfg()

    @property
    def model(self) -> str:
        return self._config.model

    def is_configured(self) -> bool:
        return llm_client.is_configured(self._config.model)

    def build_messages(
        self,
        user_message: str,
        context_docs: Sequence[SearchResult] | None = None,
        history: Sequence[ChatMessage] | None = None,
        options: CompletionOptions | None = None,
    ) -> list[dict]:
        system_prompt = (options.system_prompt if options else None) or build_system_prompt(
            context_docs
        )
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(m.to_dict() for m in history or [])
        messages.append({"role": "user", "content": user_message})
        return messages

    def complete(
        self,
        user_message: str,
        context_docs: Sequence[SearchResult] | None = None,
        history: Sequence[ChatMessage] | None = None,
        options: CompletionOptions | None = None,
    ) -> Completion:
        """Generate an answer grounded in *context_docs*.

        Raises:
            ProviderUnconfiguredError: No credential for the provider.
            ProviderAuthError / ProviderRateLimitedError / ProviderUnavailableError:
                Translated provider failures.
        """
        llm_client.validate_api_key(self._config.model)
        messages = self.build_messages(user_message, context_docs, history, options)
        result = llm_client.complete(
            self._config.model,
            messages,
            **self._call_params(options),
        )
        logger.debug(
            "completion with %s used %d tokens",
            self._config.model,
            result.usage.total_tokens,
        )
        return result

    def stream(
        self,
        user_message: str,
        context_docs: Sequence[SearchResult] | None = None,
        history: Sequence[ChatMessage] | None = None,
        options: CompletionOptions | None = None,
    ) -> Iterator[str]:
        """Lazily yield answer fragments. Stop iterating (or close()) to cancel."""
        llm_client.validate_api_key(self._config.model)
        messages = self.build_messages(user_message, context_docs, history, options)
        return llm_client.stream(self._config.model, messages, **self._call_params(options))

    def summarize(self, text: str, max_words: int = 200) -> str:
        """Summarize *text* in at most roughly *max_words* words."""
        llm_client.validate_api_key(self._config.model)
        result = llm_client.complete(
            self._config.model,
            [
                {"role": "system", "content": _SUMMARY_SYSTEM},
                {
                    "role": "user",
                    "content": f"Summarize the following text in {max_words} words or less:\n\n{text}",
                },
            ],
            max_tokens=math.ceil(max_words * 1.5),
            temperature=0.5,
            num_retries=self._providers.num_retries,
            timeout=self._providers.timeout,
        )
        return result.text

    def _call_params(self, options: CompletionOptions | None) -> dict:
        temperature = options.temperature if options and options.temperature is not None else None
        max_tokens = options.max_tokens if options and options.max_tokens is not None else None
        return {
            "temperature": self._config.temperature if temperature is None else temperature,
            "max_tokens": self._config.max_tokens if max_tokens is None else max_tokens,
            "num_retries": self._providers.num_retries,
            "timeout": self._providers.timeout,
        }
