"""Actionable CLI error messages.

Every message states what went wrong and the exact action that fixes it.

Usage:
    from ragchat.cli.errors import err_no_db
    console.print(err_no_db(".ragchat.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from ragchat.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderUnconfiguredError,
    RagChatError,
)
from ragchat.rag.llm_client import provider_env_var


def err_no_api_key(model: str) -> str:
    """No usable credential for *model*'s provider.

    Example:
        No API key for model 'openai/gpt-4o'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = provider_env_var(model) or "PROVIDER_API_KEY"
    return (
        f"[red]Error:[/] No API key for model '{model}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".ragchat.db") -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  ragchat init"
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix ragchat.yaml, ~/.ragchat/config.yaml, or the RAGCHAT_* variables."
    )


def err_conversation_not_found(conversation_id: str) -> str:
    return (
        f"[red]Error:[/] Conversation '{conversation_id}' not found.\n"
        "  Omit --conversation to start a new one."
    )


def err_no_sources() -> str:
    return (
        "[red]Error:[/] No --source specified.\n"
        "  Use:  ragchat ingest --source notes.md --source docs/"
    )


def err_unreadable_source(path: str, reason: str) -> str:
    return (
        f"[yellow]Skipped:[/] cannot read '{path}' ({reason}).\n"
        "  Only UTF-8 text files (.txt, .md, .markdown, .rst) are ingested."
    )


def err_provider(exc: ProviderError) -> str:
    """Provider failure with a retry or credential hint matching its kind."""
    if isinstance(exc, ProviderAuthError):
        hint = "Check that the API key environment variable holds a valid key."
    elif isinstance(exc, ProviderRateLimitedError):
        hint = "Wait a moment and run the command again."
    else:
        hint = "The provider is unreachable or failing. Try again later."
    return f"[red]Error:[/] {exc}\n  {hint}"


def describe(exc: RagChatError, model: str = "") -> str:
    """Pick the message for any ragchat error raised under a CLI command."""
    if isinstance(exc, ProviderUnconfiguredError):
        return err_no_api_key(model) if model else f"[red]Error:[/] {exc}"
    if isinstance(exc, ProviderError):
        return err_provider(exc)
    return f"[red]Error:[/] {exc}"
