"""ragchat chat / history — query the knowledge base from the terminal."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from ragchat.cli.common import build_pipeline, console, load_settings, open_database
from ragchat.cli.errors import describe, err_conversation_not_found
from ragchat.db.models import SearchResult
from ragchat.errors import NotFoundError, ProviderUnconfiguredError, RagChatError
from ragchat.rag.pipeline import QueryOptions

_SNIPPET_CHARS = 80


def chat_cmd(
    message: Annotated[str, typer.Argument(help="Question to ask.")],
    conversation: Annotated[
        str | None,
        typer.Option("--conversation", "-c", help="Continue an existing conversation."),
    ] = None,
    max_sources: Annotated[
        int | None,
        typer.Option("--max-sources", min=1, help="Nearest documents to consider."),
    ] = None,
    threshold: Annotated[
        float | None,
        typer.Option("--threshold", help="Minimum similarity for a source to be used."),
    ] = None,
    no_history: Annotated[
        bool,
        typer.Option("--no-history", help="Do not replay earlier turns to the model."),
    ] = False,
    db: Annotated[Path | None, typer.Option("--db", help="Database path.")] = None,
) -> None:
    """Ask one question and print the answer with its sources."""
    cfg = load_settings(db)
    pipeline = build_pipeline(cfg, open_database(cfg))
    options = QueryOptions(
        max_sources=max_sources,
        similarity_threshold=threshold,
        include_history=not no_history,
    )

    try:
        response = pipeline.query(message, conversation, options)
    except NotFoundError as exc:
        console.print(err_conversation_not_found(conversation or ""))
        raise typer.Exit(1) from exc
    except ProviderUnconfiguredError as exc:
        model = cfg.embedding.model if not pipeline.embeddings.is_configured() else cfg.generation.model
        console.print(describe(exc, model))
        raise typer.Exit(1) from exc
    except RagChatError as exc:
        console.print(describe(exc))
        raise typer.Exit(1) from exc

    console.print(Panel(response.answer, title="[bold]Answer[/]", expand=False))
    if response.sources:
        console.print(sources_table(response.sources))
    else:
        console.print("[dim]No sources above the similarity threshold.[/]")
    console.print(
        f"[dim]conversation {response.conversation_id} · "
        f"{response.usage.total_tokens} tokens[/]"
    )


def history_cmd(
    conversation_id: Annotated[str, typer.Argument(help="Conversation id.")],
    db: Annotated[Path | None, typer.Option("--db", help="Database path.")] = None,
) -> None:
    """Print every message of a conversation, oldest first."""
    cfg = load_settings(db)
    pipeline = build_pipeline(cfg, open_database(cfg))

    history = pipeline.get_history(conversation_id)
    if history is None:
        console.print(err_conversation_not_found(conversation_id))
        raise typer.Exit(1)

    console.print(f"[bold]Conversation {history.conversation.id}[/]")
    console.print(
        f"[dim]started {history.conversation.created_at} · "
        f"last active {history.conversation.updated_at}[/]\n"
    )
    for msg in history.messages:
        colour = "cyan" if msg.role == "user" else "green"
        console.print(f"[bold {colour}]{msg.role}[/] [dim]{msg.created_at}[/]")
        console.print(msg.content)
        if msg.sources:
            console.print(f"[dim]  {len(msg.sources)} source(s)[/]")
        console.print()


def sources_table(results: list[SearchResult]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Relevance", justify="right")
    table.add_column("Source")
    table.add_column("Excerpt")
    for i, r in enumerate(results, start=1):
        excerpt = " ".join(r.content.split())
        if len(excerpt) > _SNIPPET_CHARS:
            excerpt = excerpt[: _SNIPPET_CHARS - 1] + "…"
        table.add_row(
            str(i),
            f"{r.similarity * 100:.1f}%",
            str(r.metadata.get("source", r.id)),
            excerpt,
        )
    return table
