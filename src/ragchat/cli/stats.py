"""ragchat stats / search — inspect the knowledge base.

stats needs no API key. search embeds the query and shows the raw ranked
results, which helps tune retrieval.similarity_threshold.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel

from ragchat.cli.chat import sources_table
from ragchat.cli.common import build_pipeline, console, load_settings, open_database
from ragchat.cli.errors import describe
from ragchat.errors import RagChatError


def stats_cmd(
    db: Annotated[Path | None, typer.Option("--db", help="Database path.")] = None,
) -> None:
    """Show document counts and the embedding configuration."""
    cfg = load_settings(db)
    pipeline = build_pipeline(cfg, open_database(cfg))
    search = pipeline.vector_search

    stats = search.get_stats()
    missing = search.count_missing_embeddings()
    size_mb = Path(cfg.database.path).stat().st_size / (1024 * 1024)

    lines = [
        f"Database:           {cfg.database.path} ({size_mb:.1f} MB)",
        f"Documents:          [bold]{stats['totalDocuments']:,}[/]",
        f"Missing embeddings: [bold]{missing:,}[/]",
        f"Embedding model:    {cfg.embedding.model}",
        f"Embedding dim:      {stats['embeddingDimension']}",
    ]
    if missing:
        lines.append("\n[yellow]Run:[/]  ragchat reembed   or   ragchat cleanup")
    console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))


def search_cmd(
    query: Annotated[str, typer.Argument(help="Text to search for.")],
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Nearest documents.")] = 5,
    threshold: Annotated[
        float,
        typer.Option("--threshold", help="Minimum similarity (0 shows everything)."),
    ] = 0.0,
    db: Annotated[Path | None, typer.Option("--db", help="Database path.")] = None,
) -> None:
    """Embed QUERY and list the nearest documents with their similarity."""
    cfg = load_settings(db)
    pipeline = build_pipeline(cfg, open_database(cfg))

    try:
        embedding = pipeline.embeddings.embed(query)
        results = pipeline.vector_search.search(embedding, limit, threshold)
    except RagChatError as exc:
        console.print(describe(exc, cfg.embedding.model))
        raise typer.Exit(1) from exc

    if not results:
        console.print("[yellow]No documents matched.[/]")
        return
    console.print(sources_table(results))
