"""ragchat cleanup / reembed — repair documents stored without an embedding."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ragchat.cli.common import build_pipeline, console, load_settings, open_database
from ragchat.cli.errors import describe
from ragchat.errors import RagChatError


def cleanup_cmd(
    db: Annotated[Path | None, typer.Option("--db", help="Database path.")] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete documents that have no embedding."""
    cfg = load_settings(db)
    search = build_pipeline(cfg, open_database(cfg)).vector_search

    missing = search.count_missing_embeddings()
    if missing == 0:
        console.print("[green]✓[/] Every document has an embedding. Nothing to clean up.")
        return

    console.print(f"  {missing} document(s) without an embedding.")
    if not yes and not typer.confirm("  Delete them?", default=False):
        console.print("  [dim]Cancelled.[/]")
        raise typer.Exit(0)

    removed = search.cleanup_missing_embeddings()
    console.print(f"  [green]✓[/] Removed {removed} document(s).")


def reembed_cmd(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Maximum documents to embed."),
    ] = 100,
    db: Annotated[Path | None, typer.Option("--db", help="Database path.")] = None,
) -> None:
    """Compute embeddings for documents stored without one."""
    cfg = load_settings(db)
    pipeline = build_pipeline(cfg, open_database(cfg))

    try:
        results = pipeline.reembed_missing(limit)
    except RagChatError as exc:
        console.print(describe(exc, cfg.embedding.model))
        raise typer.Exit(1) from exc

    if not results:
        console.print("[green]✓[/] No documents are missing embeddings.")
        return

    for r in results:
        if not r.ok:
            console.print(f"  [red]✗[/] {r.id}: {r.error}")
    succeeded = sum(1 for r in results if r.ok)
    console.print(f"  [bold]{succeeded}/{len(results)}[/] document(s) embedded")
    if succeeded == 0:
        raise typer.Exit(1)
