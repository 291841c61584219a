"""ragchat ingest — read text files and add them to the knowledge base.

Each file becomes one document (chunked when long) with metadata
``{"source": <path>}``. Directories expand to their text files; add
--recursive to descend into subdirectories.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer
from rich.table import Table

from ragchat.cli.common import build_pipeline, console, load_settings, open_database
from ragchat.cli.errors import describe, err_no_sources, err_unreadable_source
from ragchat.errors import RagChatError

_TEXT_EXTS = {".txt", ".md", ".markdown", ".rst", ".text"}


def ingest_cmd(
    source: Annotated[
        list[Path] | None,
        typer.Option("--source", "-s", help="File or directory to ingest (repeatable)."),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Database path.")] = None,
    recursive: Annotated[
        bool,
        typer.Option("--recursive", help="Recurse into subdirectories."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Chunk, embed, and store text files."""
    if not source:
        console.print(err_no_sources())
        raise typer.Exit(1)

    files = expand_sources(source, recursive=recursive)
    if not files:
        console.print("[yellow]No text files found to ingest.[/]")
        raise typer.Exit(0)

    documents = _read_documents(files)
    if not documents:
        raise typer.Exit(1)

    total_chars = sum(len(d["content"]) for d in documents)
    console.print(f"  {len(documents)} file(s), {total_chars:,} characters")
    if not yes and not typer.confirm("  Proceed with embedding?", default=True):
        console.print("  [dim]Cancelled.[/]")
        raise typer.Exit(0)

    cfg = load_settings(db)
    pipeline = build_pipeline(cfg, open_database(cfg, must_exist=False))

    try:
        results = pipeline.ingest_documents(documents)
    except RagChatError as exc:
        console.print(describe(exc, cfg.embedding.model))
        raise typer.Exit(1) from exc

    table = Table(show_header=True, header_style="bold")
    table.add_column("Source")
    table.add_column("Chunk", justify="right")
    table.add_column("Result")
    for r in results:
        chunk = "" if r.chunk_index is None else str(r.chunk_index + 1)
        outcome = "[green]✓ stored[/]" if r.ok else f"[red]✗ {r.error}[/]"
        table.add_row(documents[r.document_index]["metadata"]["source"], chunk, outcome)
    console.print(table)

    succeeded = sum(1 for r in results if r.ok)
    console.print(f"\n  [bold]{succeeded}/{len(results)}[/] item(s) stored")
    if results and succeeded == 0:
        raise typer.Exit(1)


def expand_sources(sources: list[Path], recursive: bool = False) -> list[Path]:
    """Expand directories to sorted text files; explicit files are kept as given."""
    files: list[Path] = []
    for src in sources:
        if src.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(
                sorted(p for p in src.glob(pattern) if p.is_file() and p.suffix.lower() in _TEXT_EXTS)
            )
        else:
            files.append(src)
    return files


def _read_documents(files: list[Path]) -> list[dict[str, Any]]:
    documents: list[dict[str, Any]] = []
    for path in files:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            console.print(err_unreadable_source(str(path), type(exc).__name__))
            continue
        documents.append({"content": content, "metadata": {"source": str(path)}})
    return documents
