"""ragchat CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from ragchat.cli.chat import chat_cmd, history_cmd
from ragchat.cli.ingest import ingest_cmd
from ragchat.cli.init import init_cmd
from ragchat.cli.maintenance import cleanup_cmd, reembed_cmd
from ragchat.cli.serve import serve_cmd
from ragchat.cli.stats import search_cmd, stats_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("ragchat")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ragchat {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="ragchat",
    help=(
        "ragchat — retrieval-augmented chat over your own documents.\n\n"
        "  ragchat ingest  Add text files to the knowledge base.\n"
        "  ragchat chat    Ask a question grounded in those documents.\n"
        "  ragchat serve   Run the HTTP API."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """ragchat — retrieval-augmented chat."""


app.command("init")(init_cmd)
app.command("serve")(serve_cmd)
app.command("ingest")(ingest_cmd)
app.command("chat")(chat_cmd)
app.command("history")(history_cmd)
app.command("stats")(stats_cmd)
app.command("search")(search_cmd)
app.command("cleanup")(cleanup_cmd)
app.command("reembed")(reembed_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed ragchat version."""
    typer.echo(f"ragchat {_installed_version()}")


if __name__ == "__main__":
    app()
