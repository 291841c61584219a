"""ragchat serve — run the HTTP API with uvicorn."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import uvicorn

from ragchat.api.app import create_app
from ragchat.cli.common import console, load_settings


def serve_cmd(
    host: Annotated[str | None, typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Bind port.")] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Database path.")] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Include stack traces in error responses."),
    ] = False,
) -> None:
    """Serve the chat API (migrates the database on startup)."""
    cfg = load_settings(db)
    if host is not None:
        cfg.server.host = host
    if port is not None:
        cfg.server.port = port
    if debug:
        cfg.server.debug = True

    app = create_app(cfg)
    console.print(
        f"[bold]ragchat[/] API on http://{cfg.server.host}:{cfg.server.port}/api "
        f"(db: {cfg.database.path})"
    )
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level=cfg.logging.level.lower())
