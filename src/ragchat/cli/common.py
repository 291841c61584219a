"""Shared setup for CLI commands: config, logging, database, pipeline."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from ragchat.cli.errors import err_config, err_no_db
from ragchat.config import RagChatConfig, load_config
from ragchat.db.connection import Database
from ragchat.errors import ConfigError
from ragchat.logging_config import setup_logging
from ragchat.rag.pipeline import RagPipeline

console = Console()


def load_settings(db: Path | None = None) -> RagChatConfig:
    """Load config, apply the ``--db`` flag, and configure logging.

    Exits with code 1 on an invalid config.
    """
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.database.path = str(db)
    setup_logging(cfg.logging.level)
    return cfg


def open_database(cfg: RagChatConfig, *, must_exist: bool = True) -> Database:
    """Return a migrated Database for ``cfg.database.path``.

    Exits with code 1 when *must_exist* and the file is missing.
    """
    path = Path(cfg.database.path)
    if must_exist and not path.exists():
        console.print(err_no_db(str(path)))
        raise typer.Exit(1)
    database = Database(path)
    database.initialize()
    return database


def build_pipeline(cfg: RagChatConfig, database: Database) -> RagPipeline:
    return RagPipeline.from_config(cfg, database)
