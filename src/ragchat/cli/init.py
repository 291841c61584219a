"""ragchat init — create the database and the global config file.

Creates:
  .ragchat.db              — empty knowledge base, all migrations applied
  ~/.ragchat/config.yaml   — global model defaults (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ragchat.cli.common import console, load_settings, open_database
from ragchat.config import ensure_global_config
from ragchat.db.migrations import current_version


def init_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path. Defaults to database.path from config."),
    ] = None,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Create the database and run migrations. Safe to re-run."""
    cfg = load_settings(db)
    path = Path(cfg.database.path)
    existed = path.exists()

    database = open_database(cfg, must_exist=False)
    with database as conn:
        version = current_version(conn)

    verb = "Migrated" if existed else "Created"
    console.print(f"  [green]✓[/] {verb} {path} (schema v{version})")

    config_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] Global config: {config_path}")
    console.print(
        "\n  Next:\n"
        "    export OPENAI_API_KEY=sk-...\n"
        "    ragchat ingest --source docs/\n"
        '    ragchat chat "How do I reset my password?"'
    )
