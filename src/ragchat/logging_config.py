"""Logging setup: stdlib ``logging`` rendered through rich.

Modules log via ``logging.getLogger(__name__)``. Entry points (CLI, server)
call ``setup_logging()`` once with the configured level.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_FORMAT = "%(name)s: %(message)s"


def setup_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Configure the ``ragchat`` logger hierarchy (idempotent).

    Args:
        level: Level name, e.g. ``"DEBUG"`` or ``"INFO"``.
        console: Rich console to write to. Defaults to stderr.
    """
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")

    logger = logging.getLogger("ragchat")
    logger.setLevel(resolved)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)

    # litellm is chatty at INFO; keep it quiet unless we're debugging.
    logging.getLogger("LiteLLM").setLevel(
        logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    )
