"""Logging setup shared by anything embedding the triage engine."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )
    # SDK transport logs stay at warning even in verbose mode
    logging.getLogger("httpx").setLevel(logging.WARNING)
    for name in ("anthropic", "openai", "google_genai"):
        logging.getLogger(name).setLevel(logging.WARNING)
