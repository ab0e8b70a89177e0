"""Logging configuration for Knowledge Base Chat CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging with rich output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    console = Console(stderr=True)

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                tracebacks_show_locals=True,
            )
        ],
        force=True,
    )

    # Reduce noise from HTTP and client libraries
    for name in ("httpx", "httpcore", "openai", "chromadb", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
