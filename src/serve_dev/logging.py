"""Terminal output for serve-dev.

Log records from every ``serve_dev.*`` module go to stderr through one rich
handler; the startup summary and plain messages go to stdout. uvicorn keeps
its own loggers, tuned to the same verbosity.
"""

from __future__ import annotations

import logging
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler

console = Console()
err_console = Console(stderr=True)

Verbosity = Literal["quiet", "normal", "verbose"]

LOGGER_NAME = "serve_dev"

# "normal" shows change and build lines, "verbose" adds stream and request detail
LOG_LEVELS: dict[Verbosity, int] = {
    "quiet": logging.ERROR,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}

# Access lines only in verbose mode
UVICORN_LEVELS: dict[Verbosity, str] = {
    "quiet": "error",
    "normal": "warning",
    "verbose": "info",
}


def setup_logging(verbosity: Verbosity = "normal") -> logging.Logger:
    """Route serve-dev log records to stderr at the given verbosity.

    Calling it again replaces the handler, so the CLI can be invoked
    repeatedly in one process.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(LOG_LEVELS[verbosity])

    verbose = verbosity == "verbose"
    handler = RichHandler(
        console=err_console,
        show_time=verbose,
        show_path=verbose,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


def uvicorn_log_level(verbosity: Verbosity) -> str:
    """uvicorn log level name for a verbosity."""
    return UVICORN_LEVELS[verbosity]


def print_error(message: str) -> None:
    """Report a fatal problem on stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_info(message: str) -> None:
    console.print(message)
