"""Logging configuration for devshare CLI.

Log records go to stderr through rich, so stdout carries only command
output (and stays parseable with --json).
"""

import logging
import sys
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

# Libraries that log every health probe request at INFO.
CHATTY_LOGGERS = ("httpx", "httpcore")


def level_for(verbosity: int, quiet: bool) -> int:
    """-q shows warnings only, default shows progress, -v adds debug."""
    if quiet:
        return logging.WARNING
    return logging.DEBUG if verbosity >= 1 else logging.INFO


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    stream: TextIO | None = None,
) -> Console:
    """Install a RichHandler on the root logger.

    Args:
        verbosity: Number of -v flags; -vv also shows probe requests,
            timestamps and source locations
        quiet: Warnings and errors only (takes precedence over verbosity)
        no_color: Disable colored output
        stream: Output stream for logs (defaults to stderr)

    Returns:
        The console log records are written to
    """
    console = Console(
        file=stream or sys.stderr,
        force_terminal=False if no_color else None,
        no_color=no_color,
    )
    handler = RichHandler(
        console=console,
        show_time=verbosity >= 2,
        show_path=verbosity >= 2,
    )
    logging.basicConfig(
        level=level_for(verbosity, quiet),
        format="%(message)s",
        handlers=[handler],
        force=True,
    )

    library_level = logging.NOTSET if verbosity >= 2 else logging.WARNING
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return console
