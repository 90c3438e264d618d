"""CLI command implementations for devshare.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .check import check, status
from .init import cleanup, init
from .lifecycle import start, stop
from .usage import release, use

__all__ = [
    "check",
    "cleanup",
    "init",
    "release",
    "start",
    "status",
    "stop",
    "use",
]
