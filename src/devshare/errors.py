"""Coordination errors.

Each error maps to an ErrorKind so the controller can report it to the
caller together with the context needed to decide the next action.
"""

from typing import Any

from .models import ErrorKind, Outcome


class CoordinationError(Exception):
    """Base exception for coordination errors."""

    kind: ErrorKind | None = None
    outcome: Outcome = Outcome.FAILURE

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class LockTimeout(CoordinationError):
    """Raised when the lock could not be acquired within the timeout."""

    kind = ErrorKind.LOCK_TIMEOUT
    outcome = Outcome.REFUSED


class LockNotHeld(RuntimeError):
    """Raised when shared state is mutated without holding the lock."""


class ResourceBusy(CoordinationError):
    """Raised when a stop is refused because live users remain."""

    kind = ErrorKind.RESOURCE_BUSY
    outcome = Outcome.REFUSED


class ResourceStuck(CoordinationError):
    """Raised when the server process exists but does not answer its probe."""

    kind = ErrorKind.RESOURCE_STUCK
    outcome = Outcome.REFUSED


class ProcessLaunchFailure(CoordinationError):
    """Raised when the start command did not produce a healthy server."""

    kind = ErrorKind.LAUNCH_FAILURE


class TerminationFailure(CoordinationError):
    """Raised when a process survives the forceful termination signal."""

    kind = ErrorKind.TERMINATION_FAILURE
