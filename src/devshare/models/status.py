"""Status and operation result models.

Every coordinator operation answers with an OperationResult so callers
can tell success from a refusal (busy, stuck) and from a failure, and
decide what to do next from the attached details.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .lock import Lock
from .registration import UserRegistration
from .server import ServerRecord, StopRequest


class ServerState(str, Enum):
    """Observed state of the shared server."""

    RUNNING = "running"
    NOT_RUNNING = "not_running"
    STUCK = "stuck"


class Outcome(str, Enum):
    """Result class of a coordinator operation."""

    SUCCESS = "success"
    REFUSED = "refused"
    FAILURE = "failure"


class ErrorKind(str, Enum):
    """Why an operation was refused or failed."""

    LOCK_TIMEOUT = "lock_timeout"
    RESOURCE_BUSY = "resource_busy"
    RESOURCE_STUCK = "resource_stuck"
    LAUNCH_FAILURE = "launch_failure"
    TERMINATION_FAILURE = "termination_failure"


class LockInfo(BaseModel):
    """Lock as seen by a status check."""

    lock: Lock
    age_seconds: float
    stale: bool


class StatusReport(BaseModel):
    """Read-only snapshot of the coordination state.

    Not taken under the lock: it may be stale by the time it is read.
    """

    state: ServerState
    server_pids: list[int] = Field(default_factory=list)
    healthy: bool = False
    health_url: str = ""
    record: ServerRecord | None = None
    users: list[UserRegistration] = Field(default_factory=list)
    lock: LockInfo | None = None
    stop_request: StopRequest | None = None

    @property
    def user_count(self) -> int:
        return len(self.users)


class OperationResult(BaseModel):
    """Outcome of check/start/stop/use/release/cleanup."""

    outcome: Outcome
    message: str
    state: ServerState | None = None
    error: ErrorKind | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS
