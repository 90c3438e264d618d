"""Lock model for the coordination critical section.

A single lock file serializes every operation that mutates shared
state (user registry, server record, stop requests).
"""

import getpass
import os
import socket
from datetime import datetime

from pydantic import BaseModel, Field


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class Lock(BaseModel):
    """Coordination lock written to <state_dir>/lock.json.

    Attributes:
        holder_id: Opaque id of the acquiring agent.
        pid: Process ID of the lock holder (checked for liveness).
        acquired_at: When the lock was acquired.
        user: Login name of the holder.
        hostname: Host the holder runs on.
    """

    holder_id: str = Field(description="Agent holding the lock")
    pid: int = Field(default_factory=os.getpid, description="Process ID holding the lock")
    acquired_at: datetime = Field(default_factory=datetime.now)
    user: str = Field(default_factory=current_user)
    hostname: str = Field(default_factory=socket.gethostname)

    def age_seconds(self, now: datetime | None = None) -> float:
        """Seconds elapsed since acquisition."""
        return ((now or datetime.now()) - self.acquired_at).total_seconds()
