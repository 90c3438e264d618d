"""User registry models.

Each agent that depends on the shared server holds one registration.
The registry is a single JSON document rewritten under the lock.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .lock import current_user


class UserRegistration(BaseModel):
    """One agent's declared dependency on the shared server."""

    agent_id: str = Field(description="Caller-supplied agent id")
    owner_pid: int = Field(description="Process ID used for liveness checks")
    registered_at: datetime = Field(default_factory=datetime.now)
    user: str = Field(default_factory=current_user)

    def age_seconds(self, now: datetime | None = None) -> float:
        return ((now or datetime.now()) - self.registered_at).total_seconds()

    def summary(self) -> dict[str, Any]:
        """Agent id, owner pid and rounded age, as shown to callers."""
        return {
            "agent_id": self.agent_id,
            "pid": self.owner_pid,
            "age_seconds": round(self.age_seconds()),
        }


class Registry(BaseModel):
    """Registrations keyed by agent id, as stored in users.json."""

    entries: dict[str, UserRegistration] = Field(default_factory=dict)
