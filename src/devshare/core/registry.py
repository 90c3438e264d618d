"""Reference-counting registry of agents using the shared server.

Mutating operations require the caller to hold the coordination lock;
the registry checks this and raises LockNotHeld otherwise. Reads
(list) need no lock and may observe a transiently stale view.
"""

import logging
from pathlib import Path

from ..errors import LockNotHeld
from ..models import Registry, UserRegistration
from .liveness import is_pid_alive
from .lock_manager import holds_lock
from .state_dir import read_model, users_path, write_model

logger = logging.getLogger(__name__)


class UserRegistry:
    """Registrations of agents depending on the shared server."""

    def __init__(self, state_dir: Path, holder_id: str | None = None) -> None:
        self.state_dir = state_dir
        self.holder_id = holder_id
        self.path = users_path(state_dir)

    def _require_lock(self, operation: str) -> None:
        if not holds_lock(self.state_dir, self.holder_id):
            raise LockNotHeld(f"Cannot {operation} without holding the coordination lock")

    def _load(self) -> Registry:
        return read_model(self.path, Registry) or Registry()

    def _save(self, registry: Registry) -> None:
        if registry.entries:
            write_model(self.path, registry)
        else:
            self.path.unlink(missing_ok=True)

    def register(self, agent_id: str, pid: int) -> UserRegistration:
        """Insert or refresh the registration for agent_id."""
        self._require_lock("register")
        registry = self._load()
        refreshed = agent_id in registry.entries
        entry = UserRegistration(agent_id=agent_id, owner_pid=pid)
        registry.entries[agent_id] = entry
        self._save(registry)
        if refreshed:
            logger.info("Refreshed registration for %s (PID %d)", agent_id, pid)
        else:
            logger.info("Registered %s (PID %d)", agent_id, pid)
        return entry

    def unregister(self, agent_id: str) -> bool:
        """Remove agent_id; returns False if it was not registered."""
        self._require_lock("unregister")
        registry = self._load()
        if registry.entries.pop(agent_id, None) is None:
            logger.debug("%s was not registered", agent_id)
            return False
        self._save(registry)
        logger.info("Unregistered %s", agent_id)
        return True

    def purge_dead(self) -> list[UserRegistration]:
        """Remove registrations whose owning process is gone.

        Returns:
            The purged registrations
        """
        self._require_lock("purge registrations")
        registry = self._load()
        dead = [e for e in registry.entries.values() if not is_pid_alive(e.owner_pid)]
        if not dead:
            return []
        for entry in dead:
            del registry.entries[entry.agent_id]
            logger.info(
                "Reclaimed dead registration %s (PID %d)", entry.agent_id, entry.owner_pid
            )
        self._save(registry)
        return dead

    def count_live(self) -> int:
        """Number of live registrations, after purging the dead."""
        self.purge_dead()
        return len(self._load().entries)

    def list(self) -> list[UserRegistration]:
        """Live registrations ordered by registration time (read-only)."""
        live = [e for e in self._load().entries.values() if is_pid_alive(e.owner_pid)]
        return sorted(live, key=lambda e: e.registered_at)

    def get(self, agent_id: str) -> UserRegistration | None:
        entry = self._load().entries.get(agent_id)
        if entry is None or not is_pid_alive(entry.owner_pid):
            return None
        return entry

    def clear(self) -> None:
        """Drop every registration."""
        self._require_lock("clear registrations")
        self.path.unlink(missing_ok=True)
