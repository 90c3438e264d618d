"""Read-only status of the shared server and its coordination state."""

from pathlib import Path

from ..constants import STALE_LOCK_SECONDS
from ..models import LockInfo, ServerRecord, ServerState, StatusReport, StopRequest
from .lock_manager import get_current_lock, is_stale_lock
from .registry import UserRegistry
from .server import ServerProcess, validate_record
from .state_dir import read_model, server_path, stop_request_path


def read_server_record(state_dir: Path) -> ServerRecord | None:
    return read_model(server_path(state_dir), ServerRecord)


def read_stop_request(state_dir: Path) -> StopRequest | None:
    return read_model(stop_request_path(state_dir), StopRequest)


def find_server_pids(server: ServerProcess, record: ServerRecord | None) -> list[int]:
    """Pattern matches plus the recorded server pid, if it is still ours."""
    pids = set(server.find_pids())
    if record is not None and validate_record(record) is not None:
        pids.add(record.pid)
    return sorted(pids)


def derive_state(pids: list[int], healthy: bool) -> ServerState:
    if not pids:
        return ServerState.NOT_RUNNING
    return ServerState.RUNNING if healthy else ServerState.STUCK


def observe_server(
    state_dir: Path, server: ServerProcess
) -> tuple[ServerState, list[int], bool]:
    """Return (state, pids, healthy) as observed right now."""
    pids = find_server_pids(server, read_server_record(state_dir))
    healthy = bool(pids) and server.is_healthy()
    return derive_state(pids, healthy), pids, healthy


def build_status_report(
    state_dir: Path,
    server: ServerProcess,
    stale_after: float = STALE_LOCK_SECONDS,
) -> StatusReport:
    """Compose server state, live users, lock and stop request.

    Nothing here takes the lock; callers must re-check under the lock
    before acting on what they see.
    """
    state, pids, healthy = observe_server(state_dir, server)

    lock_info = None
    lock = get_current_lock(state_dir)
    if lock is not None:
        lock_info = LockInfo(
            lock=lock,
            age_seconds=round(lock.age_seconds(), 1),
            stale=is_stale_lock(lock, stale_after),
        )

    return StatusReport(
        state=state,
        server_pids=pids,
        healthy=healthy,
        health_url=server.config.health_url,
        record=read_server_record(state_dir),
        users=UserRegistry(state_dir).list(),
        lock=lock_info,
        stop_request=read_stop_request(state_dir),
    )
