"""Lock manager for shared-state concurrency control.

Provides PID-based file locking so that only one agent at a time
mutates the coordination state. Includes stale lock detection for
crash recovery: a lock whose holder died, or which is older than the
staleness threshold, is reclaimed by the next acquirer.

The lock file is published with os.link() of a fully written temp
file. Creation is atomic (fails if the file exists) and readers never
see a half-written lock.
"""

import contextlib
import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path

from ..constants import LOCK_RETRY_INTERVAL, LOCK_TIMEOUT, STALE_LOCK_SECONDS
from ..errors import LockTimeout
from ..models import Lock
from .liveness import is_pid_alive
from .state_dir import ensure_state_dir, lock_path, write_model
from .waiting import wait_for

logger = logging.getLogger(__name__)

MAX_LOCK_RETRIES = 3  # Immediate retries after reclaiming a stale lock


def _read_raw(path: Path) -> str | None:
    try:
        return path.read_text()
    except FileNotFoundError:
        return None


def _parse_lock(raw: str) -> Lock | None:
    try:
        return Lock.model_validate_json(raw)
    except ValueError:
        return None


def get_current_lock(state_dir: Path) -> Lock | None:
    """Get current lock if it exists and is readable.

    Args:
        state_dir: Shared state directory

    Returns:
        Lock if a parseable lock file exists, None otherwise
    """
    raw = _read_raw(lock_path(state_dir))
    if raw is None:
        return None
    return _parse_lock(raw)


def is_stale_lock(lock: Lock, stale_after: float = STALE_LOCK_SECONDS) -> bool:
    """Check if lock is stale (PID dead or older than stale_after).

    Args:
        lock: Lock to check
        stale_after: Max lock age in seconds

    Returns:
        True if lock is abandoned and may be reclaimed
    """
    if not is_pid_alive(lock.pid):
        return True
    return lock.age_seconds() > stale_after


def get_valid_lock(state_dir: Path, stale_after: float = STALE_LOCK_SECONDS) -> Lock | None:
    """Return the current lock unless it is missing, unreadable or stale."""
    lock = get_current_lock(state_dir)
    if lock is None or is_stale_lock(lock, stale_after):
        return None
    return lock


def _try_atomic_create(path: Path, lock: Lock) -> bool:
    """Attempt atomic lock file creation.

    Returns:
        True if lock was created, False if file already exists
    """
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".lock.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(lock.model_dump_json(indent=2))
        os.link(tmp, path)
        return True
    except FileExistsError:
        return False
    finally:
        Path(tmp).unlink(missing_ok=True)


def _reclaim(path: Path, raw: str, existing: Lock | None) -> None:
    """Remove an abandoned lock if it is still the one we judged stale.

    Another reclaimer can publish a fresh lock between the re-read and
    the unlink, and that lock is then removed too. This can only happen
    while the previous holder's lock was already abandoned, so a live
    holder's lock is never reclaimed.
    """
    if _read_raw(path) != raw:
        return
    with contextlib.suppress(FileNotFoundError):
        path.unlink()
    if existing is None:
        logger.info("Reclaimed malformed lock file %s", path)
    else:
        logger.info(
            "Reclaimed stale lock held by %s (PID %d, age %.0fs)",
            existing.holder_id,
            existing.pid,
            existing.age_seconds(),
        )


def _try_acquire_once(path: Path, lock: Lock, stale_after: float) -> Lock | None:
    """One acquisition attempt, reclaiming an abandoned lock on the way."""
    for _ in range(MAX_LOCK_RETRIES):
        if _try_atomic_create(path, lock):
            return lock

        raw = _read_raw(path)
        if raw is None:
            # Released between attempts - retry
            continue

        existing = _parse_lock(raw)
        if existing is not None and (existing.holder_id, existing.pid) == (
            lock.holder_id,
            lock.pid,
        ):
            # We already own the lock - refresh it
            refreshed = existing.model_copy(update={"acquired_at": datetime.now()})
            write_model(path, refreshed)
            return refreshed

        if existing is not None and not is_stale_lock(existing, stale_after):
            return None

        _reclaim(path, raw, existing)
    return None


def acquire_lock(
    state_dir: Path,
    holder_id: str,
    timeout: float = LOCK_TIMEOUT,
    retry_interval: float = LOCK_RETRY_INTERVAL,
    stale_after: float = STALE_LOCK_SECONDS,
    cancel: threading.Event | None = None,
) -> Lock:
    """Acquire the coordination lock, waiting up to timeout.

    Args:
        state_dir: Shared state directory
        holder_id: Id of the acquiring agent
        timeout: Max seconds to wait for a live holder to release
        retry_interval: Seconds between attempts
        stale_after: Age after which a held lock is reclaimed
        cancel: Optional event that aborts the wait

    Returns:
        Lock object if acquired

    Raises:
        LockTimeout: If another live agent holds the lock past the timeout
    """
    path = lock_path(ensure_state_dir(state_dir))
    lock = Lock(holder_id=holder_id)
    acquired: Lock | None = None

    def attempt() -> bool:
        nonlocal acquired
        acquired = _try_acquire_once(path, lock, stale_after)
        if acquired is None:
            logger.debug("Waiting for lock on %s", state_dir)
        return acquired is not None

    if wait_for(attempt, timeout, retry_interval, cancel) and acquired is not None:
        logger.debug("Lock acquired by %s (PID %d)", holder_id, lock.pid)
        return acquired

    holder = get_current_lock(state_dir)
    details: dict[str, object] = {"timeout": timeout}
    if holder is not None:
        details.update(
            holder_id=holder.holder_id,
            holder_pid=holder.pid,
            age_seconds=round(holder.age_seconds(), 1),
        )
        message = (
            f"Timed out after {timeout:g}s waiting for lock held by "
            f"{holder.holder_id} (PID {holder.pid})"
        )
    else:
        message = f"Timed out after {timeout:g}s waiting for lock"
    raise LockTimeout(message, **details)


def holds_lock(state_dir: Path, holder_id: str | None = None) -> bool:
    """Return True if this process (and holder_id, if given) owns the lock."""
    existing = get_current_lock(state_dir)
    if existing is None or existing.pid != os.getpid():
        return False
    return holder_id is None or existing.holder_id == holder_id


def release_lock(state_dir: Path, holder_id: str | None = None) -> bool:
    """Release lock if owned by current process.

    Releasing a lock held by someone else, or releasing twice, does
    nothing.

    Args:
        state_dir: Shared state directory
        holder_id: If given, only release a lock held under this id

    Returns:
        True if a lock was removed
    """
    if not holds_lock(state_dir, holder_id):
        return False
    lock_path(state_dir).unlink(missing_ok=True)
    logger.debug("Lock released (PID %d)", os.getpid())
    return True


@contextlib.contextmanager
def hold_lock(
    state_dir: Path,
    holder_id: str,
    timeout: float = LOCK_TIMEOUT,
    retry_interval: float = LOCK_RETRY_INTERVAL,
    stale_after: float = STALE_LOCK_SECONDS,
    cancel: threading.Event | None = None,
) -> Iterator[Lock]:
    """Hold the lock for the duration of a with-block.

    The lock is released on every exit path, including exceptions.
    """
    lock = acquire_lock(state_dir, holder_id, timeout, retry_interval, stale_after, cancel)
    try:
        yield lock
    finally:
        release_lock(state_dir, holder_id)


def wait_for_lock_release(
    state_dir: Path,
    timeout: float = LOCK_TIMEOUT,
    retry_interval: float = LOCK_RETRY_INTERVAL,
    stale_after: float = STALE_LOCK_SECONDS,
    cancel: threading.Event | None = None,
) -> bool:
    """Wait until no valid lock is held.

    Returns:
        True once the lock is free, False on timeout
    """
    return wait_for(
        lambda: get_valid_lock(state_dir, stale_after) is None,
        timeout,
        retry_interval,
        cancel,
    )
