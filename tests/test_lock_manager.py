"""Tests for lock manager."""

import os
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from unittest import mock

import pytest

from devshare.core.lock_manager import (
    _reclaim,
    acquire_lock,
    get_current_lock,
    get_valid_lock,
    hold_lock,
    holds_lock,
    is_stale_lock,
    release_lock,
    wait_for_lock_release,
)
from devshare.errors import LockTimeout
from devshare.models import Lock


def _write_lock(state_dir: Path, lock: Lock) -> None:
    state_dir.mkdir(parents=True, exist_ok=True)
    (state_dir / "lock.json").write_text(lock.model_dump_json())


@pytest.mark.unit
class TestAcquireLock:
    """Tests for acquire_lock function."""

    def test_acquire_creates_lock_file(self, state_dir: Path) -> None:
        """Acquiring an unheld lock succeeds without waiting."""
        started = time.monotonic()
        lock = acquire_lock(state_dir, "agent-a", timeout=0)
        assert time.monotonic() - started < 1.0
        assert lock.pid == os.getpid()
        assert lock.holder_id == "agent-a"
        assert (state_dir / "lock.json").exists()

    def test_acquire_reclaims_dead_holder(self, state_dir: Path, dead_pid: int) -> None:
        """A lock whose holder died is reclaimed on the first attempt."""
        _write_lock(state_dir, Lock(holder_id="crashed", pid=dead_pid))

        lock = acquire_lock(state_dir, "agent-a", timeout=0)

        assert lock.holder_id == "agent-a"
        current = get_current_lock(state_dir)
        assert current is not None
        assert current.holder_id == "agent-a"

    def test_acquire_reclaims_old_lock(self, state_dir: Path, live_child) -> None:
        """A lock older than stale_after is reclaimed even if its holder lives."""
        old = datetime.now() - timedelta(seconds=600)
        _write_lock(state_dir, Lock(holder_id="hung", pid=live_child.pid, acquired_at=old))

        lock = acquire_lock(state_dir, "agent-a", timeout=0, stale_after=300)
        assert lock.holder_id == "agent-a"

    def test_acquire_reclaims_corrupt_lock(self, state_dir: Path) -> None:
        """An unparseable lock file counts as abandoned."""
        state_dir.mkdir(parents=True)
        (state_dir / "lock.json").write_text("{not json")

        lock = acquire_lock(state_dir, "agent-a", timeout=0)
        assert lock.holder_id == "agent-a"

    def test_acquire_times_out_on_live_holder(self, state_dir: Path, live_child) -> None:
        """A live, fresh holder makes acquisition time out with holder details."""
        _write_lock(state_dir, Lock(holder_id="agent-b", pid=live_child.pid))

        with pytest.raises(LockTimeout, match="held by agent-b") as exc_info:
            acquire_lock(state_dir, "agent-a", timeout=0.2, retry_interval=0.02)

        assert exc_info.value.details["holder_id"] == "agent-b"
        assert exc_info.value.details["holder_pid"] == live_child.pid
        current = get_current_lock(state_dir)
        assert current is not None
        assert current.holder_id == "agent-b"

    def test_acquire_times_out_when_holder_mocked_alive(self, state_dir: Path) -> None:
        """Liveness is consulted through is_pid_alive."""
        _write_lock(state_dir, Lock(holder_id="other", pid=99999))

        with (
            mock.patch("devshare.core.lock_manager.is_pid_alive", return_value=True),
            pytest.raises(LockTimeout),
        ):
            acquire_lock(state_dir, "agent-a", timeout=0)

    def test_same_holder_reacquires(self, state_dir: Path) -> None:
        """The same holder in the same process can re-acquire and refresh."""
        first = acquire_lock(state_dir, "agent-a")
        second = acquire_lock(state_dir, "agent-a", timeout=0)
        assert second.holder_id == "agent-a"
        assert second.acquired_at >= first.acquired_at

    def test_other_holder_in_same_process_waits(self, state_dir: Path) -> None:
        """Holder ids distinguish agents even within one process."""
        acquire_lock(state_dir, "agent-a")
        with pytest.raises(LockTimeout):
            acquire_lock(state_dir, "agent-b", timeout=0.1, retry_interval=0.02)

    def test_cancel_aborts_wait(self, state_dir: Path, live_child) -> None:
        """A set cancel event ends the wait early."""
        _write_lock(state_dir, Lock(holder_id="agent-b", pid=live_child.pid))
        cancel = threading.Event()
        cancel.set()

        started = time.monotonic()
        with pytest.raises(LockTimeout):
            acquire_lock(state_dir, "agent-a", timeout=10, retry_interval=0.5, cancel=cancel)
        assert time.monotonic() - started < 2.0


@pytest.mark.unit
class TestConcurrentAcquire:
    """Mutual exclusion between concurrent acquirers."""

    def test_exactly_one_wins(self, state_dir: Path) -> None:
        """Two simultaneous attempts without waiting: exactly one succeeds."""
        barrier = threading.Barrier(2)
        results: dict[str, bool] = {}

        def contend(holder_id: str) -> None:
            barrier.wait()
            try:
                acquire_lock(state_dir, holder_id, timeout=0)
                results[holder_id] = True
            except LockTimeout:
                results[holder_id] = False

        threads = [threading.Thread(target=contend, args=(h,)) for h in ("agent-a", "agent-b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)

        assert sorted(results.values()) == [False, True]

    def test_second_acquirer_proceeds_after_release(self, state_dir: Path) -> None:
        """A waiting acquirer gets the lock only after the holder releases."""
        acquire_lock(state_dir, "agent-a")
        acquired_at: dict[str, float] = {}

        def contender() -> None:
            acquire_lock(state_dir, "agent-b", timeout=5, retry_interval=0.02)
            acquired_at["agent-b"] = time.monotonic()

        thread = threading.Thread(target=contender)
        thread.start()
        time.sleep(0.2)
        assert thread.is_alive()

        released_at = time.monotonic()
        assert release_lock(state_dir, "agent-a")
        thread.join(5)

        assert acquired_at["agent-b"] >= released_at
        current = get_current_lock(state_dir)
        assert current is not None
        assert current.holder_id == "agent-b"


@pytest.mark.unit
class TestReleaseLock:
    """Tests for release_lock function."""

    def test_release_removes_lock_file(self, state_dir: Path) -> None:
        """Releasing removes the lock file."""
        acquire_lock(state_dir, "agent-a")
        assert release_lock(state_dir, "agent-a")
        assert not (state_dir / "lock.json").exists()

    def test_release_twice_is_noop(self, state_dir: Path) -> None:
        """A second release does nothing."""
        acquire_lock(state_dir, "agent-a")
        release_lock(state_dir, "agent-a")
        assert not release_lock(state_dir, "agent-a")

    def test_release_without_lock_is_noop(self, state_dir: Path) -> None:
        """Releasing when no lock exists does nothing."""
        assert not release_lock(state_dir, "agent-a")

    def test_release_ignores_other_holder(self, state_dir: Path, live_child) -> None:
        """Someone else's lock is left in place."""
        _write_lock(state_dir, Lock(holder_id="agent-b", pid=live_child.pid))
        assert not release_lock(state_dir)
        assert (state_dir / "lock.json").exists()

    def test_release_ignores_other_holder_id(self, state_dir: Path) -> None:
        """A lock held under another holder id is left in place."""
        acquire_lock(state_dir, "agent-a")
        assert not release_lock(state_dir, "agent-b")
        assert holds_lock(state_dir, "agent-a")


@pytest.mark.unit
class TestHoldLock:
    """Tests for the hold_lock context manager."""

    def test_released_after_block(self, state_dir: Path) -> None:
        with hold_lock(state_dir, "agent-a") as lock:
            assert lock.holder_id == "agent-a"
            assert holds_lock(state_dir, "agent-a")
        assert get_current_lock(state_dir) is None

    def test_released_on_exception(self, state_dir: Path) -> None:
        """The lock is released even when the block raises."""
        with pytest.raises(ValueError), hold_lock(state_dir, "agent-a"):
            raise ValueError("boom")
        assert get_current_lock(state_dir) is None


@pytest.mark.unit
class TestStaleness:
    """Tests for stale lock detection."""

    def test_current_process_lock_is_fresh(self) -> None:
        assert not is_stale_lock(Lock(holder_id="agent-a"))

    def test_dead_holder_is_stale(self, dead_pid: int) -> None:
        assert is_stale_lock(Lock(holder_id="agent-a", pid=dead_pid))

    def test_old_lock_is_stale(self) -> None:
        old = datetime.now() - timedelta(seconds=301)
        assert is_stale_lock(Lock(holder_id="agent-a", acquired_at=old), stale_after=300)

    def test_get_valid_lock_skips_stale(self, state_dir: Path, dead_pid: int) -> None:
        _write_lock(state_dir, Lock(holder_id="crashed", pid=dead_pid))
        assert get_current_lock(state_dir) is not None
        assert get_valid_lock(state_dir) is None

    def test_corrupt_lock_reads_as_none(self, state_dir: Path) -> None:
        state_dir.mkdir(parents=True)
        (state_dir / "lock.json").write_text("garbage")
        assert get_current_lock(state_dir) is None


@pytest.mark.unit
class TestWaitForLockRelease:
    """Tests for wait_for_lock_release."""

    def test_free_lock_returns_immediately(self, state_dir: Path) -> None:
        assert wait_for_lock_release(state_dir, timeout=0)

    def test_times_out_on_held_lock(self, state_dir: Path) -> None:
        acquire_lock(state_dir, "agent-a")
        assert not wait_for_lock_release(state_dir, timeout=0.1, retry_interval=0.02)

    def test_stale_lock_counts_as_released(self, state_dir: Path, dead_pid: int) -> None:
        _write_lock(state_dir, Lock(holder_id="crashed", pid=dead_pid))
        assert wait_for_lock_release(state_dir, timeout=0)


@pytest.mark.unit
class TestReclaim:
    """Tests for removal of abandoned locks."""

    def test_reclaim_skips_replaced_lock(self, state_dir: Path, dead_pid: int) -> None:
        """A lock rewritten since it was judged stale is left alone."""
        stale = Lock(holder_id="crashed", pid=dead_pid)
        _write_lock(state_dir, stale)
        raw = (state_dir / "lock.json").read_text()

        fresh = Lock(holder_id="agent-b")
        _write_lock(state_dir, fresh)
        _reclaim(state_dir / "lock.json", raw, stale)

        current = get_current_lock(state_dir)
        assert current is not None
        assert current.holder_id == "agent-b"

    def test_reclaim_removes_unchanged_lock(self, state_dir: Path, dead_pid: int) -> None:
        stale = Lock(holder_id="crashed", pid=dead_pid)
        _write_lock(state_dir, stale)
        raw = (state_dir / "lock.json").read_text()

        _reclaim(state_dir / "lock.json", raw, stale)

        assert not (state_dir / "lock.json").exists()

    def test_live_lock_is_never_reclaimed(self, state_dir: Path, live_child) -> None:
        """Reclaiming only starts from a lock judged stale, so a live one survives."""
        _write_lock(state_dir, Lock(holder_id="agent-b", pid=live_child.pid))
        with pytest.raises(LockTimeout):
            acquire_lock(state_dir, "agent-a", timeout=0)
        current = get_current_lock(state_dir)
        assert current is not None
        assert current.holder_id == "agent-b"
