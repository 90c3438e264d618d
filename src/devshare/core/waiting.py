"""Bounded, cancellable waiting."""

import threading
import time
from collections.abc import Callable


def wait_for(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float,
    cancel: threading.Event | None = None,
) -> bool:
    """Poll predicate until it returns True or timeout elapses.

    The predicate is evaluated immediately, so a condition that already
    holds never waits. Sleeping happens on an Event, so setting cancel
    wakes the waiter and ends the wait early.

    Args:
        predicate: Condition to wait for
        timeout: Max seconds to wait
        interval: Seconds between evaluations
        cancel: Optional event that aborts the wait when set

    Returns:
        True if predicate became true, False on timeout or cancellation
    """
    event = cancel or threading.Event()
    deadline = time.monotonic() + timeout
    while True:
        if predicate():
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0 or event.is_set():
            return False
        if event.wait(min(interval, remaining)):
            return False
