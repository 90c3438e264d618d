"""Graceful-then-forceful termination of a managed process.

The escalation works on anything that can be asked to terminate, be
killed and be waited on, so the same logic serves psutil processes and
test doubles alike.
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

import psutil

from ..constants import KILL_WAIT_SECONDS
from ..errors import TerminationFailure

logger = logging.getLogger(__name__)


class TerminationStep(str, Enum):
    """Which step of the escalation stopped the process."""

    GRACEFUL = "graceful"
    FORCED = "forced"


class Terminable(Protocol):
    """A process-like target that can be stopped."""

    @property
    def name(self) -> str: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...

    def wait(self, timeout: float) -> bool:
        """Return True once the target has exited."""
        ...


class ProcessTarget:
    """Terminable adapter over a psutil.Process."""

    def __init__(self, proc: psutil.Process) -> None:
        self.proc = proc

    @property
    def name(self) -> str:
        return f"PID {self.proc.pid}"

    def _signal(self, send: Callable[[], None]) -> None:
        try:
            send()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied:
            raise TerminationFailure(
                f"Not permitted to signal {self.name}", target=self.name, reason="access denied"
            ) from None

    def terminate(self) -> None:
        self._signal(self.proc.terminate)

    def kill(self) -> None:
        self._signal(self.proc.kill)

    def wait(self, timeout: float) -> bool:
        try:
            self.proc.wait(timeout=timeout)
            return True
        except psutil.TimeoutExpired:
            # A zombie has exited even if nobody reaped it yet.
            try:
                return self.proc.status() == psutil.STATUS_ZOMBIE
            except psutil.NoSuchProcess:
                return True
        except psutil.NoSuchProcess:
            return True


def terminate_gracefully(
    target: Terminable,
    grace_period: float,
    kill_wait: float = KILL_WAIT_SECONDS,
) -> TerminationStep:
    """Terminate target, escalating to a kill after grace_period.

    Args:
        target: Process to stop
        grace_period: Seconds to wait after the termination request
        kill_wait: Seconds to wait for exit after the kill

    Returns:
        The step that made the process exit

    Raises:
        TerminationFailure: If the process is still present after the kill
    """
    logger.info("Stopping %s", target.name)
    target.terminate()
    if target.wait(grace_period):
        logger.debug("%s exited gracefully", target.name)
        return TerminationStep.GRACEFUL

    logger.warning("%s ignored termination for %gs, killing", target.name, grace_period)
    target.kill()
    if target.wait(kill_wait):
        return TerminationStep.FORCED

    raise TerminationFailure(
        f"{target.name} did not exit after forceful termination",
        target=target.name,
        grace_period=grace_period,
    )
