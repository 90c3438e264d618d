"""Core coordination logic for devshare.

This package contains the shared-state machinery:
- liveness: process liveness checks
- waiting: bounded, cancellable polling
- lock_manager: the coordination lock and stale lock recovery
- registry: reference-counted user registrations
- termination: graceful-then-forceful process termination
- server: launching, finding and probing the shared server
- status: read-only status reports
- controller: check/start/stop/use/release orchestration
"""

from .controller import ResourceController, default_agent_id
from .liveness import is_pid_alive
from .lock_manager import (
    acquire_lock,
    get_current_lock,
    hold_lock,
    holds_lock,
    is_stale_lock,
    release_lock,
    wait_for_lock_release,
)
from .registry import UserRegistry
from .server import ServerProcess
from .status import build_status_report
from .termination import ProcessTarget, Terminable, TerminationStep, terminate_gracefully
from .waiting import wait_for

__all__ = [
    "ProcessTarget",
    "ResourceController",
    "ServerProcess",
    "Terminable",
    "TerminationStep",
    "UserRegistry",
    "acquire_lock",
    "build_status_report",
    "default_agent_id",
    "get_current_lock",
    "hold_lock",
    "holds_lock",
    "is_pid_alive",
    "is_stale_lock",
    "release_lock",
    "terminate_gracefully",
    "wait_for",
    "wait_for_lock_release",
]
