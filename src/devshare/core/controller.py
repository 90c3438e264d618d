"""Resource controller for the shared development server.

Orchestrates the lock manager, the user registry and the server
process to implement check, start, stop, use and release. Every
mutating operation runs under the coordination lock and first purges
dead registrations; the lock is released on every exit path.

Coordination errors are converted to an OperationResult here, so
callers always receive success, refused or failure together with the
details they need to decide what to do next.
"""

import logging
import os
import threading
import time
import uuid
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

from ..config import DevshareConfig
from ..errors import (
    CoordinationError,
    ProcessLaunchFailure,
    ResourceBusy,
    ResourceStuck,
    TerminationFailure,
)
from ..models import (
    Lock,
    OperationResult,
    Outcome,
    ServerState,
    StatusReport,
    StopRequest,
    UserRegistration,
)
from .liveness import is_pid_alive
from .lock_manager import hold_lock
from .registry import UserRegistry
from .server import ServerProcess, track_process
from .state_dir import lock_path, server_path, stop_request_path, write_model
from .status import (
    build_status_report,
    find_server_pids,
    observe_server,
    read_server_record,
    read_stop_request,
)
from .waiting import wait_for

logger = logging.getLogger(__name__)


def default_agent_id() -> str:
    """Agent id of the calling agent (our parent process)."""
    return f"agent-{os.getppid()}"


class ResourceController:
    """Start, stop and share one server between independent agents."""

    def __init__(
        self,
        config: DevshareConfig,
        server: ServerProcess | None = None,
        holder_id: str | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.state_dir = config.state_dir()
        self.server = server or ServerProcess(config.server)
        self.holder_id = holder_id or f"devshare-{os.getpid()}-{uuid.uuid4().hex[:8]}"
        self.registry = UserRegistry(self.state_dir, self.holder_id)
        self.cancel = cancel

    def _lock(self) -> AbstractContextManager[Lock]:
        lock = self.config.lock
        return hold_lock(
            self.state_dir,
            self.holder_id,
            timeout=lock.timeout,
            retry_interval=lock.retry_interval,
            stale_after=lock.stale_after,
            cancel=self.cancel,
        )

    def _run(self, operation: Callable[[], OperationResult]) -> OperationResult:
        try:
            return operation()
        except CoordinationError as e:
            state, _, _ = observe_server(self.state_dir, self.server)
            logger.debug("Operation ended with %s: %s", e.kind, e.message)
            return OperationResult(
                outcome=e.outcome,
                message=e.message,
                state=state,
                error=e.kind,
                details=e.details,
            )

    # ------------------------------------------------------------------ check

    def check(self) -> StatusReport:
        """Observe the server without taking the lock."""
        return build_status_report(self.state_dir, self.server, self.config.lock.stale_after)

    # ------------------------------------------------------------------ start

    def start(self, agent_id: str | None = None) -> OperationResult:
        """Start the server unless it is already running."""
        return self._run(lambda: self._start(agent_id or default_agent_id()))

    def _start(self, agent_id: str) -> OperationResult:
        with self._lock():
            purged = self.registry.purge_dead()
            pids = find_server_pids(self.server, read_server_record(self.state_dir))
            if pids:
                if not self.server.is_healthy():
                    raise ResourceStuck(
                        "Server process exists but is not responding; "
                        "stop it with --force, then start again",
                        pids=pids,
                        health_url=self.config.server.health_url,
                    )
                return OperationResult(
                    outcome=Outcome.SUCCESS,
                    message=f"Server already running at {self.config.server.health_url}",
                    state=ServerState.RUNNING,
                    details={"pids": pids, "purged": [p.agent_id for p in purged]},
                )
            return self._launch(agent_id, purged)

    def _launch(self, agent_id: str, purged: list[UserRegistration]) -> OperationResult:
        proc = self.server.launch()
        if self.server.wait_healthy(proc, self.cancel):
            record = track_process(proc.pid, started_by=agent_id, command=self.config.server.command)
            if record is not None:
                write_model(server_path(self.state_dir), record)
            logger.info("Server healthy at %s", self.config.server.health_url)
            return OperationResult(
                outcome=Outcome.SUCCESS,
                message=f"Server started at {self.config.server.health_url}",
                state=ServerState.RUNNING,
                details={"pid": proc.pid, "purged": [p.agent_id for p in purged]},
            )

        exit_code = proc.poll()
        if exit_code is None:
            logger.warning("Server did not become healthy, stopping PID %d", proc.pid)
            try:
                self.server.terminate(proc.pid, self.config.stop.grace_period)
            except TerminationFailure as e:
                logger.error(e.message)
            exit_code = proc.poll()
        raise ProcessLaunchFailure(
            f"Server did not become healthy within {self.config.server.start_timeout:g}s",
            pid=proc.pid,
            exit_code=exit_code,
            command=self.config.server.command,
            health_url=self.config.server.health_url,
        )

    # ------------------------------------------------------------------- stop

    def stop(
        self,
        force: bool = False,
        wait: bool = False,
        agent_id: str | None = None,
    ) -> OperationResult:
        """Stop the server once no live agent depends on it.

        Args:
            force: Stop even if live users remain
            wait: Ask users to finish and wait for them (bounded)
            agent_id: Agent requesting the stop
        """
        return self._run(lambda: self._stop(force, wait, agent_id or default_agent_id()))

    def _stop(self, force: bool, wait: bool, agent_id: str) -> OperationResult:
        deadline = time.monotonic() + self.config.stop.wait_timeout
        requested = False
        try:
            while True:
                with self._lock():
                    purged = self.registry.purge_dead()
                    users = self.registry.list()
                    if not users or force:
                        return self._terminate_server(users, purged)
                    if not wait:
                        raise ResourceBusy(
                            f"Server in use by {len(users)} agent(s): "
                            + ", ".join(u.agent_id for u in users),
                            users=[u.summary() for u in users],
                            hint="wait for agents to release, or use --wait or --force",
                        )
                    if not requested:
                        write_model(
                            stop_request_path(self.state_dir),
                            StopRequest(reason="Graceful shutdown requested", requested_by=agent_id),
                        )
                        requested = True
                        logger.info("Notified %d user(s) of stop request", len(users))

                # The lock is released while waiting so users can unregister.
                remaining = deadline - time.monotonic()
                if remaining <= 0 or not self._wait_for_users(remaining):
                    users = self.registry.list()
                    raise ResourceBusy(
                        f"Timed out after {self.config.stop.wait_timeout:g}s waiting for "
                        f"{len(users)} agent(s); retry with --force",
                        users=[u.summary() for u in users],
                        hint="retry with --force",
                    )
        except CoordinationError:
            if requested:
                stop_request_path(self.state_dir).unlink(missing_ok=True)
            raise

    def _wait_for_users(self, timeout: float) -> bool:
        def no_users() -> bool:
            users = self.registry.list()
            if users:
                logger.info("Waiting for %d user(s) to finish...", len(users))
            return not users

        return wait_for(no_users, timeout, self.config.stop.wait_poll, self.cancel)

    def _terminate_server(
        self, users: list[UserRegistration], purged: list[UserRegistration]
    ) -> OperationResult:
        details: dict[str, Any] = {"purged": [p.agent_id for p in purged]}
        if users:
            details["forced_users"] = [u.summary() for u in users]
            logger.warning("Force-stopping server still used by %d agent(s)", len(users))

        pids = find_server_pids(self.server, read_server_record(self.state_dir))
        if not pids:
            self._clear_server_files()
            return OperationResult(
                outcome=Outcome.SUCCESS,
                message="Server is not running",
                state=ServerState.NOT_RUNNING,
                details=details,
            )

        steps: dict[int, str] = {}
        errors: dict[int, str] = {}
        for pid in pids:
            try:
                step = self.server.terminate(pid, self.config.stop.grace_period)
            except TerminationFailure as e:
                logger.error(e.message)
                errors[pid] = e.message
                continue
            if step is not None:
                steps[pid] = step.value

        survivors = [pid for pid in pids if pid in errors or is_pid_alive(pid)]
        if survivors:
            raise TerminationFailure(
                f"Server process(es) still present after stop: {survivors}",
                pids=survivors,
                errors=errors,
                stopped=steps,
            )

        self._clear_server_files()
        return OperationResult(
            outcome=Outcome.SUCCESS,
            message="Server stopped",
            state=ServerState.NOT_RUNNING,
            details={**details, "stopped": steps},
        )

    def _clear_server_files(self) -> None:
        server_path(self.state_dir).unlink(missing_ok=True)
        stop_request_path(self.state_dir).unlink(missing_ok=True)

    # ---------------------------------------------------------- use / release

    def use(self, agent_id: str | None = None, pid: int | None = None) -> OperationResult:
        """Register agent_id as a user of the server.

        Args:
            agent_id: Agent to register, defaults to agent-<parent pid>
            pid: Owning process checked for liveness, defaults to our parent
        """
        agent_id = agent_id or default_agent_id()
        return self._run(lambda: self._use(agent_id, pid if pid is not None else os.getppid()))

    def _use(self, agent_id: str, pid: int) -> OperationResult:
        with self._lock():
            purged = self.registry.purge_dead()
            refreshed = self.registry.get(agent_id) is not None
            self.registry.register(agent_id, pid)
            users = self.registry.list()

        details: dict[str, Any] = {
            "agent_id": agent_id,
            "refreshed": refreshed,
            "users": [u.summary() for u in users],
            "purged": [p.agent_id for p in purged],
        }
        stop_request = read_stop_request(self.state_dir)
        if stop_request is not None:
            details["stop_requested"] = stop_request.model_dump(mode="json")
        verb = "Refreshed registration for" if refreshed else "Registered"
        state, _, _ = observe_server(self.state_dir, self.server)
        return OperationResult(
            outcome=Outcome.SUCCESS,
            message=f"{verb} {agent_id} ({len(users)} live user(s))",
            state=state,
            details=details,
        )

    def release(self, agent_id: str | None = None) -> OperationResult:
        """Unregister agent_id; releasing an unknown agent is not an error."""
        agent_id = agent_id or default_agent_id()
        return self._run(lambda: self._release(agent_id))

    def _release(self, agent_id: str) -> OperationResult:
        with self._lock():
            purged = self.registry.purge_dead()
            removed = self.registry.unregister(agent_id)
            users = self.registry.list()

        if removed:
            message = f"Released {agent_id} ({len(users)} live user(s) remaining)"
        else:
            message = f"{agent_id} was not registered"
        state, _, _ = observe_server(self.state_dir, self.server)
        return OperationResult(
            outcome=Outcome.SUCCESS,
            message=message,
            state=state,
            details={
                "agent_id": agent_id,
                "removed": removed,
                "users": [u.summary() for u in users],
                "purged": [p.agent_id for p in purged],
                "can_stop": not users,
            },
        )

    # ---------------------------------------------------------------- cleanup

    def cleanup(self, force: bool = False) -> OperationResult:
        """Remove all coordination files.

        With force the lock file is removed too, without acquiring it.
        """
        return self._run(lambda: self._cleanup(force))

    def _cleanup(self, force: bool) -> OperationResult:
        if force:
            self.registry.path.unlink(missing_ok=True)
            self._clear_server_files()
            lock_path(self.state_dir).unlink(missing_ok=True)
        else:
            with self._lock():
                self.registry.clear()
                self._clear_server_files()
        logger.info("Removed coordination files in %s", self.state_dir)
        return OperationResult(
            outcome=Outcome.SUCCESS,
            message="Coordination files removed",
            details={"state_dir": str(self.state_dir)},
        )
