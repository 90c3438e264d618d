"""Shared server process: launch, discovery, health and termination.

The server is identified by matching its command line against a
pattern, and judged healthy by an HTTP request to a local URL. No
protocol knowledge of the server is needed.
"""

import contextlib
import logging
import os
import re
import shlex
import subprocess
import threading
from pathlib import Path

import httpx
import psutil

from ..config import ServerConfig
from ..errors import ProcessLaunchFailure
from ..models import ServerRecord
from .termination import ProcessTarget, TerminationStep, terminate_gracefully
from .waiting import wait_for

logger = logging.getLogger(__name__)


def track_process(pid: int, started_by: str = "", command: str = "") -> ServerRecord | None:
    """Create a ServerRecord for a running PID, recording its create_time."""
    try:
        create_time = float(psutil.Process(pid).create_time())
    except psutil.Error:
        return None
    return ServerRecord(pid=pid, create_time=create_time, started_by=started_by, command=command)


def validate_record(record: ServerRecord) -> psutil.Process | None:
    """Return the recorded process only if its create_time still matches."""
    try:
        proc = psutil.Process(record.pid)
        if record.create_time is not None and abs(proc.create_time() - record.create_time) > 0.001:
            return None
        if proc.status() == psutil.STATUS_ZOMBIE:
            return None
        return proc
    except psutil.Error:
        return None


class ServerProcess:
    """Operations on the externally managed server process."""

    def __init__(self, config: ServerConfig) -> None:
        self.config = config
        self._pattern = re.compile(config.process_pattern)

    def find_pids(self) -> list[int]:
        """PIDs of live processes whose command line matches the pattern."""
        own = os.getpid()
        pids: list[int] = []
        for proc in psutil.process_iter(["pid", "cmdline", "status"]):
            try:
                if proc.pid == own or proc.info["status"] == psutil.STATUS_ZOMBIE:
                    continue
                cmdline = " ".join(proc.info["cmdline"] or [])
                if cmdline and self._pattern.search(cmdline):
                    pids.append(proc.pid)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return sorted(pids)

    def is_healthy(self) -> bool:
        """True if the health URL answers any HTTP response."""
        try:
            httpx.get(self.config.health_url, timeout=self.config.probe_timeout)
            return True
        except httpx.HTTPError:
            return False

    def launch(self) -> subprocess.Popen[bytes]:
        """Start the server command in its own session, detached from us.

        Raises:
            ProcessLaunchFailure: If the command cannot be executed
        """
        try:
            args = shlex.split(self.config.command)
        except ValueError as e:
            raise ProcessLaunchFailure(f"Invalid server command: {e}") from e
        if not args:
            raise ProcessLaunchFailure("No server command configured")

        cwd = self.config.cwd or None
        log_path = Path(self.config.log_file) if self.config.log_file else None
        try:
            output = open(log_path, "ab") if log_path else contextlib.nullcontext(subprocess.DEVNULL)
            with output as log:
                proc = subprocess.Popen(
                    args,
                    cwd=cwd,
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as e:
            raise ProcessLaunchFailure(
                f"Could not run server command: {e}", command=self.config.command
            ) from None
        logger.info("Launched server (PID %d): %s", proc.pid, self.config.command)
        return proc

    def wait_healthy(
        self,
        proc: subprocess.Popen[bytes],
        cancel: threading.Event | None = None,
    ) -> bool:
        """Poll the health probe until healthy, the process exits, or timeout."""
        exited = False

        def ready() -> bool:
            nonlocal exited
            if self.is_healthy():
                return True
            exited = proc.poll() is not None
            return exited

        ok = wait_for(ready, self.config.start_timeout, self.config.health_interval, cancel)
        return ok and not exited

    def terminate(self, pid: int, grace_period: float) -> TerminationStep | None:
        """Stop pid gracefully, then forcefully.

        Returns:
            Step that stopped it, or None if it was already gone
        """
        try:
            proc = psutil.Process(pid)
        except psutil.NoSuchProcess:
            return None
        return terminate_gracefully(ProcessTarget(proc), grace_period)
