"""Shared test fixtures for devshare tests."""

import http.server
import socket
import subprocess
import sys
import threading
import uuid
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from devshare.config import DevshareConfig, LockConfig, ServerConfig, StopConfig


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def free_port() -> int:
    """A TCP port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def config(tmp_path: Path, free_port: int) -> DevshareConfig:
    """Fast-polling configuration rooted in a temporary directory.

    The process pattern is unique per test so no real process matches
    unless the test starts one.
    """
    marker = f"devshare-test-{uuid.uuid4().hex}"
    return DevshareConfig(
        name="test-server",
        state_root=str(tmp_path / "state"),
        lock=LockConfig(timeout=1.0, retry_interval=0.02),
        server=ServerConfig(
            command=f"{sys.executable} -m http.server {free_port} --bind 127.0.0.1",
            process_pattern=marker,
            health_url=f"http://127.0.0.1:{free_port}/",
            probe_timeout=0.5,
            start_timeout=2.0,
            health_interval=0.05,
        ),
        stop=StopConfig(grace_period=2.0, wait_timeout=1.0, wait_poll=0.02),
    )


@pytest.fixture
def state_dir(config: DevshareConfig) -> Path:
    """Coordination directory for the test resource (not yet created)."""
    return config.state_dir()


@pytest.fixture
def dead_pid() -> int:
    """PID of a process that has already exited and been reaped."""
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


@pytest.fixture
def live_child() -> Generator[subprocess.Popen[bytes], None, None]:
    """A sleeping child process, killed at teardown."""
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    yield proc
    if proc.poll() is None:
        proc.kill()
    proc.wait()


@pytest.fixture
def http_server() -> Generator[str, None, None]:
    """A local HTTP server in a background thread; yields its base URL."""
    server = http.server.HTTPServer(("127.0.0.1", 0), _QuietHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/"
    server.shutdown()
    server.server_close()
    thread.join()


class _QuietHandler(http.server.BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        self.send_response(404)
        self.end_headers()

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass
