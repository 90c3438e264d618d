"""Configuration management for devshare."""

import os
import tempfile
import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field, field_validator

from .constants import (
    CONFIG_FILE,
    HEALTH_INTERVAL,
    KILL_WAIT_SECONDS,
    LOCK_RETRY_INTERVAL,
    LOCK_TIMEOUT,
    PROBE_TIMEOUT,
    STALE_LOCK_SECONDS,
    START_TIMEOUT,
    STATE_DIR_ENV,
    STOP_WAIT_POLL,
    STOP_WAIT_TIMEOUT,
    TERMINATE_GRACE_PERIOD,
)

TEMPLATE_HEADER = """\
# devshare configuration
#
# start holds the lock while the server boots, for up to
# server.start_timeout + stop.grace_period + {kill:g}s (about {hold:g}s with these values).
# Agents calling use or stop meanwhile wait up to lock.timeout and then get
# lock_timeout; raise lock.timeout above that bound if they must never fail.

"""


class LockConfig(BaseModel):
    """Configuration for the coordination lock."""

    timeout: float = Field(default=LOCK_TIMEOUT, ge=0, description="Max wait for the lock")
    retry_interval: float = Field(default=LOCK_RETRY_INTERVAL, gt=0)
    stale_after: float = Field(
        default=STALE_LOCK_SECONDS, gt=0, description="Age after which a lock is abandoned"
    )


class ServerConfig(BaseModel):
    """Configuration for the shared server process."""

    command: str = "npx vite --host 0.0.0.0 --port 5173"
    cwd: str = ""  # Empty means the current directory
    log_file: str = ""  # Empty discards server output
    process_pattern: str = "vite.*--port 5173"
    health_url: str = "http://localhost:5173/"
    probe_timeout: float = Field(default=PROBE_TIMEOUT, gt=0)
    start_timeout: float = Field(default=START_TIMEOUT, gt=0)
    health_interval: float = Field(default=HEALTH_INTERVAL, gt=0)


class StopConfig(BaseModel):
    """Configuration for stopping the server."""

    grace_period: float = Field(default=TERMINATE_GRACE_PERIOD, ge=0)
    wait_timeout: float = Field(default=STOP_WAIT_TIMEOUT, ge=0)
    wait_poll: float = Field(default=STOP_WAIT_POLL, gt=0)


class DevshareConfig(BaseModel):
    """Root configuration for devshare."""

    name: str = "dev-server"
    state_root: str = ""  # Empty means $DEVSHARE_STATE_DIR or the system temp dir
    lock: LockConfig = Field(default_factory=LockConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    stop: StopConfig = Field(default_factory=StopConfig)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        """Resource names become directory names."""
        if not value or "/" in value or value in (".", ".."):
            raise ValueError(f"Invalid resource name: {value!r}")
        return value

    def state_dir(self) -> Path:
        """Directory holding the shared state for this resource."""
        root = self.state_root or os.environ.get(STATE_DIR_ENV) or tempfile.gettempdir()
        return Path(root) / f"devshare-{self.name}"

    def start_lock_hold(self) -> float:
        """Longest time start holds the lock: health polling plus stopping a failed launch."""
        return self.server.start_timeout + self.stop.grace_period + KILL_WAIT_SECONDS


def get_config_path(config_path: Path | None = None) -> Path:
    """Resolve the config file path (explicit path or ./devshare.toml)."""
    return config_path if config_path is not None else Path.cwd() / CONFIG_FILE


def load_config(config_path: Path | None = None) -> DevshareConfig:
    """Load config from a TOML file.

    Args:
        config_path: Path to the config file, defaults to ./devshare.toml

    Returns:
        Loaded configuration, or defaults if the file doesn't exist
    """
    path = get_config_path(config_path)
    if not path.exists():
        return DevshareConfig()
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return DevshareConfig.model_validate(data)


def write_config_template(config_path: Path | None = None) -> Path:
    """Write default devshare.toml template.

    Args:
        config_path: Destination, defaults to ./devshare.toml

    Returns:
        Path to the written config file
    """
    path = get_config_path(config_path)
    defaults = DevshareConfig()
    header = TEMPLATE_HEADER.format(kill=KILL_WAIT_SECONDS, hold=defaults.start_lock_hold())
    path.write_text(header + tomli_w.dumps(defaults.model_dump(mode="json")))
    return path
