"""Helpers shared by the CLI commands."""

import tomllib
from pathlib import Path

import typer
from pydantic import ValidationError

from ..config import get_config_path, load_config
from ..constants import EXIT_FAILURE, EXIT_OK
from ..core import ResourceController
from ..models import ErrorKind, OperationResult, Outcome
from ..output import OutputContext, get_output_context

ERROR_EXIT_CODES: dict[ErrorKind, int] = {
    ErrorKind.LOCK_TIMEOUT: 10,
    ErrorKind.RESOURCE_BUSY: 11,
    ErrorKind.RESOURCE_STUCK: 12,
    ErrorKind.LAUNCH_FAILURE: 20,
    ErrorKind.TERMINATION_FAILURE: 21,
}

# Config file chosen by the CLI callback (None = ./devshare.toml)
_config_path: Path | None = None


def set_config_path(path: Path | None) -> None:
    """Set the config file used by commands. Called by CLI main callback."""
    global _config_path
    _config_path = path


def active_config_path() -> Path:
    """Config file chosen on the command line, else ./devshare.toml."""
    return get_config_path(_config_path)


def get_controller() -> ResourceController:
    """Build a controller from the active configuration."""
    try:
        config = load_config(_config_path)
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        get_output_context().error(f"Invalid configuration: {e}")
        raise typer.Exit(EXIT_FAILURE) from None
    return ResourceController(config)


def exit_code_for(result: OperationResult) -> int:
    if result.outcome is Outcome.SUCCESS:
        return EXIT_OK
    if result.error is not None:
        return ERROR_EXIT_CODES[result.error]
    return EXIT_FAILURE


def report_result(ctx: OutputContext, result: OperationResult) -> None:
    """Print an operation result and exit with its exit code."""
    ctx.result(result)
    code = exit_code_for(result)
    if code != EXIT_OK:
        raise typer.Exit(code)
