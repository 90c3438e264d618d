"""Init and cleanup commands."""

import typer

from ..config import write_config_template
from ..output import get_output_context
from .common import active_config_path, get_controller, report_result


def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
) -> None:
    """Write a devshare.toml config template."""
    ctx = get_output_context()
    config_path = active_config_path()
    if config_path.exists() and not force:
        ctx.console.print(f"[yellow]Config already exists:[/yellow] {config_path}")
        ctx.console.print("Use --force to overwrite existing configuration.")
        raise typer.Exit(1)
    write_config_template(config_path)
    ctx.success(f"Created config template: {config_path}", {"path": str(config_path)})


def cleanup(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Also remove the lock file, even if another agent holds it",
    ),
) -> None:
    """Remove all coordination files (registrations, server record, stop request)."""
    report_result(get_output_context(), get_controller().cleanup(force=force))
