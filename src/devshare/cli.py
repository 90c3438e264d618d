"""devshare CLI: share one development server between agents."""

from pathlib import Path

import typer
from rich.console import Console

from devshare import __version__

from .commands import check, cleanup, init, release, start, status, stop, use
from .commands.common import set_config_path
from .logging import configure_logging
from .output import OutputContext, set_output_context


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"devshare {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="devshare",
    help="Coordinate a shared development server between independent agents",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (defaults to ./devshare.toml)",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v, -vv)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format for automation",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
) -> None:
    """devshare - shared development server coordination."""
    configure_logging(verbosity=verbose, quiet=quiet, no_color=no_color)
    console = Console(no_color=no_color)
    set_output_context(OutputContext(console=console, json_mode=json_output))
    set_config_path(config)


app.command()(check)
app.command()(status)
app.command()(start)
app.command()(stop)
app.command()(use)
app.command()(release)
app.command()(cleanup)
app.command()(init)

