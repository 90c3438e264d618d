"""Check command: is the shared server running and healthy."""

import typer

from ..constants import EXIT_NOT_RUNNING, EXIT_OK, EXIT_STUCK
from ..models import ServerState
from ..output import get_output_context
from .common import get_controller

STATE_EXIT_CODES = {
    ServerState.RUNNING: EXIT_OK,
    ServerState.NOT_RUNNING: EXIT_NOT_RUNNING,
    ServerState.STUCK: EXIT_STUCK,
}


def check() -> None:
    """Check the server: exit 0 running, 1 not running, 2 stuck."""
    ctx = get_output_context()
    report = get_controller().check()
    ctx.status(report)

    if report.state is ServerState.NOT_RUNNING:
        ctx.print("\nSafe to start the server with: devshare start")
    elif report.state is ServerState.STUCK:
        ctx.print("\n[yellow]Server appears stuck - clean up with: devshare stop --force[/yellow]")

    code = STATE_EXIT_CODES[report.state]
    if code != EXIT_OK:
        raise typer.Exit(code)


def status() -> None:
    """Show server state, users, lock and pending stop requests."""
    get_output_context().status(get_controller().check())
