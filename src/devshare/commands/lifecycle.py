"""Start and stop commands."""

import typer

from ..output import get_output_context
from .common import get_controller, report_result


def start(
    agent_id: str | None = typer.Argument(None, help="Agent id (defaults to agent-<ppid>)"),
) -> None:
    """Start the shared server unless it is already running."""
    ctx = get_output_context()
    ctx.print("[cyan]Starting development server...[/cyan]")
    report_result(ctx, get_controller().start(agent_id))


def stop(
    agent_id: str | None = typer.Argument(None, help="Agent id (defaults to agent-<ppid>)"),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Stop even if other agents are still using the server",
    ),
    wait: bool = typer.Option(
        False,
        "--wait",
        "-w",
        help="Ask other agents to finish and wait for them before stopping",
    ),
) -> None:
    """Stop the shared server once no agent is using it."""
    ctx = get_output_context()
    ctx.print("[cyan]Stopping development server...[/cyan]")
    report_result(ctx, get_controller().stop(force=force, wait=wait, agent_id=agent_id))
