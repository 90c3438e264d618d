"""Use and release commands: reference counting for agents."""

import typer

from ..output import get_output_context
from .common import get_controller, report_result


def use(
    agent_id: str | None = typer.Argument(None, help="Agent id (defaults to agent-<ppid>)"),
    pid: int | None = typer.Option(
        None,
        "--pid",
        "-p",
        help="Process whose lifetime bounds the registration (defaults to the calling shell)",
    ),
) -> None:
    """Register as a user of the shared server."""
    report_result(get_output_context(), get_controller().use(agent_id, pid))


def release(
    agent_id: str | None = typer.Argument(None, help="Agent id (defaults to agent-<ppid>)"),
) -> None:
    """Unregister as a user of the shared server."""
    ctx = get_output_context()
    result = get_controller().release(agent_id)
    if result.ok and result.details.get("can_stop"):
        ctx.print("No users remaining - the server can be stopped with: devshare stop")
    report_result(ctx, result)
