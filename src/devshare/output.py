"""Rendering of coordinator results for the devshare CLI.

Every command ends in either an OperationResult or a StatusReport.
OutputContext renders both, as rich text for people or as a single
JSON document (--json) for agents driving the CLI.
"""

import json
from dataclasses import dataclass
from typing import Any

from rich.console import Console
from rich.table import Table

from .models import OperationResult, Outcome, ServerState, StatusReport

STATE_STYLES = {
    ServerState.RUNNING: "green",
    ServerState.NOT_RUNNING: "red",
    ServerState.STUCK: "yellow",
}

OUTCOME_STYLES = {
    Outcome.SUCCESS: "green",
    Outcome.REFUSED: "yellow",
    Outcome.FAILURE: "red",
}


@dataclass
class OutputContext:
    """Where and how command output is rendered."""

    console: Console
    json_mode: bool = False

    def print(self, message: str, style: str | None = None) -> None:
        """Print a human-only line (suppressed in JSON mode)."""
        if not self.json_mode:
            self.console.print(message, style=style)

    def print_json(self, data: dict[str, Any]) -> None:
        if self.json_mode:
            print(json.dumps(data, indent=2, default=str))

    def error(self, message: str) -> None:
        """Report an error that happened before any coordinator operation ran."""
        if self.json_mode:
            self.print_json({"outcome": Outcome.FAILURE.value, "message": message})
        else:
            self.console.print(f"[red]Error: {message}[/red]")

    def success(self, message: str, data: dict[str, Any] | None = None) -> None:
        if self.json_mode:
            self.print_json({"outcome": Outcome.SUCCESS.value, "message": message, **(data or {})})
        else:
            self.console.print(f"[green]{message}[/green]")

    def users(self, rows: list[dict[str, Any]]) -> None:
        """Table of registered agents."""
        if not rows:
            self.console.print("No registered users")
            return
        table = Table(title="Server users", title_justify="left")
        table.add_column("Agent")
        table.add_column("PID", justify="right")
        table.add_column("Age", justify="right")
        for row in rows:
            table.add_row(row["agent_id"], str(row["pid"]), f"{row['age_seconds']}s")
        self.console.print(table)

    def result(self, result: OperationResult) -> None:
        """Render an operation result, styled by its outcome."""
        if self.json_mode:
            self.print_json(result.model_dump(mode="json"))
            return

        style = OUTCOME_STYLES[result.outcome]
        prefix = "Error: " if result.outcome is Outcome.FAILURE else ""
        self.console.print(f"[{style}]{prefix}{result.message}[/{style}]")

        details = result.details
        if "users" in details:
            self.users(details["users"])
        for agent_id in details.get("purged", []):
            self.console.print(f"[dim]Cleaned up dead registration: {agent_id}[/dim]")
        if "stop_requested" in details:
            self.console.print("[yellow]A stop of the server has been requested[/yellow]")
        for pid, reason in details.get("errors", {}).items():
            self.console.print(f"  PID {pid}: {reason}")
        if hint := details.get("hint"):
            self.console.print(f"  Hint: {hint}")

    def status(self, report: StatusReport) -> None:
        """Render a status report."""
        if self.json_mode:
            data = report.model_dump(mode="json")
            data["user_count"] = report.user_count
            self.print_json(data)
            return

        style = STATE_STYLES[report.state]
        self.console.print(f"[bold]State:[/bold] [{style}]{report.state.value}[/{style}]")
        if report.server_pids:
            self.console.print(f"[bold]PIDs:[/bold] {', '.join(map(str, report.server_pids))}")
        self.console.print(f"[bold]URL:[/bold] {report.health_url}")
        if report.record is not None:
            started = report.record.started_at.strftime("%Y-%m-%d %H:%M:%S")
            by = f" by {report.record.started_by}" if report.record.started_by else ""
            self.console.print(f"[bold]Started:[/bold] {started}{by}")
        self.console.print(f"[bold]Users:[/bold] {report.user_count}")

        if report.lock is None:
            self.console.print("[bold]Lock:[/bold] free")
        else:
            lock = report.lock.lock
            stale = " (stale)" if report.lock.stale else ""
            self.console.print(
                f"[bold]Lock:[/bold] held by {lock.holder_id} "
                f"(PID {lock.pid}, {lock.user}@{lock.hostname}, "
                f"{report.lock.age_seconds:g}s){stale}"
            )
        if report.stop_request is not None:
            self.console.print(
                f"[bold]Stop requested:[/bold] {report.stop_request.reason} "
                f"({report.stop_request.requested_by or 'unknown'})"
            )
        self.console.print("")
        self.users([u.summary() for u in report.users])


# Global output context (set by cli.py main callback)
_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Get the current output context, or a plain console one outside the CLI."""
    if _ctx is None:
        return OutputContext(Console())
    return _ctx


def set_output_context(ctx: OutputContext) -> None:
    """Set the global output context. Called by CLI main callback."""
    global _ctx
    _ctx = ctx
