"""Output formatting for the runbook CLI.

Human-readable output goes to the Rich console (stderr); ``--json`` output
goes to stdout so it can be piped. Pydantic models passed as JSON data are
dumped in JSON mode first.
"""

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape

from .models import ExecutionStatus, ParseWarning, Violation

STATUS_STYLES = {
    ExecutionStatus.PENDING: "dim",
    ExecutionStatus.IN_PROGRESS: "cyan",
    ExecutionStatus.COMPLETED: "green",
    ExecutionStatus.SKIPPED: "yellow",
    ExecutionStatus.FAILED: "red",
}


def styled_status(status: ExecutionStatus) -> str:
    """Return a status value wrapped in its console markup."""
    style = STATUS_STYLES[status]
    return f"[{style}]{status.value}[/{style}]"


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class OutputContext:
    """Context for output formatting."""

    console: Console
    json_mode: bool = False
    dry_run: bool = False

    def print(self, message: str, style: str | None = None) -> None:
        """Print message unless in JSON mode."""
        if not self.json_mode:
            self.console.print(message, style=style)

    def print_json(self, data: dict[str, Any]) -> None:
        """Print data as JSON on stdout (JSON mode only)."""
        if self.json_mode:
            print(json.dumps(_jsonable(data), indent=2, default=str))

    def result(self, data: dict[str, Any], message: str = "") -> None:
        """Print data in JSON mode, otherwise the message."""
        if self.json_mode:
            self.print_json(data)
        elif message:
            self.console.print(message)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print an error in the active format."""
        if self.json_mode:
            self.print_json({"error": message, **(data or {})})
        else:
            self.console.print(f"[red]Error: {escape(message)}[/red]")

    def success(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Print a success message in the active format."""
        if self.json_mode:
            self.print_json({"success": message, **(data or {})})
        else:
            self.console.print(f"[green]{escape(message)}[/green]")

    def dry_run_notice(self, message: str, details: Iterable[str] = ()) -> None:
        """Describe what a dry run would have done."""
        self.print(f"[cyan][DRY RUN][/cyan] {message}")
        for line in details:
            self.print(f"  {line}")

    def parse_warnings(self, warnings: Iterable[ParseWarning]) -> None:
        """Print parser warnings (human mode only)."""
        for warning in warnings:
            self.print(f"[yellow]Parse warning:[/yellow] {escape(str(warning))}")

    def violations(self, violations: Iterable[Violation], *, errors_only: bool = False) -> None:
        """Print validation findings with their severity (human mode only)."""
        for violation in violations:
            if errors_only and not violation.is_error:
                continue
            style = "red" if violation.is_error else "yellow"
            self.print(
                f"[{style}]{violation.severity.value}[/{style}] "
                f"{violation.location}: {escape(violation.message)}"
            )


# Global output context (set by cli.py main callback)
_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Get the current output context.

    Returns a default OutputContext if not yet initialized by CLI.
    """
    if _ctx is None:
        return OutputContext(Console(stderr=True))
    return _ctx


def set_output_context(ctx: OutputContext | None) -> None:
    """Set the global output context. Called by CLI main callback."""
    global _ctx
    _ctx = ctx
