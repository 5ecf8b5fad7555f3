"""Helpers shared by command implementations."""

from pathlib import Path

import typer

from ..config import RunbookConfig, load_config
from ..core import SessionStoreError, find_runbook_dir, latest_open_session, load_record
from ..models import SubstepAddress
from ..output import OutputContext


def require_runbook_dir(ctx: OutputContext) -> Path:
    """Find the .runbook directory or exit with an error."""
    runbook_dir = find_runbook_dir()
    if runbook_dir is None:
        ctx.error("Runbook not initialized. Run 'runbook init' first.")
        raise typer.Exit(1)
    return runbook_dir


def load_project_config(ctx: OutputContext) -> tuple[Path, RunbookConfig]:
    """Return the .runbook directory and its loaded configuration."""
    runbook_dir = require_runbook_dir(ctx)
    return runbook_dir, load_config(runbook_dir)


def resolve_session_id(ctx: OutputContext, runbook_dir: Path, session: str | None) -> str:
    """Return the given session ID, or the newest open session's ID.

    Exits with an error if the session does not exist or none is open.
    """
    if session is None:
        record = latest_open_session(runbook_dir)
        if record is None:
            ctx.error("No open sessions. Start one with: runbook session start <file>")
            raise typer.Exit(1)
        return record.session_id

    try:
        load_record(runbook_dir, session)
    except SessionStoreError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
    return session


def read_runbook_file(ctx: OutputContext, path: Path) -> str:
    """Read a runbook file or exit with an error."""
    if not path.is_file():
        ctx.error(f"Runbook file not found: {path}")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


def parse_address(ctx: OutputContext, value: str) -> SubstepAddress:
    """Parse an ``N.M`` address argument or exit with an error."""
    try:
        return SubstepAddress.parse(value)
    except ValueError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None
