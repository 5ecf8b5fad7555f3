"""Session command implementations."""

from pathlib import Path

import typer
from rich.markup import escape

from ..completions import complete_markdown_file, complete_session_id
from ..core import (
    LockError,
    SessionStoreError,
    TrackerError,
    create_session,
    get_session_dir,
    has_errors,
    list_sessions,
    load_session,
    parse_runbook,
    save_session,
    session_lock,
    validate,
)
from ..output import get_output_context
from .common import (
    load_project_config,
    read_runbook_file,
    require_runbook_dir,
    resolve_session_id,
)

session_app = typer.Typer(help="Execution session commands", no_args_is_help=True)


@session_app.command("start")
def session_start(
    file: Path = typer.Argument(
        ..., help="Runbook markdown file", autocompletion=complete_markdown_file
    ),
    name: str | None = typer.Option(None, "--name", "-n", help="Session name slug"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Start even if the runbook has validation errors"
    ),
) -> None:
    """Start a new execution session for a runbook."""
    ctx = get_output_context()
    runbook_dir = require_runbook_dir(ctx)
    text = read_runbook_file(ctx, file)

    runbook, _ = parse_runbook(text)
    violations = validate(runbook)
    if has_errors(violations) and not force:
        ctx.violations(violations, errors_only=True)
        ctx.error(
            "Runbook has validation errors; fix them or pass --force",
            {"violations": [v for v in violations if v.is_error]},
        )
        raise typer.Exit(1)

    if ctx.dry_run:
        ctx.dry_run_notice(
            "Would start session:",
            [f"Runbook: {escape(runbook.title)}", f"Substeps: {len(runbook.addresses())}"],
        )
        return

    session, warnings = create_session(runbook_dir, text, runbook_path=file, name=name)
    ctx.parse_warnings(warnings)

    ctx.success(
        f"Started session {session.session_id}",
        {"session_id": session.session_id, "title": runbook.title},
    )
    ctx.print(f"  Next: runbook next --session {session.session_id}")


@session_app.command("list")
def session_list() -> None:
    """List sessions, newest first."""
    ctx = get_output_context()
    runbook_dir = require_runbook_dir(ctx)
    records = list_sessions(runbook_dir)

    if ctx.json_mode:
        ctx.print_json({"sessions": records})
        return

    if not records:
        ctx.console.print("No sessions found.")
        return

    for record in records:
        if record.abandoned_at:
            state = "[yellow]abandoned[/yellow]"
        elif record.archived_at:
            state = "[dim]archived[/dim]"
        else:
            state = "[green]open[/green]"
        ctx.console.print(f"{record.session_id}  {state}  {escape(record.title)}")


def _close_session(session_id: str, command: str, note: str | None) -> None:
    ctx = get_output_context()
    runbook_dir, config = load_project_config(ctx)
    resolve_session_id(ctx, runbook_dir, session_id)
    session_dir = get_session_dir(runbook_dir, session_id)

    if ctx.dry_run:
        ctx.dry_run_notice(f"Would {command} session {session_id}")
        return

    try:
        with session_lock(
            session_dir, session_id, f"session {command}", config.session.lock_stale_seconds
        ):
            session = load_session(runbook_dir, session_id)
            if command == "abandon":
                session.abandon(note)
            else:
                session.archive()
            save_session(runbook_dir, session)
    except (TrackerError, LockError, SessionStoreError) as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    past = "abandoned" if command == "abandon" else "archived"
    ctx.success(f"Session {session_id} {past}", {"session_id": session_id})


@session_app.command("abandon")
def session_abandon(
    session_id: str = typer.Argument(
        ..., help="Session ID", autocompletion=complete_session_id
    ),
    note: str | None = typer.Option(None, "--note", help="Why the session is abandoned"),
) -> None:
    """Abandon a session."""
    _close_session(session_id, "abandon", note)


@session_app.command("archive")
def session_archive(
    session_id: str = typer.Argument(
        ..., help="Session ID", autocompletion=complete_session_id
    ),
) -> None:
    """Archive a session whose substeps are all completed, skipped or failed."""
    _close_session(session_id, "archive", None)
