"""Step command implementations.

Each transition command loads the session under its lock, applies one
state-machine transition and saves the session again. A rejected
transition leaves the saved session untouched.
"""

import typer
from rich.markup import escape

from ..completions import complete_address, complete_session_id
from ..core import (
    LockError,
    SessionStoreError,
    TrackerError,
    generate_substep_prompt,
    get_session_dir,
    load_session,
    next_actionable,
    save_session,
    session_lock,
)
from ..output import get_output_context
from .common import load_project_config, parse_address, resolve_session_id

step_app = typer.Typer(help="Substep execution commands", no_args_is_help=True)

_SESSION_OPTION_HELP = "Session ID (defaults to the newest open session)"


def _apply(action: str, address_arg: str, session: str | None, note: str | None) -> None:
    ctx = get_output_context()
    runbook_dir, config = load_project_config(ctx)
    session_id = resolve_session_id(ctx, runbook_dir, session)
    address = parse_address(ctx, address_arg)

    try:
        with session_lock(
            get_session_dir(runbook_dir, session_id),
            session_id,
            f"step {action}",
            config.session.lock_stale_seconds,
        ):
            tracked = load_session(runbook_dir, session_id)
            transition = getattr(tracked, action)
            if action == "fail":
                event = transition(address, note or "")
            else:
                event = transition(address, note)
            if ctx.dry_run:
                ctx.dry_run_notice(
                    f"Would move {address} from "
                    f"{event.from_status.value} to {event.to_status.value}"
                )
                return
            save_session(runbook_dir, tracked)
    except (TrackerError, LockError, SessionStoreError) as e:
        ctx.error(str(e), {"address": str(address), "session_id": session_id})
        raise typer.Exit(1) from None

    ctx.success(
        f"{address}: {event.from_status.value} -> {event.to_status.value}",
        {"session_id": session_id, "event": event},
    )
    if event.to_status.is_terminal:
        upcoming = next_actionable(tracked, config.query)
        if upcoming is not None:
            ctx.print(f"  Next: runbook step start {upcoming} --session {session_id}")
        elif tracked.is_finished:
            ctx.print(f"  All substeps done. Archive with: runbook session archive {session_id}")


@step_app.command("start")
def step_start(
    address: str = typer.Argument(
        ..., help="Substep address (N.M)", autocompletion=complete_address
    ),
    session: str | None = typer.Option(
        None, "--session", "-s", help=_SESSION_OPTION_HELP, autocompletion=complete_session_id
    ),
    note: str | None = typer.Option(None, "--note", help="Optional note"),
) -> None:
    """Start a pending (or retry a failed) substep."""
    _apply("start", address, session, note)


@step_app.command("complete")
def step_complete(
    address: str = typer.Argument(
        ..., help="Substep address (N.M)", autocompletion=complete_address
    ),
    session: str | None = typer.Option(
        None, "--session", "-s", help=_SESSION_OPTION_HELP, autocompletion=complete_session_id
    ),
    note: str | None = typer.Option(None, "--note", help="Optional note"),
) -> None:
    """Mark an in-progress substep as completed."""
    _apply("complete", address, session, note)


@step_app.command("fail")
def step_fail(
    address: str = typer.Argument(
        ..., help="Substep address (N.M)", autocompletion=complete_address
    ),
    note: str = typer.Option(..., "--note", help="Failure reason (required)"),
    session: str | None = typer.Option(
        None, "--session", "-s", help=_SESSION_OPTION_HELP, autocompletion=complete_session_id
    ),
) -> None:
    """Mark an in-progress substep as failed."""
    _apply("fail", address, session, note)


@step_app.command("skip")
def step_skip(
    address: str = typer.Argument(
        ..., help="Substep address (N.M)", autocompletion=complete_address
    ),
    session: str | None = typer.Option(
        None, "--session", "-s", help=_SESSION_OPTION_HELP, autocompletion=complete_session_id
    ),
    note: str | None = typer.Option(None, "--note", help="Why the substep does not apply"),
) -> None:
    """Skip a pending substep."""
    _apply("skip", address, session, note)


@step_app.command("reopen")
def step_reopen(
    address: str = typer.Argument(
        ..., help="Substep address (N.M)", autocompletion=complete_address
    ),
    session: str | None = typer.Option(
        None, "--session", "-s", help=_SESSION_OPTION_HELP, autocompletion=complete_session_id
    ),
    note: str | None = typer.Option(None, "--note", help="Why the substep is reopened"),
) -> None:
    """Return a completed, skipped or failed substep to pending."""
    _apply("reopen", address, session, note)


@step_app.command("show")
def step_show(
    address: str = typer.Argument(
        ..., help="Substep address (N.M)", autocompletion=complete_address
    ),
    session: str | None = typer.Option(
        None, "--session", "-s", help=_SESSION_OPTION_HELP, autocompletion=complete_session_id
    ),
) -> None:
    """Print the agent prompt for a substep."""
    ctx = get_output_context()
    runbook_dir, _ = load_project_config(ctx)
    session_id = resolve_session_id(ctx, runbook_dir, session)
    substep_address = parse_address(ctx, address)

    try:
        tracked = load_session(runbook_dir, session_id)
        prompt = generate_substep_prompt(tracked.runbook, substep_address)
        status = tracked.status(substep_address)
    except (TrackerError, SessionStoreError) as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    if ctx.json_mode:
        ctx.print_json(
            {"address": str(substep_address), "status": status.value, "prompt": prompt}
        )
        return

    ctx.console.print(f"[bold]Status:[/bold] {status.value}\n")
    ctx.console.print(escape(prompt))
