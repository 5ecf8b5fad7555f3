"""Status, next and log commands for session overview."""

import typer
from rich.markup import escape
from rich.table import Table

from ..completions import complete_session_id, complete_skipped_policy
from ..config import SkippedPolicy
from ..core import (
    ExecutionSession,
    SessionStoreError,
    TrackerError,
    load_session,
    next_actionable,
    progress,
    unmet_prerequisites,
    violations_summary,
)
from ..models import ExecutionStatus
from ..output import get_output_context, styled_status
from .common import load_project_config, resolve_session_id


def _load(session: str | None) -> ExecutionSession:
    ctx = get_output_context()
    runbook_dir, _ = load_project_config(ctx)
    session_id = resolve_session_id(ctx, runbook_dir, session)
    try:
        return load_session(runbook_dir, session_id)
    except (TrackerError, SessionStoreError) as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None


def status(
    session: str | None = typer.Option(
        None,
        "--session",
        "-s",
        help="Session ID (defaults to the newest open session)",
        autocompletion=complete_session_id,
    ),
    skipped_policy: SkippedPolicy | None = typer.Option(
        None,
        "--skipped-policy",
        help="How skipped substeps count toward percent complete (overrides config)",
        autocompletion=complete_skipped_policy,
    ),
) -> None:
    """Show session progress, step statuses and the next substep."""
    ctx = get_output_context()
    _, config = load_project_config(ctx)
    if skipped_policy is not None:
        config.query = config.query.model_copy(update={"skipped_policy": skipped_policy})
    tracked = _load(session)
    runbook = tracked.runbook
    counts = progress(tracked, config.query)
    upcoming = next_actionable(tracked, config.query)
    errors = violations_summary(runbook)

    if ctx.json_mode:
        ctx.print_json(
            {
                "session_id": tracked.session_id,
                "title": runbook.title,
                "status": tracked.runbook_status().value,
                "progress": counts,
                "steps": {
                    str(step.index): tracked.step_status(step.index).value
                    for step in runbook.steps
                },
                "substeps": {str(a): s.value for a, s in tracked.statuses.items()},
                "next": str(upcoming) if upcoming else None,
                "ready": not errors,
                "closed": tracked.is_closed,
            }
        )
        return

    ctx.console.print(f"\n[bold]Session:[/bold] {tracked.session_id}")
    ctx.console.print(f"[bold]Runbook:[/bold] {escape(runbook.title)}")
    ctx.console.print(f"[bold]Status:[/bold] {styled_status(tracked.runbook_status())}")
    if tracked.abandoned_at:
        ctx.console.print("[yellow]Session abandoned[/yellow]")
    elif tracked.archived_at:
        ctx.console.print("[dim]Session archived[/dim]")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Address")
    table.add_column("Name")
    table.add_column("Status")
    for step in runbook.steps:
        step_status = styled_status(tracked.step_status(step.index))
        table.add_row(f"Step {step.index}", escape(step.name), step_status)
        for substep in step.substeps:
            name = escape(substep.name)
            if substep.is_documentation_only:
                name += " [cyan](no code)[/cyan]"
            status_text = styled_status(tracked.status(substep.address))
            table.add_row(f"  {substep.address}", name, status_text)
    ctx.console.print(table)

    ctx.console.print(
        f"[bold]Progress:[/bold] {counts.completed}/{counts.total} completed, "
        f"{counts.skipped} skipped, {counts.failed} failed "
        f"({counts.percent_complete:.0f}%)"
    )
    out_of_order = [
        index
        for index in unmet_prerequisites(tracked)
        if tracked.step_status(index) != ExecutionStatus.PENDING
    ]
    if out_of_order:
        steps = ", ".join(str(i) for i in out_of_order)
        ctx.console.print(f"[yellow]Started ahead of earlier steps:[/yellow] {steps}")
    if errors:
        ctx.console.print(f"[red]Not ready: {len(errors)} validation error(s)[/red]")
    if upcoming is not None and not tracked.is_closed:
        ctx.console.print(f"  Next: runbook step start {upcoming}")


def next_action(
    session: str | None = typer.Option(
        None,
        "--session",
        "-s",
        help="Session ID (defaults to the newest open session)",
        autocompletion=complete_session_id,
    ),
) -> None:
    """Show the recommended next substep."""
    ctx = get_output_context()
    _, config = load_project_config(ctx)
    tracked = _load(session)
    upcoming = next_actionable(tracked, config.query)

    if upcoming is None:
        ctx.result({"next": None}, "Nothing pending.")
        return

    substep = tracked.runbook.get_substep(upcoming)
    name = substep.name if substep else ""
    ctx.result(
        {"next": str(upcoming), "name": name},
        f"[bold]Next:[/bold] {upcoming}: {escape(name)}\n"
        f"  Start with: runbook step start {upcoming} --session {tracked.session_id}",
    )


def log(
    session: str | None = typer.Option(
        None,
        "--session",
        "-s",
        help="Session ID (defaults to the newest open session)",
        autocompletion=complete_session_id,
    ),
) -> None:
    """Show the session's transition log."""
    ctx = get_output_context()
    tracked = _load(session)

    if ctx.json_mode:
        ctx.print_json({"events": tracked.events})
        return

    if not tracked.events:
        ctx.console.print("No transitions recorded.")
        return

    for event in tracked.events:
        note = f"  {escape(event.note)}" if event.note else ""
        ctx.console.print(
            f"{event.sequence:>3}  {event.timestamp:%Y-%m-%d %H:%M:%S}  {event.address}  "
            f"{event.from_status.value} -> {event.to_status.value}{note}"
        )
