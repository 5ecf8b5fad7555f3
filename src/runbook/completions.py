"""Shell completion helpers for the runbook CLI."""

from pathlib import Path

import typer

from runbook.config import SkippedPolicy
from runbook.core import (
    SessionStoreError,
    TrackerError,
    find_runbook_dir,
    latest_open_session,
    list_sessions,
    load_session,
)

MAX_RESULTS = 20


def complete_markdown_file(incomplete: str) -> list[str]:
    """Return markdown files and directories matching the given path prefix.

    Args:
        incomplete: The partial path typed by the user (may be empty)

    Returns:
        List of matching paths, alphabetically sorted, capped at 20 results.
        Directories include a trailing slash to indicate they can be expanded.
    """
    if not incomplete:
        search_dir = Path(".")
        prefix = ""
    else:
        path = Path(incomplete)
        if incomplete.endswith("/") or incomplete.endswith("\\") or path.is_dir():
            search_dir = path
            prefix = ""
        else:
            search_dir = path.parent if path.parent != path else Path(".")
            prefix = path.name

    results: list[str] = []

    try:
        if not search_dir.is_dir():
            return []

        for entry in search_dir.iterdir():
            if entry.name.startswith("."):
                continue
            if prefix and not entry.name.lower().startswith(prefix.lower()):
                continue

            try:
                if entry.is_dir():
                    results.append(str(entry) + "/")
                elif entry.is_file() and entry.suffix.lower() == ".md":
                    results.append(str(entry))
            except PermissionError:
                continue

    except PermissionError:
        return []

    return sorted(results)[:MAX_RESULTS]


def complete_session_id(incomplete: str) -> list[str]:
    """Return IDs of open sessions that start with the given prefix."""
    runbook_dir = find_runbook_dir()
    if runbook_dir is None:
        return []
    return [
        r.session_id
        for r in list_sessions(runbook_dir)
        if not r.is_closed and r.session_id.startswith(incomplete)
    ][:MAX_RESULTS]


def complete_address(ctx: typer.Context, incomplete: str) -> list[str]:
    """Return substep addresses matching a prefix.

    Addresses come from the session named by a ``--session`` already on the
    command line, otherwise from the newest open session.
    """
    runbook_dir = find_runbook_dir()
    if runbook_dir is None:
        return []
    session_id = ctx.params.get("session")
    if not session_id:
        record = latest_open_session(runbook_dir)
        if record is None:
            return []
        session_id = record.session_id
    try:
        session = load_session(runbook_dir, session_id)
    except (TrackerError, SessionStoreError):
        return []
    return [str(a) for a in session.statuses if str(a).startswith(incomplete)]


def complete_skipped_policy(incomplete: str) -> list[str]:
    """Return skipped-policy names that start with the given prefix."""
    return [p.value for p in SkippedPolicy if p.value.startswith(incomplete.lower())]
