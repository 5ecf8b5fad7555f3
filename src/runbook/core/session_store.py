"""Session persistence under the .runbook directory.

Each session lives in ``.runbook/sessions/<session_id>/``:

- ``session.json``: the SessionRecord (statuses and event log)
- ``runbook.md``: verbatim copy of the runbook source the session tracks

Loading re-parses the copy, so a session keeps working even if the
original file is edited or moved.
"""

import logging
import os
import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from ..constants import SESSION_FILE, SESSION_SOURCE_FILE, SESSIONS_DIR_NAME
from ..models import ParseWarning, SessionRecord
from .runbook_parser import parse_runbook
from .tracker import ExecutionSession

logger = logging.getLogger(__name__)


class SessionStoreError(Exception):
    """Base class for session storage errors."""


class SessionNotFoundError(SessionStoreError):
    """Raised when a session directory or record does not exist."""


class SessionCorruptError(SessionStoreError):
    """Raised when a session record exists but cannot be read."""


def sanitize_slug(name: str) -> str:
    """Convert name to safe slug.

    Args:
        name: Name to sanitize

    Returns:
        Lowercase slug with only alphanumeric and hyphens
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    slug = slug.strip("-")
    return slug[:50] if slug else "unnamed"


def generate_session_id(slug: str | None = None, runbook_path: Path | None = None) -> str:
    """Generate session ID in format YYYYMMDD-HHMMSS-<slug>.

    Args:
        slug: Optional slug to use
        runbook_path: Optional runbook file path to derive slug from

    Returns:
        Generated session ID
    """
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")

    if slug:
        safe_slug = sanitize_slug(slug)
    elif runbook_path:
        safe_slug = sanitize_slug(runbook_path.stem)
    else:
        safe_slug = "session"

    return f"{timestamp}-{safe_slug}"


def get_sessions_dir(runbook_dir: Path) -> Path:
    """Get path to the sessions directory."""
    return runbook_dir / SESSIONS_DIR_NAME


def get_session_dir(runbook_dir: Path, session_id: str) -> Path:
    """Get path to a session directory."""
    return get_sessions_dir(runbook_dir) / session_id


def save_session(runbook_dir: Path, session: ExecutionSession) -> Path:
    """Write the session record to its directory.

    Args:
        runbook_dir: Path to .runbook directory
        session: Session to persist (must have a session_id)

    Returns:
        Path to the written session.json
    """
    if not session.session_id:
        raise ValueError("Cannot save a session without a session_id")
    session_dir = get_session_dir(runbook_dir, session.session_id)
    session_dir.mkdir(parents=True, exist_ok=True)
    path = session_dir / SESSION_FILE
    # session.json is only ever replaced by a complete record
    tmp_path = path.with_name(f"{path.name}.tmp")
    tmp_path.write_text(session.to_record().model_dump_json(indent=2))
    os.replace(tmp_path, path)
    return path


def create_session(
    runbook_dir: Path,
    text: str,
    *,
    runbook_path: Path | None = None,
    name: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> tuple[ExecutionSession, list[ParseWarning]]:
    """Parse runbook text and persist a new session for it.

    Args:
        runbook_dir: Path to .runbook directory
        text: Runbook markdown
        runbook_path: Where the text came from, recorded for reference
        name: Optional slug for the session ID
        clock: Optional clock for the session

    Returns:
        Tuple of (new session, parse warnings)
    """
    runbook, warnings = parse_runbook(text)

    base_id = generate_session_id(slug=name, runbook_path=runbook_path)
    session_id = base_id
    suffix = 2
    while get_session_dir(runbook_dir, session_id).exists():
        session_id = f"{base_id}-{suffix}"
        suffix += 1

    session_dir = get_session_dir(runbook_dir, session_id)
    session_dir.mkdir(parents=True)
    (session_dir / SESSION_SOURCE_FILE).write_text(text, encoding="utf-8")

    session = ExecutionSession(
        runbook,
        session_id=session_id,
        runbook_path=str(runbook_path.resolve()) if runbook_path else None,
        clock=clock,
    )
    save_session(runbook_dir, session)
    logger.info(f"Created session {session_id} for {runbook.title!r}")
    return session, warnings


def load_record(runbook_dir: Path, session_id: str) -> SessionRecord:
    """Load a session record without parsing its runbook.

    Raises:
        SessionNotFoundError: If the session does not exist
        SessionCorruptError: If session.json is not a valid record
    """
    path = get_session_dir(runbook_dir, session_id) / SESSION_FILE
    if not path.exists():
        raise SessionNotFoundError(f"Session not found: {session_id}")
    try:
        return SessionRecord.model_validate_json(path.read_text())
    except ValueError as e:
        raise SessionCorruptError(f"Session {session_id} has an unreadable record: {path}") from e


def load_session(
    runbook_dir: Path,
    session_id: str,
    *,
    clock: Callable[[], datetime] | None = None,
) -> ExecutionSession:
    """Load a session and the runbook copy it tracks.

    Raises:
        SessionNotFoundError: If the session or its runbook copy is missing
        SessionCorruptError: If session.json is not a valid record
    """
    record = load_record(runbook_dir, session_id)
    source = get_session_dir(runbook_dir, session_id) / SESSION_SOURCE_FILE
    if not source.exists():
        raise SessionNotFoundError(f"Runbook copy missing for session {session_id}")
    runbook, _ = parse_runbook(source.read_text(encoding="utf-8"))
    return ExecutionSession.from_record(runbook, record, clock=clock)


def list_sessions(runbook_dir: Path) -> list[SessionRecord]:
    """List session records, newest first.

    Directories without a readable session.json are skipped.
    """
    sessions_dir = get_sessions_dir(runbook_dir)
    if not sessions_dir.exists():
        return []

    records: list[SessionRecord] = []
    for session_dir in sessions_dir.iterdir():
        path = session_dir / SESSION_FILE
        if not path.is_file():
            continue
        try:
            records.append(SessionRecord.model_validate_json(path.read_text()))
        except ValueError as e:
            logger.warning(f"Skipping unreadable session {session_dir.name}: {e}")
    return sorted(records, key=lambda r: (r.created_at, r.session_id), reverse=True)


def latest_open_session(runbook_dir: Path) -> SessionRecord | None:
    """Return the newest session that is neither abandoned nor archived."""
    return next((r for r in list_sessions(runbook_dir) if not r.is_closed), None)
