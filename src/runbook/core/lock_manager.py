"""Per-session lock file.

A mutating command holds ``session.lock`` in the session directory while it
loads, changes and saves the session, so two commands racing on one session
get a LockError instead of overwriting each other's events.

The lock record is written to a private temp file first and published with
``os.link``, which fails if a lock already exists. Other processes therefore
never see a half-written lock. A lock is stale when its PID is gone or it is
older than the configured maximum age.
"""

import contextlib
import logging
import os
import tempfile
import time
from collections.abc import Iterator
from pathlib import Path

from ..constants import (
    MAX_LOCK_RETRIES,
    SESSION_LOCK_FILE,
    STALE_LOCK_SECONDS,
    UNREADABLE_LOCK_GRACE_SECONDS,
)
from ..models import Lock

logger = logging.getLogger(__name__)


class LockError(Exception):
    """Session lock is held by another command or could not be taken."""


def _lock_path(session_dir: Path) -> Path:
    return session_dir / SESSION_LOCK_FILE


def _is_pid_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)  # signal 0 checks existence only
        return True
    except OSError:
        return False


def read_lock(session_dir: Path) -> Lock | None:
    """Return the current lock, or None if it is missing or unreadable."""
    try:
        return Lock.model_validate_json(_lock_path(session_dir).read_text())
    except (OSError, ValueError):
        return None


def is_stale_lock(lock: Lock, max_age_seconds: int = STALE_LOCK_SECONDS) -> bool:
    """Check whether a lock's holder is gone or has held it too long."""
    return not _is_pid_running(lock.pid) or lock.age_seconds() > max_age_seconds


def _publish(lock_path: Path, lock: Lock) -> bool:
    """Write the lock to a temp file and hard-link it into place.

    Returns:
        True if the lock was published, False if a lock file already exists
    """
    fd, tmp_name = tempfile.mkstemp(
        dir=lock_path.parent, prefix=f".{lock_path.name}.", suffix=".tmp"
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(lock.model_dump_json(indent=2))
        os.link(tmp_path, lock_path)
        return True
    except FileExistsError:
        return False
    finally:
        tmp_path.unlink(missing_ok=True)


def _remove_if_unchanged(lock_path: Path, seen: os.stat_result) -> None:
    """Remove the lock file only if it is still the file that was inspected."""
    with contextlib.suppress(FileNotFoundError):
        current = lock_path.stat()
        if (current.st_ino, current.st_mtime_ns) == (seen.st_ino, seen.st_mtime_ns):
            lock_path.unlink()


def acquire_lock(
    session_dir: Path,
    session_id: str,
    command: str,
    max_age_seconds: int = STALE_LOCK_SECONDS,
) -> Lock:
    """Take the session lock.

    A stale lock is removed and the attempt repeated. An unreadable lock is
    only removed once it is older than ``UNREADABLE_LOCK_GRACE_SECONDS``.

    Args:
        session_dir: Session directory holding the lock file
        session_id: Session being mutated
        command: Command taking the lock, shown to anyone who is refused
        max_age_seconds: Age after which a live holder's lock is stale

    Returns:
        The published lock

    Raises:
        LockError: If another holder has a live lock, or the lock file
            cannot be resolved after a few attempts
    """
    lock_path = _lock_path(session_dir)
    lock = Lock(pid=os.getpid(), session_id=session_id, command=command)

    for _ in range(MAX_LOCK_RETRIES):
        if _publish(lock_path, lock):
            logger.debug(f"Locked session {session_id} for {command}")
            return lock

        try:
            seen = lock_path.stat()
        except FileNotFoundError:
            continue  # released since the publish attempt

        existing = read_lock(session_dir)
        if existing is None:
            if time.time() - seen.st_mtime < UNREADABLE_LOCK_GRACE_SECONDS:
                raise LockError(
                    f"Session {session_id} lock file is unreadable and recent; "
                    f"retry, or remove {lock_path} if no command is running"
                )
            logger.warning(f"Removing unreadable lock file {lock_path}")
            _remove_if_unchanged(lock_path, seen)
            continue

        if is_stale_lock(existing, max_age_seconds):
            logger.info(f"Removing stale lock on session {session_id} (PID {existing.pid})")
            _remove_if_unchanged(lock_path, seen)
            continue

        raise LockError(
            f"Session {session_id} is in use (PID {existing.pid}, command: {existing.command})"
        )

    raise LockError(f"Failed to lock session {session_id} after {MAX_LOCK_RETRIES} attempts")


def release_lock(session_dir: Path, lock: Lock) -> None:
    """Remove the lock file if it still holds ``lock``."""
    lock_path = _lock_path(session_dir)
    try:
        seen = lock_path.stat()
    except FileNotFoundError:
        return
    current = read_lock(session_dir)
    if current is None:
        return
    if (current.pid, current.acquired_at) == (lock.pid, lock.acquired_at):
        _remove_if_unchanged(lock_path, seen)


@contextlib.contextmanager
def session_lock(
    session_dir: Path,
    session_id: str,
    command: str,
    max_age_seconds: int = STALE_LOCK_SECONDS,
) -> Iterator[Lock]:
    """Hold the session lock for the duration of a ``with`` block."""
    lock = acquire_lock(session_dir, session_id, command, max_age_seconds)
    try:
        yield lock
    finally:
        release_lock(session_dir, lock)
