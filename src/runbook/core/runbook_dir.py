"""Runbook directory utilities."""

from pathlib import Path

from ..constants import RUNBOOK_DIR_NAME


def get_runbook_dir(root: Path | None = None) -> Path:
    """Get .runbook directory path.

    Args:
        root: Optional project root, current directory if not provided

    Returns:
        Path to .runbook directory
    """
    if root is None:
        root = Path.cwd()
    return root / RUNBOOK_DIR_NAME


def find_runbook_dir(start: Path | None = None) -> Path | None:
    """Find the nearest existing .runbook directory.

    Walks up from ``start`` (current directory by default).

    Returns:
        Path to .runbook directory, or None if there is none
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / RUNBOOK_DIR_NAME
        if candidate.is_dir():
            return candidate
    return None
