"""Core business logic for runbook.

This package contains the runbook logic; only session_store and
lock_manager touch the filesystem:
- block_splitter: Split markdown into raw blocks
- runbook_parser: Build the document model from blocks
- validator: Structural checks producing violations
- tracker: Per-substep execution state machine and event log
- query: Read-only projections (next actionable, progress, readiness)
- prompt: Agent prompt generation for a substep
- session_store: Session persistence under .runbook/sessions
- lock_manager: PID-based per-session locking
- runbook_dir: .runbook directory discovery
"""

from .block_splitter import split
from .lock_manager import LockError, acquire_lock, release_lock, session_lock
from .prompt import generate_substep_prompt
from .query import (
    documentation_only,
    is_ready,
    next_actionable,
    progress,
    referenced_path_index,
    substeps_with_status,
    unmet_prerequisites,
    violations_summary,
)
from .runbook_dir import find_runbook_dir, get_runbook_dir
from .runbook_parser import hash_text, parse, parse_runbook
from .session_store import (
    SessionCorruptError,
    SessionNotFoundError,
    SessionStoreError,
    create_session,
    generate_session_id,
    get_session_dir,
    latest_open_session,
    list_sessions,
    load_record,
    load_session,
    save_session,
)
from .tracker import (
    AddressNotFound,
    ExecutionSession,
    InvalidAddress,
    InvalidTransition,
    NoteRequired,
    SessionClosed,
    SessionMismatch,
    SessionNotFinished,
    TrackerError,
    derive_status,
    runbook_identity,
)
from .validator import has_errors, validate

__all__ = [
    "AddressNotFound",
    "ExecutionSession",
    "InvalidAddress",
    "InvalidTransition",
    "LockError",
    "NoteRequired",
    "SessionClosed",
    "SessionCorruptError",
    "SessionMismatch",
    "SessionNotFinished",
    "SessionNotFoundError",
    "SessionStoreError",
    "TrackerError",
    "acquire_lock",
    "create_session",
    "derive_status",
    "documentation_only",
    "find_runbook_dir",
    "generate_session_id",
    "generate_substep_prompt",
    "get_runbook_dir",
    "get_session_dir",
    "has_errors",
    "hash_text",
    "is_ready",
    "latest_open_session",
    "list_sessions",
    "load_record",
    "load_session",
    "next_actionable",
    "parse",
    "parse_runbook",
    "progress",
    "referenced_path_index",
    "release_lock",
    "runbook_identity",
    "save_session",
    "session_lock",
    "split",
    "substeps_with_status",
    "unmet_prerequisites",
    "validate",
]
