"""Execution state tracking for runbook sessions.

An ExecutionSession wraps one parsed (immutable) runbook with a mutable
status per substep address and an append-only event log. Only the
per-substep state machine is enforced:

    pending -> in_progress -> completed | failed
    pending -> skipped
    failed -> in_progress            (retry)
    completed | skipped | failed -> pending   (explicit reopen)

Step order is advisory; any substep may be started at any time.
Precondition failures raise before anything is changed.
"""

import hashlib
import logging
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from ..models import (
    ExecutionStatus,
    Runbook,
    SessionRecord,
    SubstepAddress,
    TransitionEvent,
)

logger = logging.getLogger(__name__)

_ALLOWED: dict[str, tuple[tuple[ExecutionStatus, ...], ExecutionStatus]] = {
    "start": ((ExecutionStatus.PENDING, ExecutionStatus.FAILED), ExecutionStatus.IN_PROGRESS),
    "complete": ((ExecutionStatus.IN_PROGRESS,), ExecutionStatus.COMPLETED),
    "fail": ((ExecutionStatus.IN_PROGRESS,), ExecutionStatus.FAILED),
    "skip": ((ExecutionStatus.PENDING,), ExecutionStatus.SKIPPED),
    "reopen": (
        (ExecutionStatus.COMPLETED, ExecutionStatus.SKIPPED, ExecutionStatus.FAILED),
        ExecutionStatus.PENDING,
    ),
}


class TrackerError(Exception):
    """Base exception for execution tracking errors."""


class AddressNotFound(TrackerError):
    """Raised when an address is not part of the runbook."""

    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__(f"Substep {address} not found in runbook")


class InvalidAddress(TrackerError):
    """Raised when an address string is not in ``N.M`` form."""


class InvalidTransition(TrackerError):
    """Raised when a transition's required starting status does not hold."""

    def __init__(
        self,
        address: SubstepAddress,
        action: str,
        current: ExecutionStatus,
        required: tuple[ExecutionStatus, ...],
    ) -> None:
        self.address = address
        self.action = action
        self.current = current
        self.required = required
        expected = " or ".join(status.value for status in required)
        super().__init__(
            f"Cannot {action} substep {address}: status is {current.value}, requires {expected}"
        )


class NoteRequired(TrackerError):
    """Raised when a transition that needs a note is given none."""


class SessionClosed(TrackerError):
    """Raised when mutating an abandoned or archived session."""


class SessionNotFinished(TrackerError):
    """Raised when archiving a session with non-terminal substeps."""


class SessionMismatch(TrackerError):
    """Raised when a session record belongs to a different runbook."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def runbook_identity(runbook: Runbook) -> str:
    """Return the identity hash of a runbook.

    Uses the source content hash when the runbook was parsed from text,
    otherwise a hash of the serialized model.
    """
    if runbook.content_hash:
        return runbook.content_hash
    return hashlib.sha256(runbook.model_dump_json().encode()).hexdigest()


def derive_status(statuses: Iterable[ExecutionStatus]) -> ExecutionStatus:
    """Aggregate child statuses into a parent status.

    Failed if any child failed; completed if every child is completed or
    skipped; in progress if any child has left pending; else pending.
    An empty collection is pending.
    """
    statuses = list(statuses)
    if any(s == ExecutionStatus.FAILED for s in statuses):
        return ExecutionStatus.FAILED
    done = (ExecutionStatus.COMPLETED, ExecutionStatus.SKIPPED)
    if statuses and all(s in done for s in statuses):
        return ExecutionStatus.COMPLETED
    if any(s != ExecutionStatus.PENDING for s in statuses):
        return ExecutionStatus.IN_PROGRESS
    return ExecutionStatus.PENDING


def _coerce(address: SubstepAddress | str) -> SubstepAddress:
    if isinstance(address, SubstepAddress):
        return address
    try:
        return SubstepAddress.parse(address)
    except ValueError as e:
        raise InvalidAddress(str(e)) from None


class ExecutionSession:
    """Mutable execution state for one runbook.

    The session exclusively owns its status map and event log. Mutations
    are serialized by a per-session lock; concurrent actors racing on the
    same address get InvalidTransition rather than overwriting each other.

    Attributes:
        runbook: The tracked runbook (shared read-only).
        session_id: Identifier used for persistence.
        runbook_path: Where the runbook was loaded from, if known.
        created_at: When the session was created.
    """

    def __init__(
        self,
        runbook: Runbook,
        *,
        session_id: str = "",
        runbook_path: str | None = None,
        created_at: datetime | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.runbook = runbook
        self.session_id = session_id
        self.runbook_path = runbook_path
        self._clock = clock or _utcnow
        self.created_at = created_at or self._clock()
        # Duplicate addresses collapse; the validator reports them
        self._statuses: dict[SubstepAddress, ExecutionStatus] = {
            address: ExecutionStatus.PENDING for address in runbook.addresses()
        }
        self._events: list[TransitionEvent] = []
        self._lock = threading.Lock()
        self.abandoned_at: datetime | None = None
        self.abandon_note: str | None = None
        self.archived_at: datetime | None = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def events(self) -> tuple[TransitionEvent, ...]:
        """Event log in order of occurrence."""
        return tuple(self._events)

    @property
    def statuses(self) -> dict[SubstepAddress, ExecutionStatus]:
        """Copy of the status map in document order."""
        return dict(self._statuses)

    @property
    def is_closed(self) -> bool:
        return self.abandoned_at is not None or self.archived_at is not None

    @property
    def is_finished(self) -> bool:
        """True when every substep has a terminal status."""
        return bool(self._statuses) and all(s.is_terminal for s in self._statuses.values())

    def status(self, address: SubstepAddress | str) -> ExecutionStatus:
        """Return the status of a substep.

        Raises:
            InvalidAddress: If a string address is not in N.M form
            AddressNotFound: If the address is not in the runbook
        """
        address = _coerce(address)
        if address not in self._statuses:
            raise AddressNotFound(address)
        return self._statuses[address]

    def step_status(self, index: int) -> ExecutionStatus:
        """Return the derived status of a step.

        Raises:
            AddressNotFound: If no step has this index
        """
        step = self.runbook.get_step(index)
        if step is None:
            raise AddressNotFound(f"step {index}")
        return derive_status(self._statuses[s.address] for s in step.substeps)

    def runbook_status(self) -> ExecutionStatus:
        """Return the derived status of the whole runbook."""
        return derive_status(
            derive_status(self._statuses[s.address] for s in step.substeps)
            for step in self.runbook.steps
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self, action: str, address: SubstepAddress | str, note: str | None = None
    ) -> TransitionEvent:
        address = _coerce(address)
        required, target = _ALLOWED[action]
        with self._lock:
            if self.is_closed:
                raise SessionClosed(f"Session {self.session_id or '(unsaved)'} is closed")
            if address not in self._statuses:
                raise AddressNotFound(address)
            current = self._statuses[address]
            if current not in required:
                raise InvalidTransition(address, action, current, required)

            event = TransitionEvent(
                sequence=len(self._events) + 1,
                timestamp=self._clock(),
                address=address,
                from_status=current,
                to_status=target,
                note=note,
            )
            self._events.append(event)
            self._statuses[address] = target

        logger.debug(f"{address}: {current.value} -> {target.value}")
        return event

    def start(self, address: SubstepAddress | str, note: str | None = None) -> TransitionEvent:
        """Mark a pending or failed substep as in progress."""
        return self._transition("start", address, note)

    def complete(self, address: SubstepAddress | str, note: str | None = None) -> TransitionEvent:
        """Mark an in-progress substep as completed."""
        return self._transition("complete", address, note)

    def fail(self, address: SubstepAddress | str, note: str) -> TransitionEvent:
        """Mark an in-progress substep as failed.

        Args:
            address: Substep address
            note: Failure reason (required, kept for the retry)

        Raises:
            NoteRequired: If the note is empty
        """
        if not note or not note.strip():
            raise NoteRequired(f"A failure reason is required to fail substep {address}")
        return self._transition("fail", address, note)

    def skip(self, address: SubstepAddress | str, note: str | None = None) -> TransitionEvent:
        """Mark a pending substep as skipped (not applicable)."""
        return self._transition("skip", address, note)

    def reopen(self, address: SubstepAddress | str, note: str | None = None) -> TransitionEvent:
        """Return a terminal substep to pending.

        The prior completion stays in the event log.
        """
        return self._transition("reopen", address, note)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def abandon(self, note: str | None = None) -> None:
        """Close the session without finishing it."""
        with self._lock:
            if self.is_closed:
                raise SessionClosed(f"Session {self.session_id or '(unsaved)'} is already closed")
            self.abandoned_at = self._clock()
            self.abandon_note = note
        logger.info(f"Session {self.session_id} abandoned")

    def archive(self) -> None:
        """Close a finished session.

        Raises:
            SessionNotFinished: If any substep is not terminal
        """
        with self._lock:
            if self.is_closed:
                raise SessionClosed(f"Session {self.session_id or '(unsaved)'} is already closed")
            if not self.is_finished:
                open_count = sum(1 for s in self._statuses.values() if not s.is_terminal)
                raise SessionNotFinished(
                    f"Cannot archive: {open_count} substep(s) are not completed, skipped or failed"
                )
            self.archived_at = self._clock()
        logger.info(f"Session {self.session_id} archived")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_record(self) -> SessionRecord:
        """Snapshot the session into its persistence shape."""
        with self._lock:
            return SessionRecord(
                session_id=self.session_id,
                runbook_id=runbook_identity(self.runbook),
                runbook_path=self.runbook_path,
                title=self.runbook.title,
                created_at=self.created_at,
                statuses={str(address): status for address, status in self._statuses.items()},
                events=list(self._events),
                abandoned_at=self.abandoned_at,
                abandon_note=self.abandon_note,
                archived_at=self.archived_at,
            )

    @classmethod
    def from_record(
        cls,
        runbook: Runbook,
        record: SessionRecord,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> "ExecutionSession":
        """Restore a session from its record.

        Args:
            runbook: The runbook the record was made for
            record: Persisted session record
            clock: Optional clock for new events

        Raises:
            SessionMismatch: If the record belongs to a different runbook
            InvalidAddress: If a status key is not in N.M form
            AddressNotFound: If the record has a status for an unknown address
        """
        identity = runbook_identity(runbook)
        if record.runbook_id != identity:
            raise SessionMismatch(
                f"Session {record.session_id} was recorded for runbook {record.runbook_id[:12]}, "
                f"not {identity[:12]}"
            )

        session = cls(
            runbook,
            session_id=record.session_id,
            runbook_path=record.runbook_path,
            created_at=record.created_at,
            clock=clock,
        )
        for key, status in record.statuses.items():
            address = _coerce(key)
            if address not in session._statuses:
                raise AddressNotFound(address)
            session._statuses[address] = status
        session._events = list(record.events)
        session.abandoned_at = record.abandoned_at
        session.abandon_note = record.abandon_note
        session.archived_at = record.archived_at
        return session
