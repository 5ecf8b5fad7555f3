"""Persistence shape of an execution session."""

from datetime import datetime

from pydantic import BaseModel, Field

from .status import ExecutionStatus, TransitionEvent


class SessionRecord(BaseModel):
    """Serialized execution session written to ``session.json``.

    Attributes:
        session_id: Session identifier (format: YYYYMMDD-HHMMSS-slug).
        runbook_id: Content hash of the runbook the session tracks.
        runbook_path: Where the runbook was loaded from, if anywhere.
        title: Runbook title, for listings.
        created_at: When the session was created.
        statuses: Status per substep keyed by ``"N.M"``.
        events: Ordered transition log.
        abandoned_at: Set when the session was abandoned.
        abandon_note: Reason given when abandoning.
        archived_at: Set when a finished session was archived.
    """

    session_id: str = Field(description="Session identifier")
    runbook_id: str = Field(description="SHA256 of the runbook source")
    runbook_path: str | None = Field(default=None, description="Source path of the runbook")
    title: str = Field(default="", description="Runbook title")
    created_at: datetime = Field(description="Session creation time")
    statuses: dict[str, ExecutionStatus] = Field(default_factory=dict)
    events: list[TransitionEvent] = Field(default_factory=list)
    abandoned_at: datetime | None = None
    abandon_note: str | None = None
    archived_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.abandoned_at is not None or self.archived_at is not None
