"""Execution status, transition events and progress counts."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .address import SubstepAddress


class ExecutionStatus(str, Enum):
    """Execution state of a substep (and, derived, of a step or runbook)."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.SKIPPED, ExecutionStatus.FAILED)


class TransitionEvent(BaseModel):
    """One entry of a session's audit log.

    Events are immutable and only ever appended; ``sequence`` starts at 1
    and increases by one per successful transition.
    """

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(ge=1, description="Position in the event log")
    timestamp: datetime = Field(description="When the transition happened (UTC)")
    address: SubstepAddress
    from_status: ExecutionStatus
    to_status: ExecutionStatus
    note: str | None = None


class Progress(BaseModel):
    """Substep counts and completion percentage for a session."""

    total: int = 0
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    pending: int = 0
    in_progress: int = 0
    percent_complete: float = Field(default=0.0, ge=0.0, le=100.0)
