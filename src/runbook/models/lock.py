"""Lock record stored in a session directory while a command mutates it."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class Lock(BaseModel):
    """Holder of ``session.lock``.

    Attributes:
        pid: Process ID of the holder.
        session_id: Session being mutated.
        command: CLI command holding the lock (e.g. ``step start``).
        acquired_at: When the lock was published (UTC).
    """

    model_config = ConfigDict(frozen=True)

    pid: int = Field(description="Process ID holding the lock")
    session_id: str = Field(description="Session being mutated")
    command: str = Field(description="Command holding the lock")
    acquired_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def age_seconds(self, now: datetime | None = None) -> float:
        """Seconds since the lock was acquired."""
        return ((now or datetime.now(UTC)) - self.acquired_at).total_seconds()
