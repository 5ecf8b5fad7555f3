"""Parse warnings and validation violations.

Both are plain values: the parser and the validator accumulate them and hand
the full list back instead of stopping at the first problem.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Violation severity. Errors block a session from being ready."""

    ERROR = "error"
    WARNING = "warning"


class ParseWarning(BaseModel):
    """Non-fatal parser finding; the model was still built."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(description="Human-readable description")
    line: int | None = Field(default=None, description="1-based source line, if known")

    def __str__(self) -> str:
        if self.line is not None:
            return f"line {self.line}: {self.message}"
        return self.message


class Violation(BaseModel):
    """Structural or referential problem found by the validator.

    Attributes:
        severity: ``error`` blocks the ready state; ``warning`` does not.
        code: Stable machine-readable identifier (e.g. ``step-gap``).
        location: Where the problem is (``runbook``, ``step 2``, ``substep 2.1``).
        message: Human-readable description.
    """

    model_config = ConfigDict(frozen=True)

    severity: Severity
    code: str
    location: str
    message: str

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.location}: {self.message}"
