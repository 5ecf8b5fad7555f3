"""Substep addresses.

An address is the stable key of a substep: the ``(step, substep)`` number
pair written in the heading ``N.M``. Execution state is keyed by address,
never by object identity.
"""

import re

from pydantic import BaseModel, ConfigDict, Field

_ADDRESS_RE = re.compile(r"^\s*(\d+)\.(\d+)\s*$")


class SubstepAddress(BaseModel):
    """Address of a substep within a runbook.

    Attributes:
        step: Number of the owning step (1-indexed).
        substep: Number of the substep within the step (1-indexed).

    Example:
        >>> SubstepAddress.parse("4.1")
        SubstepAddress(step=4, substep=1)
        >>> str(SubstepAddress(step=4, substep=1))
        '4.1'
    """

    model_config = ConfigDict(frozen=True)

    step: int = Field(ge=0, description="Owning step number")
    substep: int = Field(ge=0, description="Substep number within the step")

    @classmethod
    def parse(cls, value: str) -> "SubstepAddress":
        """Parse an ``N.M`` string.

        Raises:
            ValueError: If the string is not of the form ``N.M``.
        """
        match = _ADDRESS_RE.match(value)
        if not match:
            raise ValueError(f"Invalid substep address: {value!r} (expected N.M)")
        return cls(step=int(match.group(1)), substep=int(match.group(2)))

    def as_tuple(self) -> tuple[int, int]:
        return (self.step, self.substep)

    def __str__(self) -> str:
        return f"{self.step}.{self.substep}"

    def __repr__(self) -> str:
        return f"SubstepAddress(step={self.step}, substep={self.substep})"
