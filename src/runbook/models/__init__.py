"""Pydantic data models for runbooks and execution sessions.

This package defines the data structures used throughout runbook for:
- Substep addresses (SubstepAddress)
- Raw blocks from the splitter (RawBlock, BlockKind)
- The parsed document model (Runbook, Step, Substep)
- Parser and validator findings (ParseWarning, Violation, Severity)
- Execution state (ExecutionStatus, TransitionEvent, Progress)
- Session persistence and locking (SessionRecord, Lock)

Document models are frozen Pydantic models, enabling:
- Safe sharing between the validator, tracker and query layer
- Automatic JSON serialization/deserialization
- Schema generation for documentation

Example:
    >>> from runbook.models import SubstepAddress, ExecutionStatus
    >>> SubstepAddress.parse("2.1").model_dump_json()
    '{"step":2,"substep":1}'
"""

from .address import SubstepAddress
from .blocks import BlockKind, RawBlock
from .findings import ParseWarning, Severity, Violation
from .lock import Lock
from .runbook import Runbook, Step, Substep, UnrecognizedSection
from .session import SessionRecord
from .status import ExecutionStatus, Progress, TransitionEvent

__all__ = [
    "BlockKind",
    "ExecutionStatus",
    "Lock",
    "ParseWarning",
    "Progress",
    "RawBlock",
    "Runbook",
    "SessionRecord",
    "Severity",
    "Step",
    "Substep",
    "SubstepAddress",
    "TransitionEvent",
    "UnrecognizedSection",
    "Violation",
]
