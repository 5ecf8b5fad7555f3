"""Raw blocks produced by the block splitter."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BlockKind(str, Enum):
    """Kind tag of a raw block."""

    TITLE = "title"
    SUMMARY = "summary"
    PREREQUISITES = "prerequisites"
    STEP = "step"
    SUBSTEP = "substep"
    MANUAL_TESTING_PLAN = "manual-testing-plan"
    UNKNOWN = "unknown"


class RawBlock(BaseModel):
    """A contiguous range of source lines with a kind tag.

    Line numbers are 1-based; ``end_line`` is exclusive. ``heading`` is the
    heading text without the leading ``#`` marks (empty for headless blocks)
    and ``body`` holds the lines after the heading that belong to this block
    itself. Step blocks carry their substep blocks in ``children``; the step's
    own ``body`` then stops at the first substep heading.
    """

    model_config = ConfigDict(frozen=True)

    kind: BlockKind
    start_line: int = Field(ge=1, description="First line (1-based, the heading line)")
    end_line: int = Field(ge=1, description="Line after the block (exclusive)")
    heading: str = ""
    level: int = Field(default=0, ge=0, description="Markdown heading level")
    body: tuple[str, ...] = ()
    children: tuple["RawBlock", ...] = ()
