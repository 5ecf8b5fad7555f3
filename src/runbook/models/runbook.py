"""Document model for parsed runbooks.

A runbook is a migration procedure: a title, a summary of changes,
prerequisites, numbered steps made of numbered substeps, and a manual
testing plan. The model is frozen; re-parsing the source produces a new
instance. Execution state lives in the tracker, keyed by substep address.
"""

from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict, Field

from .address import SubstepAddress


class Substep(BaseModel):
    """A numbered unit of work (``N.M: Task Name``).

    Attributes:
        address: ``(step, substep)`` numbers as written in the heading.
        name: Task name with any NO-CODE-CHANGE marker stripped.
        is_documentation_only: True iff the heading carried ``[NO-CODE-CHANGE]``.
        description: Prose under the heading that is not a bullet.
        action_items: Bullet instructions, continuation lines joined.
        referenced_paths: Paths found in bold spans (informational only).
        line: 1-based line of the heading.
    """

    model_config = ConfigDict(frozen=True)

    address: SubstepAddress
    name: str
    is_documentation_only: bool = False
    description: str | None = None
    action_items: tuple[str, ...] = ()
    referenced_paths: frozenset[str] = Field(default_factory=frozenset)
    line: int | None = None


class Step(BaseModel):
    """A numbered top-level phase (``Step N: Category Name``)."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(description="Step number (1-indexed)")
    name: str
    context: str | None = Field(default=None, description="Explanatory prose")
    substeps: tuple[Substep, ...] = ()
    line: int | None = None


class UnrecognizedSection(BaseModel):
    """A top-level heading the splitter did not recognize."""

    model_config = ConfigDict(frozen=True)

    heading: str
    line: int


class Runbook(BaseModel):
    """Root of the document model.

    Attributes:
        title: Runbook title (``# Runbook: <title>``).
        description: Prose between the title and the first section.
        summary: Bullet findings/changes from ``Summary of changes``.
        prerequisites: Items from ``Prerequisites``.
        steps: Steps in document order.
        manual_testing_plan: Items from ``Manual testing plan``.
        unrecognized_sections: Unknown top-level headings, kept for validation.
        content_hash: SHA-256 of the source text, if parsed from text.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: str | None = None
    summary: tuple[str, ...] = ()
    prerequisites: tuple[str, ...] = ()
    steps: tuple[Step, ...] = ()
    manual_testing_plan: tuple[str, ...] = ()
    unrecognized_sections: tuple[UnrecognizedSection, ...] = ()
    content_hash: str | None = None

    def iter_substeps(self) -> Iterator[Substep]:
        """Yield every substep in document order."""
        for step in self.steps:
            yield from step.substeps

    def addresses(self) -> list[SubstepAddress]:
        """Return substep addresses in document order (duplicates kept)."""
        return [substep.address for substep in self.iter_substeps()]

    def get_substep(self, address: SubstepAddress) -> Substep | None:
        """Return the first substep with ``address``, or None."""
        return next((s for s in self.iter_substeps() if s.address == address), None)

    def get_step(self, index: int) -> Step | None:
        """Return the first step numbered ``index``, or None."""
        return next((s for s in self.steps if s.index == index), None)
