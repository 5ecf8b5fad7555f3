"""Read-only projections over runbooks and execution sessions.

These answer the questions a driving agent asks: what to do next, how far
along the session is, which steps are being done ahead of their
predecessors, and whether the runbook is fit to execute at all.
"""

from ..config import QueryConfig, SkippedPolicy
from ..models import ExecutionStatus, Progress, Runbook, Substep, SubstepAddress, Violation
from .tracker import ExecutionSession, derive_status
from .validator import validate


def _substeps_by_address(runbook: Runbook) -> dict[SubstepAddress, Substep]:
    substeps: dict[SubstepAddress, Substep] = {}
    for substep in runbook.iter_substeps():
        substeps.setdefault(substep.address, substep)
    return substeps


def next_actionable(
    session: ExecutionSession, config: QueryConfig | None = None
) -> SubstepAddress | None:
    """Return the first pending substep in document order.

    Documentation-only substeps are candidates unless
    ``config.skip_documentation_only`` is set.

    Args:
        session: Session to inspect
        config: Query configuration (defaults apply when omitted)

    Returns:
        Address of the recommended next substep, or None if nothing is pending
    """
    config = config or QueryConfig()
    statuses = session.statuses
    for substep in session.runbook.iter_substeps():
        if config.skip_documentation_only and substep.is_documentation_only:
            continue
        if statuses.get(substep.address) == ExecutionStatus.PENDING:
            return substep.address
    return None


def progress(session: ExecutionSession, config: QueryConfig | None = None) -> Progress:
    """Count substeps by status and compute percent complete.

    Documentation-only substeps are left out unless
    ``config.include_documentation_only`` is set. With the ``exclude``
    skipped policy, skipped substeps leave the denominator; with
    ``incomplete`` they count as not done.

    Args:
        session: Session to inspect
        config: Query configuration (defaults apply when omitted)

    Returns:
        Progress counts
    """
    config = config or QueryConfig()
    substeps = _substeps_by_address(session.runbook)
    counts = dict.fromkeys(ExecutionStatus, 0)
    for address, status in session.statuses.items():
        substep = substeps[address]
        if substep.is_documentation_only and not config.include_documentation_only:
            continue
        counts[status] += 1

    total = sum(counts.values())
    completed = counts[ExecutionStatus.COMPLETED]
    skipped = counts[ExecutionStatus.SKIPPED]
    if config.skipped_policy == SkippedPolicy.EXCLUDE:
        denominator = total - skipped
    else:
        denominator = total

    if denominator:
        percent = round(100.0 * completed / denominator, 2)
    else:
        # Nothing left to count: everything counted was skipped, or nothing counted
        percent = 100.0 if skipped else 0.0

    return Progress(
        total=total,
        completed=completed,
        skipped=skipped,
        failed=counts[ExecutionStatus.FAILED],
        pending=counts[ExecutionStatus.PENDING],
        in_progress=counts[ExecutionStatus.IN_PROGRESS],
        percent_complete=percent,
    )


def violations_summary(runbook: Runbook) -> list[Violation]:
    """Return the validator's error-severity violations for a runbook."""
    return [v for v in validate(runbook) if v.is_error]


def is_ready(runbook: Runbook) -> bool:
    """Return True if the runbook has no error-severity violations."""
    return not violations_summary(runbook)


def documentation_only(runbook: Runbook) -> list[SubstepAddress]:
    """Return addresses of all NO-CODE-CHANGE substeps in document order."""
    return [s.address for s in runbook.iter_substeps() if s.is_documentation_only]


def substeps_with_status(
    session: ExecutionSession, status: ExecutionStatus
) -> list[SubstepAddress]:
    """Return addresses currently in ``status``, in document order."""
    return [address for address, current in session.statuses.items() if current == status]


def unmet_prerequisites(session: ExecutionSession) -> list[int]:
    """Return indexes of steps with an earlier step not yet completed.

    Ordering is advisory: this only reports, it never blocks a transition.
    """
    statuses = session.statuses
    unmet: list[int] = []
    all_before_completed = True
    for step in session.runbook.steps:
        if not all_before_completed:
            unmet.append(step.index)
        step_status = derive_status(statuses[s.address] for s in step.substeps)
        if step_status != ExecutionStatus.COMPLETED:
            all_before_completed = False
    return unmet


def referenced_path_index(runbook: Runbook) -> dict[str, list[SubstepAddress]]:
    """Map each referenced path to the substeps that mention it."""
    index: dict[str, list[SubstepAddress]] = {}
    for substep in runbook.iter_substeps():
        for path in sorted(substep.referenced_paths):
            index.setdefault(path, []).append(substep.address)
    return dict(sorted(index.items()))
