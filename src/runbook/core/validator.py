"""Structural validation of parsed runbooks.

Pure read-only pass: every check appends to a list of violations and the
runbook is never modified. Errors block a session from being ready;
warnings are informational.
"""

import logging
from collections import Counter

from ..models import Runbook, Severity, Step, Violation

logger = logging.getLogger(__name__)


def _error(code: str, location: str, message: str) -> Violation:
    return Violation(severity=Severity.ERROR, code=code, location=location, message=message)


def _warning(code: str, location: str, message: str) -> Violation:
    return Violation(severity=Severity.WARNING, code=code, location=location, message=message)


def _check_document(runbook: Runbook) -> list[Violation]:
    violations: list[Violation] = []
    if not runbook.title.strip():
        violations.append(_error("missing-title", "runbook", "Runbook has no title"))
    for section in runbook.unrecognized_sections:
        violations.append(
            _warning(
                "unrecognized-section",
                f"line {section.line}",
                f"Unrecognized section {section.heading!r}",
            )
        )
    if not runbook.summary:
        violations.append(_warning("empty-summary", "runbook", "Summary of changes is empty"))
    if not runbook.manual_testing_plan:
        violations.append(
            _warning("empty-testing-plan", "runbook", "Manual testing plan is empty")
        )
    return violations


def _check_step_numbering(runbook: Runbook) -> list[Violation]:
    violations: list[Violation] = []
    if not runbook.steps:
        violations.append(_error("no-steps", "runbook", "Runbook has no steps"))
        return violations

    expected = 1
    seen: set[int] = set()
    for step in runbook.steps:
        location = f"step {step.index}"
        if step.index in seen:
            violations.append(
                _error("duplicate-step", location, f"Step {step.index} appears more than once")
            )
            continue
        seen.add(step.index)
        if step.index != expected:
            violations.append(
                _error(
                    "step-gap",
                    location,
                    f"Step numbered {step.index} where step {expected} was expected",
                )
            )
        expected = step.index + 1
    return violations


def _check_step(step: Step) -> list[Violation]:
    """Check one step's substeps: presence, prefix, numbering, action items."""
    violations: list[Violation] = []
    location = f"step {step.index}"
    if not step.substeps:
        violations.append(_error("empty-step", location, f"Step {step.index} has no substeps"))
        return violations

    expected = 1
    seen: set[int] = set()
    for substep in step.substeps:
        address = substep.address
        sub_location = f"substep {address}"
        if address.step != step.index:
            violations.append(
                _error(
                    "substep-prefix-mismatch",
                    sub_location,
                    f"Substep {address} is numbered for step {address.step} "
                    f"but belongs to step {step.index}",
                )
            )
        # Duplicates are reported by the address check
        if address.substep not in seen:
            seen.add(address.substep)
            if address.substep != expected:
                violations.append(
                    _error(
                        "substep-gap",
                        sub_location,
                        f"Substep numbered {address} where "
                        f"{step.index}.{expected} was expected",
                    )
                )
            expected = address.substep + 1

        if not substep.is_documentation_only and not substep.action_items:
            violations.append(
                _warning(
                    "no-action-items",
                    sub_location,
                    f"Substep {address} has no action items",
                )
            )
    return violations


def _check_addresses(runbook: Runbook) -> list[Violation]:
    counts = Counter(runbook.addresses())
    return [
        _error(
            "duplicate-address",
            f"substep {address}",
            f"Substep address {address} is used {count} times",
        )
        for address, count in counts.items()
        if count > 1
    ]


def validate(runbook: Runbook) -> list[Violation]:
    """Validate a runbook's structure.

    Args:
        runbook: Parsed runbook (not modified)

    Returns:
        All violations found, in a stable order
    """
    violations = _check_document(runbook)
    violations.extend(_check_step_numbering(runbook))
    for step in runbook.steps:
        violations.extend(_check_step(step))
    violations.extend(_check_addresses(runbook))

    errors = sum(1 for v in violations if v.is_error)
    warnings = len(violations) - errors
    logger.debug(f"Validated {runbook.title!r}: {errors} errors, {warnings} warnings")
    return violations


def has_errors(violations: list[Violation]) -> bool:
    """Return True if any violation is error-severity."""
    return any(v.is_error for v in violations)
