"""Agent prompt generation for runbook substeps."""

from ..constants import NO_CODE_CHANGE_MARKER
from ..models import Runbook, SubstepAddress
from .tracker import AddressNotFound


def generate_substep_prompt(runbook: Runbook, address: SubstepAddress) -> str:
    """Generate the task prompt for one substep.

    Args:
        runbook: Parsed runbook
        address: Substep to render

    Returns:
        Formatted markdown prompt for the driving agent

    Raises:
        AddressNotFound: If the substep is not in the runbook
    """
    substep = runbook.get_substep(address)
    if substep is None:
        raise AddressNotFound(address)
    step = runbook.get_step(address.step)

    step_section = ""
    if step is not None:
        step_section = f"## Step {step.index}: {step.name}\n\n"
        if step.context:
            step_section += f"{step.context}\n\n"

    items = "\n".join(f"- {item}" for item in substep.action_items)
    paths = "\n".join(f"- {path}" for path in sorted(substep.referenced_paths))

    if substep.is_documentation_only:
        scope = f"""**{NO_CODE_CHANGE_MARKER}** this substep is documentation or planning only.
- Do not edit source code
- Record findings in the files named above"""
    else:
        scope = """- Only implement this substep
- Do not start later substeps or steps
- Keep changes minimal and focused"""

    return f"""# Runbook Task: {address}

Runbook: {runbook.title}

{step_section}### {address}: {substep.name}

{substep.description or ""}

## Action Items

{items if items else "- (no action items)"}

## Referenced Paths

{paths if paths else "- (none)"}

---

## Scope Boundary

{scope}
"""
