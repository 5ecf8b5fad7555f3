"""Parse and validate command implementations."""

from pathlib import Path

import typer
from rich.markup import escape
from rich.tree import Tree

from ..completions import complete_markdown_file
from ..core import has_errors, parse_runbook, validate
from ..models import Runbook
from ..output import get_output_context
from .common import read_runbook_file


def _build_tree(runbook: Runbook) -> Tree:
    tree = Tree(f"[bold]{escape(runbook.title) or '(untitled)'}[/bold]")
    for step in runbook.steps:
        branch = tree.add(f"[bold]Step {step.index}:[/bold] {escape(step.name)}")
        for substep in step.substeps:
            marker = " [cyan]\\[NO-CODE-CHANGE][/cyan]" if substep.is_documentation_only else ""
            node = branch.add(f"{substep.address}: {escape(substep.name)}{marker}")
            for item in substep.action_items:
                node.add(f"[dim]{escape(item)}[/dim]")
    return tree


def parse_cmd(
    file: Path = typer.Argument(
        ..., help="Runbook markdown file", autocompletion=complete_markdown_file
    ),
) -> None:
    """Parse a runbook and print its structure."""
    ctx = get_output_context()
    runbook, warnings = parse_runbook(read_runbook_file(ctx, file))

    if ctx.json_mode:
        ctx.print_json({"runbook": runbook, "warnings": warnings})
        return

    ctx.console.print(_build_tree(runbook))
    ctx.console.print(
        f"\n{len(runbook.steps)} steps, {len(runbook.addresses())} substeps, "
        f"{len(runbook.prerequisites)} prerequisites"
    )
    ctx.parse_warnings(warnings)


def validate_cmd(
    file: Path = typer.Argument(
        ..., help="Runbook markdown file", autocompletion=complete_markdown_file
    ),
) -> None:
    """Validate a runbook's structure. Exits 1 on any error."""
    ctx = get_output_context()
    runbook, warnings = parse_runbook(read_runbook_file(ctx, file))
    violations = validate(runbook)
    failed = has_errors(violations)

    if ctx.json_mode:
        ctx.print_json(
            {
                "valid": not failed,
                "violations": violations,
                "warnings": warnings,
            }
        )
    else:
        ctx.parse_warnings(warnings)
        ctx.violations(violations)
        if failed:
            errors = sum(1 for v in violations if v.is_error)
            ctx.console.print(f"\n[red]Invalid: {errors} error(s)[/red]")
        else:
            ctx.console.print("\n[green]Valid[/green]")

    if failed:
        raise typer.Exit(1)
