"""Runbook CLI: parse, validate and track migration runbooks."""

import typer

from runbook import __version__

from .commands import (
    init,
    log,
    next_action,
    parse_cmd,
    session_app,
    status,
    step_app,
    validate_cmd,
)
from .logging import configure_logging
from .output import OutputContext, set_output_context


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"runbook {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="runbook",
    help="Parse, validate and track execution of migration runbooks",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v, -vv)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format for automation",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would change without writing anything",
    ),
) -> None:
    """Runbook CLI - migration runbook tracking."""
    console = configure_logging(
        verbosity=verbose,
        quiet=quiet,
        no_color=no_color,
        json_mode=json_output,
    )
    set_output_context(OutputContext(console=console, json_mode=json_output, dry_run=dry_run))


app.command()(init)
app.command("parse")(parse_cmd)
app.command("validate")(validate_cmd)
app.command()(status)
app.command("next")(next_action)
app.command()(log)
app.add_typer(session_app, name="session")
app.add_typer(step_app, name="step")


def run() -> None:
    """Entry point for the ``runbook`` console script."""
    app()
