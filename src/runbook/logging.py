"""Logging setup for the runbook CLI.

Log records and human-readable output share one stderr console, so that
``--json`` output on stdout stays machine-readable.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "runbook"


def resolve_level(verbosity: int = 0, quiet: bool = False, json_mode: bool = False) -> int:
    """Pick the package log level for the given CLI flags.

    ``--quiet`` and ``--json`` win over ``-v``.
    """
    if quiet or json_mode:
        return logging.WARNING
    if verbosity >= 1:
        return logging.DEBUG
    return logging.INFO


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    json_mode: bool = False,
) -> Console:
    """Install a RichHandler for the ``runbook`` package logger.

    Args:
        verbosity: Number of -v flags (1 for debug, 2+ also shows time and source path)
        quiet: Only warnings and errors
        no_color: Disable colored output
        json_mode: Keep informational logs out of scripted runs

    Returns:
        The stderr console, shared with OutputContext
    """
    console = Console(stderr=True, force_terminal=not no_color, no_color=no_color)
    handler = RichHandler(
        console=console,
        show_time=verbosity >= 2,
        show_path=verbosity >= 2,
        markup=False,
    )

    # Third-party loggers stay at WARNING; only our package follows the flags.
    logging.basicConfig(level=logging.WARNING, format="%(message)s", handlers=[handler], force=True)
    logging.getLogger(PACKAGE_LOGGER).setLevel(resolve_level(verbosity, quiet, json_mode))

    return console
