"""CLI command implementations for runbook.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .document import parse_cmd, validate_cmd
from .init import init
from .session import session_app
from .status import log, next_action, status
from .step import step_app

__all__ = [
    "init",
    "log",
    "next_action",
    "parse_cmd",
    "session_app",
    "status",
    "step_app",
    "validate_cmd",
]
