"""Tests for logging setup."""

import logging

import pytest
from rich.logging import RichHandler

from runbook.logging import PACKAGE_LOGGER, configure_logging, resolve_level


@pytest.mark.unit
class TestResolveLevel:
    """Tests for resolve_level."""

    @pytest.mark.parametrize(
        ("verbosity", "quiet", "json_mode", "expected"),
        [
            (0, False, False, logging.INFO),
            (1, False, False, logging.DEBUG),
            (2, False, False, logging.DEBUG),
            (0, True, False, logging.WARNING),
            (2, True, False, logging.WARNING),
            (1, False, True, logging.WARNING),
        ],
    )
    def test_levels(self, verbosity: int, quiet: bool, json_mode: bool, expected: int) -> None:
        """Quiet and JSON modes win over verbosity."""
        assert resolve_level(verbosity, quiet, json_mode) == expected


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_installs_rich_handler(self) -> None:
        """The root logger gets a single RichHandler on the returned console."""
        console = configure_logging(verbosity=1, no_color=True)
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RichHandler)
        assert handlers[0].console is console
        assert console.stderr

    def test_package_level_follows_flags(self) -> None:
        """Only the package logger follows -v; the root stays at WARNING."""
        configure_logging(verbosity=1)
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

        configure_logging(json_mode=True)
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.WARNING
