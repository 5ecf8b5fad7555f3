"""Tests for runbook configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from runbook.config import (
    QueryConfig,
    RunbookConfig,
    SkippedPolicy,
    load_config,
    write_config_template,
)
from runbook.constants import STALE_LOCK_SECONDS


def test_defaults():
    """Default configuration matches the documented conventions."""
    config = RunbookConfig()
    assert config.query.skip_documentation_only is False
    assert config.query.include_documentation_only is False
    assert config.query.skipped_policy == SkippedPolicy.EXCLUDE
    assert config.session.lock_stale_seconds == STALE_LOCK_SECONDS


def test_load_missing_config(tmp_path: Path):
    """Missing config.toml yields defaults."""
    assert load_config(tmp_path) == RunbookConfig()


def test_template_round_trip(tmp_path: Path):
    """The written template loads back as the defaults."""
    path = write_config_template(tmp_path)
    assert path == tmp_path / "config.toml"
    assert load_config(tmp_path) == RunbookConfig()


def test_load_custom_values(tmp_path: Path):
    """Values from config.toml override defaults."""
    (tmp_path / "config.toml").write_text(
        """[query]
skip_documentation_only = true
skipped_policy = "incomplete"

[session]
lock_stale_seconds = 60
"""
    )
    config = load_config(tmp_path)
    assert config.query.skip_documentation_only is True
    assert config.query.include_documentation_only is False
    assert config.query.skipped_policy == SkippedPolicy.INCOMPLETE
    assert config.session.lock_stale_seconds == 60


def test_partial_config_keeps_other_sections(tmp_path: Path):
    """Sections missing from the file keep their defaults."""
    (tmp_path / "config.toml").write_text("[session]\nlock_stale_seconds = 10\n")
    config = load_config(tmp_path)
    assert config.query == QueryConfig()


def test_invalid_policy_rejected(tmp_path: Path):
    """Unknown skipped policies fail validation."""
    (tmp_path / "config.toml").write_text('[query]\nskipped_policy = "sometimes"\n')
    with pytest.raises(ValidationError):
        load_config(tmp_path)


def test_invalid_stale_seconds_rejected():
    """Lock staleness must be positive."""
    with pytest.raises(ValidationError):
        RunbookConfig.model_validate({"session": {"lock_stale_seconds": 0}})
