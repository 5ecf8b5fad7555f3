"""Shared test fixtures for runbook tests."""

import os
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from runbook.config import write_config_template
from runbook.core import ExecutionSession, parse_runbook
from runbook.models import Runbook

SAMPLE_RUNBOOK = """# Runbook: Migrate settings loader

Move configuration loading from the legacy INI reader to TOML.

## Summary of changes

- Replace the INI reader in **src/app/settings.py**
- Document the new configuration format

## Prerequisites

- Python 3.11 or newer
- Clean working tree

## Execution Steps

### Step 1: Analysis

Understand how settings are loaded today.

#### 1.1: [NO-CODE-CHANGE] Legacy Pattern Analysis

- Record every call site of the INI reader in **docs/settings-audit.md**

#### 1.2: Add TOML loader

- Create **src/app/toml_loader.py** with a load() function \\
  that returns a dict
- Add unit tests

### Step 2: Cutover

#### 2.1: Switch call sites

- Replace INI reader calls with the TOML loader

## Manual testing plan

- Start the app with a TOML config file
"""

TWO_STEP_RUNBOOK = """# Runbook: Two steps

## Execution Steps

### Step 1: First

#### 1.1: Do the first thing

- First action

### Step 2: Second

#### 2.1: Do the second thing

- Second action
"""


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 4, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def clock() -> FakeClock:
    """Create a deterministic clock."""
    return FakeClock()


@pytest.fixture
def sample_runbook_text() -> str:
    """Return a valid runbook in the standard heading layout."""
    return SAMPLE_RUNBOOK


@pytest.fixture
def sample_runbook() -> Runbook:
    """Return the parsed sample runbook."""
    runbook, _ = parse_runbook(SAMPLE_RUNBOOK)
    return runbook


@pytest.fixture
def two_step_runbook() -> Runbook:
    """Return a runbook with two steps of one substep each (1.1, 2.1)."""
    runbook, _ = parse_runbook(TWO_STEP_RUNBOOK)
    return runbook


@pytest.fixture
def session(sample_runbook: Runbook, clock: FakeClock) -> ExecutionSession:
    """Create a fresh session over the sample runbook."""
    return ExecutionSession(sample_runbook, session_id="test-session", clock=clock)


@pytest.fixture
def project_dir(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a project directory and change cwd to it for the test."""
    original_cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(original_cwd)


@pytest.fixture
def initialized_project(project_dir: Path) -> Path:
    """Create an initialized .runbook directory with the default config.

    Returns the project root path.
    """
    runbook_dir = project_dir / ".runbook"
    runbook_dir.mkdir()
    (runbook_dir / "sessions").mkdir()
    write_config_template(runbook_dir)
    return project_dir


@pytest.fixture
def runbook_file(initialized_project: Path) -> Path:
    """Write the sample runbook into the initialized project."""
    path = initialized_project / "migration.md"
    path.write_text(SAMPLE_RUNBOOK)
    return path
