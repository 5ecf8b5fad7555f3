"""CLI integration tests for runbook."""

import json
import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from runbook.cli import app
from runbook.core import (
    get_runbook_dir,
    get_session_dir,
    latest_open_session,
    list_sessions,
    load_session,
)
from runbook.models import ExecutionStatus, Lock

INVALID_RUNBOOK = "# Runbook: Broken\n\n### Step 1: A\n\n#### 1.2: Wrong number\n\n- x\n"


def invoke(runner: CliRunner, *args: str):
    """Invoke the CLI without color so output is plain text."""
    return runner.invoke(app, ["--no-color", *args])


def start_session(runner: CliRunner, runbook_file: Path) -> str:
    """Start a session on the sample runbook and return its ID."""
    result = invoke(runner, "session", "start", str(runbook_file))
    assert result.exit_code == 0, result.output
    record = latest_open_session(get_runbook_dir())
    assert record is not None
    return record.session_id


def current_status(address: str) -> ExecutionStatus:
    record = latest_open_session(get_runbook_dir())
    assert record is not None
    return load_session(get_runbook_dir(), record.session_id).status(address)


class TestVersionCommand:
    """Tests for --version flag."""

    def test_version_shows_version(self, runner: CliRunner) -> None:
        """--version should display version string."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "runbook" in result.output
        assert "0.1.0" in result.output

    def test_version_short_flag(self, runner: CliRunner) -> None:
        """-V should also display version."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert "runbook" in result.output


class TestHelpCommand:
    """Tests for --help flag."""

    def test_help_shows_commands(self, runner: CliRunner) -> None:
        """--help should list all available commands."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("init", "parse", "validate", "session", "step", "status", "next", "log"):
            assert command in result.output

    def test_no_args_shows_help(self, runner: CliRunner) -> None:
        """Running with no args should show help (exit code 2 for no_args_is_help)."""
        result = runner.invoke(app, [])
        assert result.exit_code == 2
        assert "Usage:" in result.output


@pytest.mark.cli
class TestInitCommand:
    """Tests for runbook init."""

    def test_init_creates_directory(self, runner: CliRunner, project_dir: Path) -> None:
        """init creates .runbook, sessions and config.toml."""
        result = invoke(runner, "init")
        assert result.exit_code == 0
        assert "Runbook initialized" in result.output
        assert (project_dir / ".runbook" / "sessions").is_dir()
        assert (project_dir / ".runbook" / "config.toml").is_file()

    def test_init_twice_keeps_config(self, runner: CliRunner, project_dir: Path) -> None:
        """Re-running init leaves an existing config alone."""
        invoke(runner, "init")
        config = project_dir / ".runbook" / "config.toml"
        config.write_text("[query]\nskip_documentation_only = true\n")
        result = invoke(runner, "init")
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert "skip_documentation_only = true" in config.read_text()

    def test_init_dry_run(self, runner: CliRunner, project_dir: Path) -> None:
        """--dry-run creates nothing."""
        result = invoke(runner, "--dry-run", "init")
        assert result.exit_code == 0
        assert "DRY RUN" in result.output
        assert not (project_dir / ".runbook").exists()


@pytest.mark.cli
class TestParseAndValidate:
    """Tests for runbook parse and runbook validate."""

    def test_parse_prints_tree(self, runner: CliRunner, runbook_file: Path) -> None:
        """parse shows steps and substeps."""
        result = invoke(runner, "parse", str(runbook_file))
        assert result.exit_code == 0
        assert "Legacy Pattern Analysis" in result.output
        assert "2 steps, 3 substeps" in result.output

    def test_parse_json(self, runner: CliRunner, runbook_file: Path) -> None:
        """parse --json emits the document model."""
        result = invoke(runner, "--json", "parse", str(runbook_file))
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["runbook"]["title"] == "Migrate settings loader"
        assert len(data["runbook"]["steps"]) == 2
        assert data["warnings"] == []

    def test_parse_missing_file(self, runner: CliRunner, project_dir: Path) -> None:
        """Missing files exit 1."""
        result = invoke(runner, "parse", "missing.md")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_validate_valid(self, runner: CliRunner, runbook_file: Path) -> None:
        """A valid runbook exits 0."""
        result = invoke(runner, "validate", str(runbook_file))
        assert result.exit_code == 0
        assert "Valid" in result.output

    def test_validate_invalid(self, runner: CliRunner, project_dir: Path) -> None:
        """Error-severity violations exit 1."""
        path = project_dir / "broken.md"
        path.write_text(INVALID_RUNBOOK)
        result = invoke(runner, "validate", str(path))
        assert result.exit_code == 1
        assert "Invalid: 1 error(s)" in result.output

    def test_validate_json(self, runner: CliRunner, project_dir: Path) -> None:
        """validate --json reports violations with codes."""
        path = project_dir / "broken.md"
        path.write_text(INVALID_RUNBOOK)
        result = invoke(runner, "--json", "validate", str(path))
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["valid"] is False
        codes = [v["code"] for v in data["violations"]]
        assert "substep-gap" in codes


@pytest.mark.cli
class TestSessionCommands:
    """Tests for runbook session subcommands."""

    def test_start_requires_init(self, runner: CliRunner, project_dir: Path) -> None:
        """Sessions need an initialized project."""
        (project_dir / "migration.md").write_text("# T\n")
        result = invoke(runner, "session", "start", "migration.md")
        assert result.exit_code == 1
        assert "not initialized" in result.output

    def test_start_and_list(self, runner: CliRunner, runbook_file: Path) -> None:
        """A started session appears in the listing."""
        session_id = start_session(runner, runbook_file)
        result = invoke(runner, "session", "list")
        assert result.exit_code == 0
        assert session_id in result.output
        assert "open" in result.output

    def test_start_refuses_invalid_runbook(
        self, runner: CliRunner, initialized_project: Path
    ) -> None:
        """Runbooks with errors need --force."""
        path = initialized_project / "broken.md"
        path.write_text(INVALID_RUNBOOK)

        result = invoke(runner, "session", "start", str(path))
        assert result.exit_code == 1
        assert "validation errors" in result.output
        assert list_sessions(get_runbook_dir()) == []

        result = invoke(runner, "session", "start", str(path), "--force")
        assert result.exit_code == 0
        assert len(list_sessions(get_runbook_dir())) == 1

    def test_start_dry_run(self, runner: CliRunner, runbook_file: Path) -> None:
        """--dry-run does not create a session."""
        result = invoke(runner, "--dry-run", "session", "start", str(runbook_file))
        assert result.exit_code == 0
        assert "DRY RUN" in result.output
        assert list_sessions(get_runbook_dir()) == []

    def test_list_empty(self, runner: CliRunner, initialized_project: Path) -> None:
        """Listing without sessions says so."""
        result = invoke(runner, "session", "list")
        assert result.exit_code == 0
        assert "No sessions found" in result.output

    def test_abandon_closes_session(self, runner: CliRunner, runbook_file: Path) -> None:
        """Abandoned sessions are no longer the default target."""
        session_id = start_session(runner, runbook_file)
        result = invoke(runner, "session", "abandon", session_id, "--note", "replaced")
        assert result.exit_code == 0
        assert "abandoned" in result.output

        result = invoke(runner, "step", "start", "1.1")
        assert result.exit_code == 1
        assert "No open sessions" in result.output

    def test_archive_requires_finished(self, runner: CliRunner, runbook_file: Path) -> None:
        """Archiving an unfinished session fails."""
        session_id = start_session(runner, runbook_file)
        result = invoke(runner, "session", "archive", session_id)
        assert result.exit_code == 1
        assert "Cannot archive" in result.output

    def test_archive_finished(self, runner: CliRunner, runbook_file: Path) -> None:
        """A finished session can be archived."""
        session_id = start_session(runner, runbook_file)
        for address in ("1.1", "1.2", "2.1"):
            assert invoke(runner, "step", "skip", address).exit_code == 0
        result = invoke(runner, "session", "archive", session_id)
        assert result.exit_code == 0
        assert "archived" in result.output

    def test_unknown_session(self, runner: CliRunner, initialized_project: Path) -> None:
        """Unknown session IDs exit 1."""
        result = invoke(runner, "session", "abandon", "no-such-session")
        assert result.exit_code == 1
        assert "not found" in result.output


@pytest.mark.cli
class TestStepCommands:
    """Tests for runbook step subcommands."""

    def test_start_and_complete(self, runner: CliRunner, runbook_file: Path) -> None:
        """Transitions are applied and persisted."""
        start_session(runner, runbook_file)

        result = invoke(runner, "step", "start", "1.2")
        assert result.exit_code == 0
        assert "1.2: pending -> in_progress" in result.output
        assert current_status("1.2") == ExecutionStatus.IN_PROGRESS

        result = invoke(runner, "step", "complete", "1.2", "--note", "done")
        assert result.exit_code == 0
        assert "in_progress -> completed" in result.output
        assert "Next:" in result.output
        assert current_status("1.2") == ExecutionStatus.COMPLETED

    def test_invalid_transition(self, runner: CliRunner, runbook_file: Path) -> None:
        """Completing a pending substep exits 1 and changes nothing."""
        start_session(runner, runbook_file)
        result = invoke(runner, "step", "complete", "1.1")
        assert result.exit_code == 1
        assert "Cannot complete" in result.output
        assert current_status("1.1") == ExecutionStatus.PENDING

    def test_fail_and_retry(self, runner: CliRunner, runbook_file: Path) -> None:
        """A failed substep can be started again."""
        start_session(runner, runbook_file)
        invoke(runner, "step", "start", "2.1")
        result = invoke(runner, "step", "fail", "2.1", "--note", "tests red")
        assert result.exit_code == 0
        assert current_status("2.1") == ExecutionStatus.FAILED

        result = invoke(runner, "step", "start", "2.1")
        assert result.exit_code == 0
        assert "failed -> in_progress" in result.output

    def test_fail_requires_note(self, runner: CliRunner, runbook_file: Path) -> None:
        """--note is mandatory for fail."""
        start_session(runner, runbook_file)
        invoke(runner, "step", "start", "2.1")
        result = invoke(runner, "step", "fail", "2.1")
        assert result.exit_code == 2

    def test_reopen(self, runner: CliRunner, runbook_file: Path) -> None:
        """reopen returns a skipped substep to pending."""
        start_session(runner, runbook_file)
        invoke(runner, "step", "skip", "1.1")
        result = invoke(runner, "step", "reopen", "1.1", "--note", "needed after all")
        assert result.exit_code == 0
        assert current_status("1.1") == ExecutionStatus.PENDING

    def test_unknown_and_malformed_address(self, runner: CliRunner, runbook_file: Path) -> None:
        """Bad addresses exit 1."""
        start_session(runner, runbook_file)
        result = invoke(runner, "step", "start", "9.9")
        assert result.exit_code == 1
        assert "not found" in result.output

        result = invoke(runner, "step", "start", "abc")
        assert result.exit_code == 1
        assert "Invalid substep address" in result.output

    def test_dry_run_does_not_save(self, runner: CliRunner, runbook_file: Path) -> None:
        """--dry-run reports the transition without persisting it."""
        start_session(runner, runbook_file)
        result = invoke(runner, "--dry-run", "step", "start", "1.2")
        assert result.exit_code == 0
        assert "DRY RUN" in result.output
        assert current_status("1.2") == ExecutionStatus.PENDING

    def test_explicit_session_option(self, runner: CliRunner, runbook_file: Path) -> None:
        """--session targets a specific session."""
        first = start_session(runner, runbook_file)
        start_session(runner, runbook_file)

        result = invoke(runner, "step", "skip", "2.1", "--session", first)
        assert result.exit_code == 0
        assert load_session(get_runbook_dir(), first).status("2.1") == ExecutionStatus.SKIPPED

    def test_show_prints_prompt(self, runner: CliRunner, runbook_file: Path) -> None:
        """show prints the substep prompt and status."""
        start_session(runner, runbook_file)
        result = invoke(runner, "step", "show", "1.1")
        assert result.exit_code == 0
        assert "Status: pending" in result.output
        assert "Runbook Task: 1.1" in result.output
        assert "NO-CODE-CHANGE" in result.output

    def test_locked_session_is_refused(self, runner: CliRunner, runbook_file: Path) -> None:
        """A transition on a session another command holds exits 1 and saves nothing."""
        session_id = start_session(runner, runbook_file)
        holder = Lock(pid=os.getpid(), session_id=session_id, command="step complete")
        lock_path = get_session_dir(get_runbook_dir(), session_id) / "session.lock"
        lock_path.write_text(holder.model_dump_json())

        result = invoke(runner, "step", "start", "1.2")
        assert result.exit_code == 1
        assert "in use" in result.output
        assert current_status("1.2") == ExecutionStatus.PENDING
        assert lock_path.exists()

    def test_corrupt_session_record(self, runner: CliRunner, runbook_file: Path) -> None:
        """A damaged session.json is reported as an error, not a traceback."""
        session_id = start_session(runner, runbook_file)
        record_path = get_session_dir(get_runbook_dir(), session_id) / "session.json"
        record_path.write_text("{truncated")

        result = invoke(runner, "step", "start", "1.2", "--session", session_id)
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "unreadable record" in result.output

    def test_requires_open_session(self, runner: CliRunner, initialized_project: Path) -> None:
        """Step commands need a session."""
        result = invoke(runner, "step", "start", "1.1")
        assert result.exit_code == 1
        assert "No open sessions" in result.output


@pytest.mark.cli
class TestStatusCommands:
    """Tests for runbook status, next and log."""

    def test_status_table(self, runner: CliRunner, runbook_file: Path) -> None:
        """status shows the session and progress."""
        session_id = start_session(runner, runbook_file)
        result = invoke(runner, "status")
        assert result.exit_code == 0
        assert session_id in result.output
        assert "Progress:" in result.output
        assert "Switch call sites" in result.output

    def test_status_json(self, runner: CliRunner, runbook_file: Path) -> None:
        """status --json reports statuses and progress."""
        start_session(runner, runbook_file)
        invoke(runner, "step", "start", "1.2")
        invoke(runner, "step", "complete", "1.2")

        result = invoke(runner, "--json", "status")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["substeps"] == {"1.1": "pending", "1.2": "completed", "2.1": "pending"}
        assert data["steps"] == {"1": "in_progress", "2": "pending"}
        assert data["progress"]["percent_complete"] == 50.0
        assert data["next"] == "1.1"
        assert data["ready"] is True

    def test_status_skipped_policy_option(self, runner: CliRunner, runbook_file: Path) -> None:
        """--skipped-policy overrides the configured convention."""
        start_session(runner, runbook_file)
        invoke(runner, "step", "start", "1.2")
        invoke(runner, "step", "complete", "1.2")
        invoke(runner, "step", "skip", "2.1")

        result = invoke(runner, "--json", "status")
        assert json.loads(result.stdout)["progress"]["percent_complete"] == 100.0

        result = invoke(runner, "--json", "status", "--skipped-policy", "incomplete")
        assert json.loads(result.stdout)["progress"]["percent_complete"] == 50.0

    def test_next(self, runner: CliRunner, runbook_file: Path) -> None:
        """next recommends the first pending substep."""
        start_session(runner, runbook_file)
        result = invoke(runner, "next")
        assert result.exit_code == 0
        assert "Next: 1.1" in result.output

    def test_next_respects_config(self, runner: CliRunner, runbook_file: Path) -> None:
        """skip_documentation_only in config.toml changes the recommendation."""
        start_session(runner, runbook_file)
        config = get_runbook_dir() / "config.toml"
        config.write_text("[query]\nskip_documentation_only = true\n")
        result = invoke(runner, "--json", "next")
        assert json.loads(result.stdout)["next"] == "1.2"

    def test_next_nothing_pending(self, runner: CliRunner, runbook_file: Path) -> None:
        """next says so when nothing is pending."""
        start_session(runner, runbook_file)
        for address in ("1.1", "1.2", "2.1"):
            invoke(runner, "step", "skip", address)
        result = invoke(runner, "next")
        assert result.exit_code == 0
        assert "Nothing pending" in result.output

    def test_log(self, runner: CliRunner, runbook_file: Path) -> None:
        """log lists transitions in order."""
        start_session(runner, runbook_file)
        result = invoke(runner, "log")
        assert "No transitions recorded" in result.output

        invoke(runner, "step", "start", "1.2")
        result = invoke(runner, "log")
        assert result.exit_code == 0
        assert "pending -> in_progress" in result.output

    def test_log_json(self, runner: CliRunner, runbook_file: Path) -> None:
        """log --json returns the event list."""
        start_session(runner, runbook_file)
        invoke(runner, "step", "skip", "2.1", "--note", "not needed")
        result = invoke(runner, "--json", "log")
        events = json.loads(result.stdout)["events"]
        assert len(events) == 1
        assert events[0]["sequence"] == 1
        assert events[0]["to_status"] == "skipped"
        assert events[0]["note"] == "not needed"
