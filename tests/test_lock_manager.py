"""Tests for the per-session lock file."""

import os
import threading
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest import mock

import pytest

from runbook.core.lock_manager import (
    LockError,
    acquire_lock,
    is_stale_lock,
    read_lock,
    release_lock,
    session_lock,
)
from runbook.models import Lock

PID_CHECK = "runbook.core.lock_manager._is_pid_running"


@pytest.fixture
def session_dir(tmp_path: Path) -> Path:
    """Create temporary session directory."""
    d = tmp_path / "sessions" / "20260104-120000-test"
    d.mkdir(parents=True)
    return d


def write_foreign_lock(session_dir: Path, **overrides: object) -> Lock:
    lock = Lock(pid=99999, session_id="s1", command="step complete", **overrides)
    (session_dir / "session.lock").write_text(lock.model_dump_json())
    return lock


@pytest.mark.unit
class TestAcquireLock:
    """Tests for acquire_lock."""

    def test_publishes_complete_record(self, session_dir: Path) -> None:
        """The lock file holds the full record and no temp files remain."""
        lock = acquire_lock(session_dir, "s1", "step start")
        assert lock.pid == os.getpid()
        assert read_lock(session_dir) == lock
        assert [p.name for p in session_dir.iterdir()] == ["session.lock"]

    def test_live_holder_refuses(self, session_dir: Path) -> None:
        """A live foreign holder makes acquisition fail and keeps its lock."""
        held = write_foreign_lock(session_dir)
        with mock.patch(PID_CHECK, return_value=True), pytest.raises(LockError, match="in use"):
            acquire_lock(session_dir, "s1", "step start")
        assert read_lock(session_dir) == held

    def test_dead_holder_is_replaced(self, session_dir: Path) -> None:
        """A lock whose PID is gone is removed."""
        write_foreign_lock(session_dir)
        with mock.patch(PID_CHECK, return_value=False):
            lock = acquire_lock(session_dir, "s1", "step start")
        assert read_lock(session_dir) == lock

    def test_old_live_lock_is_replaced(self, session_dir: Path) -> None:
        """A live holder past the maximum age is treated as stale."""
        write_foreign_lock(session_dir, acquired_at=datetime.now(UTC) - timedelta(seconds=120))
        with mock.patch(PID_CHECK, return_value=True):
            lock = acquire_lock(session_dir, "s1", "step start", max_age_seconds=60)
        assert lock.pid == os.getpid()

    def test_recent_unreadable_lock_is_kept(self, session_dir: Path) -> None:
        """An empty, fresh lock file may be mid-write, so it is left alone."""
        lock_path = session_dir / "session.lock"
        lock_path.write_text("")
        with pytest.raises(LockError, match="unreadable"):
            acquire_lock(session_dir, "s1", "step start")
        assert lock_path.read_text() == ""

    def test_old_unreadable_lock_is_replaced(self, session_dir: Path) -> None:
        """A corrupt lock past the grace period is cleared."""
        lock_path = session_dir / "session.lock"
        lock_path.write_text("not valid json")
        old = time.time() - 60
        os.utime(lock_path, (old, old))
        lock = acquire_lock(session_dir, "s1", "step start")
        assert read_lock(session_dir) == lock

    def test_same_process_cannot_take_twice(self, session_dir: Path) -> None:
        """A second acquisition is refused even from the holder's own process."""
        acquire_lock(session_dir, "s1", "step start")
        with pytest.raises(LockError, match="in use"):
            acquire_lock(session_dir, "s1", "step complete")

    def test_racing_acquirers_get_one_winner(self, session_dir: Path) -> None:
        """Of several concurrent acquirers exactly one holds the lock."""
        barrier = threading.Barrier(8)
        winners: list[Lock] = []
        refused: list[LockError] = []
        results_lock = threading.Lock()

        def attempt() -> None:
            barrier.wait()
            try:
                lock = acquire_lock(session_dir, "s1", "step start")
            except LockError as e:
                with results_lock:
                    refused.append(e)
            else:
                with results_lock:
                    winners.append(lock)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert len(refused) == 7
        assert read_lock(session_dir) == winners[0]
        assert [p.name for p in session_dir.iterdir()] == ["session.lock"]


@pytest.mark.unit
class TestReleaseLock:
    """Tests for release_lock and session_lock."""

    def test_release_removes_own_lock(self, session_dir: Path) -> None:
        """Releasing the held lock removes the file."""
        lock = acquire_lock(session_dir, "s1", "step start")
        release_lock(session_dir, lock)
        assert not (session_dir / "session.lock").exists()

    def test_release_keeps_other_lock(self, session_dir: Path) -> None:
        """A lock taken by someone else is not removed."""
        write_foreign_lock(session_dir)
        mine = Lock(pid=os.getpid(), session_id="s1", command="step start")
        release_lock(session_dir, mine)
        assert (session_dir / "session.lock").exists()

    def test_release_without_lock_file(self, session_dir: Path) -> None:
        """Releasing when the file is gone is a no-op."""
        release_lock(session_dir, Lock(pid=os.getpid(), session_id="s1", command="x"))

    def test_context_manager(self, session_dir: Path) -> None:
        """The lock exists inside the block and is gone after it, even on error."""
        with pytest.raises(RuntimeError), session_lock(session_dir, "s1", "step start") as lock:
            assert read_lock(session_dir) == lock
            raise RuntimeError("boom")
        assert read_lock(session_dir) is None


@pytest.mark.unit
class TestIsStaleLock:
    """Tests for is_stale_lock."""

    def test_dead_pid(self) -> None:
        """A lock whose PID is gone is stale."""
        with mock.patch(PID_CHECK, return_value=False):
            assert is_stale_lock(Lock(pid=99999, session_id="s1", command="x"))

    def test_age(self) -> None:
        """A live holder is stale only past the maximum age."""
        fresh = Lock(pid=os.getpid(), session_id="s1", command="x")
        old = fresh.model_copy(
            update={"acquired_at": datetime.now(UTC) - timedelta(hours=2)}
        )
        assert not is_stale_lock(fresh, max_age_seconds=3600)
        assert is_stale_lock(old, max_age_seconds=3600)
