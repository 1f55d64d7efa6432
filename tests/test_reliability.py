"""
Tests for reliability — the install run lock.
"""

from pathlib import Path

import pytest

from shellstrap.core.errors import FatalPrecondition
from shellstrap.core.reliability import run_lock
from shellstrap.core.reliability.run_lock import RunLock

pytestmark = pytest.mark.skipif(run_lock.fcntl is None, reason="needs fcntl")


class TestRunLock:
    def test_acquire_and_release(self, tmp_path: Path):
        path = tmp_path / "state" / ".install.lock"
        lock = RunLock(path)
        lock.acquire()
        assert lock.held
        assert path.read_text().isdigit()
        lock.release()
        assert not lock.held

    def test_context_manager(self, tmp_path: Path):
        with RunLock(tmp_path / ".install.lock") as lock:
            assert lock.held
        assert not lock.held

    def test_second_holder_aborts_after_backoff(self, tmp_path: Path, monkeypatch):
        sleeps: list[float] = []
        monkeypatch.setattr(run_lock.time, "sleep", sleeps.append)
        path = tmp_path / ".install.lock"

        with RunLock(path):
            with pytest.raises(FatalPrecondition, match="Another install is running"):
                RunLock(path, attempts=4, base_delay=0.1).acquire()

        assert sleeps == [0.1, 0.2, 0.4]

    def test_lock_reusable_after_release(self, tmp_path: Path):
        path = tmp_path / ".install.lock"
        with RunLock(path):
            pass
        with RunLock(path, attempts=1) as lock:
            assert lock.held

    def test_release_without_acquire_is_noop(self, tmp_path: Path):
        RunLock(tmp_path / ".install.lock").release()
