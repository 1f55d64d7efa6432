"""
Tests for persistence — atomic writer, install version token, audit ledger.
"""

import json
import os
from pathlib import Path

import pytest

from shellstrap.core.persistence.atomic import atomic_write
from shellstrap.core.persistence.audit import AuditEntry, AuditWriter
from shellstrap.core.persistence.install_state import InstallStateTracker


class TestAtomicWrite:
    """Tests for atomic_write."""

    def test_writes_bytes_and_text(self, tmp_path: Path):
        atomic_write(tmp_path / "a", b"bytes")
        atomic_write(tmp_path / "b", "text ✓")
        assert (tmp_path / "a").read_bytes() == b"bytes"
        assert (tmp_path / "b").read_text(encoding="utf-8") == "text ✓"

    def test_creates_parent_directories(self, tmp_path: Path):
        path = tmp_path / "deep" / "nested" / "file"
        atomic_write(path, "x")
        assert path.read_text() == "x"

    def test_producer_streams_content(self, tmp_path: Path):
        def producer(f):
            for chunk in (b"one ", b"two"):
                f.write(chunk)

        atomic_write(tmp_path / "f", producer)
        assert (tmp_path / "f").read_bytes() == b"one two"

    def test_failing_producer_leaves_target_untouched(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(b"original")

        def producer(f):
            f.write(b"partial")
            raise ConnectionError("network dropped")

        with pytest.raises(ConnectionError):
            atomic_write(path, producer)
        assert path.read_bytes() == b"original"
        assert list(tmp_path.glob(".f.*.tmp")) == []

    def test_interrupt_cleans_temp(self, tmp_path: Path):
        path = tmp_path / "f"

        def producer(f):
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            atomic_write(path, producer)
        assert not path.exists()
        assert list(tmp_path.iterdir()) == []

    def test_explicit_mode(self, tmp_path: Path):
        path = tmp_path / "tmux.conf.local"
        atomic_write(path, "x", mode=0o644)
        assert (path.stat().st_mode & 0o777) == 0o644

    def test_keeps_existing_mode(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_text("old")
        path.chmod(0o640)
        atomic_write(path, "new")
        assert (path.stat().st_mode & 0o777) == 0o640

    def test_symlink_target_rewritten_link_kept(self, tmp_path: Path):
        real = tmp_path / "real"
        real.write_text("old")
        link = tmp_path / "link"
        link.symlink_to(real)
        written = atomic_write(link, "new")
        assert written == real.resolve()
        assert link.is_symlink()
        assert real.read_text() == "new"

    def test_unique_temp_names(self, tmp_path: Path, monkeypatch):
        seen = []
        real_replace = os.replace

        def spy(src, dst):
            seen.append(Path(src).name)
            real_replace(src, dst)

        monkeypatch.setattr(os, "replace", spy)
        atomic_write(tmp_path / "f", "1")
        atomic_write(tmp_path / "f", "2")
        assert len(set(seen)) == 2
        assert all(name.startswith(".f.") and name.endswith(".tmp") for name in seen)


class TestInstallStateTracker:
    """Tests for the install version token."""

    def test_fresh_when_absent(self, tmp_path: Path):
        tracker = InstallStateTracker(tmp_path / "install-version")
        decision = tracker.should_run("1.0.2")
        assert decision.kind == "fresh"
        assert decision.should_run

    def test_skip_after_commit(self, tmp_path: Path):
        tracker = InstallStateTracker(tmp_path / "state" / "install-version")
        tracker.commit("1.0.2")
        assert tracker.installed_version() == "1.0.2"
        assert tracker.should_run("1.0.2").kind == "skip"

    def test_forced_never_skips(self, tmp_path: Path):
        tracker = InstallStateTracker(tmp_path / "install-version")
        tracker.commit("1.0.2")
        decision = tracker.should_run("1.0.2", forced=True)
        assert decision.kind == "upgrade"
        assert decision.from_version == decision.to_version == "1.0.2"

    def test_upgrade_from_older(self, tmp_path: Path):
        tracker = InstallStateTracker(tmp_path / "install-version")
        tracker.commit("1.0.1")
        decision = tracker.should_run("1.0.2")
        assert (decision.kind, decision.from_version) == ("upgrade", "1.0.1")
        assert "Upgrading from 1.0.1 to 1.0.2" in decision.describe()

    def test_commit_has_no_trailing_newline(self, tmp_path: Path):
        path = tmp_path / "install-version"
        InstallStateTracker(path).commit("1.0.2")
        assert path.read_text() == "1.0.2"

    def test_token_with_whitespace_is_tolerated(self, tmp_path: Path):
        path = tmp_path / "install-version"
        path.write_text("1.0.2\n")
        assert InstallStateTracker(path).should_run("1.0.2").kind == "skip"

    def test_empty_token_is_fresh(self, tmp_path: Path):
        path = tmp_path / "install-version"
        path.write_text("")
        assert InstallStateTracker(path).should_run("1.0.2").kind == "fresh"


class TestAuditWriter:
    """Tests for the audit ledger."""

    def test_write_and_read(self, tmp_path: Path):
        path = tmp_path / "audit.ndjson"
        writer = AuditWriter(path)
        writer.write(AuditEntry(operation_id="install-1", version="1.0.2", status="ok"))
        writer.write(AuditEntry(operation_id="install-2", version="1.0.2", status="partial"))

        entries = writer.read_all()
        assert [e.operation_id for e in entries] == ["install-1", "install-2"]
        assert all(json.loads(line) for line in path.read_text().splitlines())

    def test_read_recent(self, tmp_path: Path):
        writer = AuditWriter(tmp_path / "audit.ndjson")
        for i in range(5):
            writer.write(AuditEntry(operation_id=f"op-{i}"))
        assert [e.operation_id for e in writer.read_recent(2)] == ["op-3", "op-4"]

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "audit.ndjson"
        writer = AuditWriter(path)
        writer.write(AuditEntry(operation_id="good"))
        with open(path, "a") as f:
            f.write("{not json\n")
        writer.write(AuditEntry(operation_id="also-good"))
        assert [e.operation_id for e in writer.read_all()] == ["good", "also-good"]

    def test_missing_ledger_is_empty(self, tmp_path: Path):
        assert AuditWriter(tmp_path / "none.ndjson").read_all() == []
