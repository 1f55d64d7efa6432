"""
Tests for CRLF detection and repository line-ending repair.
"""

from __future__ import annotations

from pathlib import Path

from shellstrap.adapters.vcs.git import GitError
from shellstrap.core.models.state import MutationOutcome
from shellstrap.core.mutation.line_endings import (
    RepoLineEndingResult,
    fix_repository_line_ending_policy,
    has_crlf_corruption,
    normalize,
    repository_needs_fix,
)

from tests.fakes import FakeGit


def _repo(path: Path) -> Path:
    (path / ".git").mkdir(parents=True)
    return path


class TestHasCRLFCorruption:
    def test_detects_single_cr(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(b"ok\nbad\r\n")
        assert has_crlf_corruption(path)

    def test_clean_file(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(b"ok\n")
        assert not has_crlf_corruption(path)

    def test_missing_file(self, tmp_path: Path):
        assert not has_crlf_corruption(tmp_path / "missing")


class TestNormalize:
    def test_normalize_round_trip(self, tmp_path: Path):
        path = tmp_path / ".p10k.zsh"
        path.write_bytes(b"a\r\nb\r\n")
        assert normalize(path) is MutationOutcome.APPLIED
        assert not has_crlf_corruption(path)
        assert normalize(path) is MutationOutcome.UNCHANGED


class TestRepositoryPolicy:
    def test_not_a_repo(self, tmp_path: Path):
        assert fix_repository_line_ending_policy(tmp_path, FakeGit()) is RepoLineEndingResult.NOT_A_REPO

    def test_fixes_and_resets(self, tmp_path: Path):
        repo = _repo(tmp_path / "powerlevel10k")
        git = FakeGit()
        assert repository_needs_fix(repo, git)

        assert fix_repository_line_ending_policy(repo, git) is RepoLineEndingResult.FIXED
        assert git.config_get("core.autocrlf", cwd=repo) == "false"
        assert git.resets == [repo]
        assert not repository_needs_fix(repo, git)

    def test_already_disabled_is_noop(self, tmp_path: Path):
        repo = _repo(tmp_path / "plugin")
        git = FakeGit()
        git.config_set("core.autocrlf", "false", cwd=repo)
        assert fix_repository_line_ending_policy(repo, git) is RepoLineEndingResult.ALREADY_DISABLED
        assert git.resets == []

    def test_git_failure_reported_not_raised(self, tmp_path: Path):
        repo = _repo(tmp_path / "plugin")

        class BrokenGit(FakeGit):
            def reset_hard(self, repo, ref="HEAD"):
                raise GitError("index.lock exists")

        assert fix_repository_line_ending_policy(repo, BrokenGit()) is RepoLineEndingResult.FAILED
