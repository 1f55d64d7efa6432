"""
Git adapter — the handful of git operations the bootstrapper needs.

Uses the git CLI through subprocess. Every method either returns the
command's stdout or raises ``GitError``; callers decide whether a
failure is fatal, a warning, or a repair trigger.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from shellstrap.adapters.base import Adapter

logger = logging.getLogger(__name__)


class GitError(RuntimeError):
    """A git command exited non-zero or could not be started."""


class GitAdapter(Adapter):
    """Git CLI wrapper."""

    def __init__(self, executable: str = "git", timeout: int = 300):
        self._executable = executable
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which(self._executable) is not None

    # ── Repository inspection ───────────────────────────────────

    @staticmethod
    def is_repository(path: Path) -> bool:
        """A ``.git`` directory or ``.git`` file (worktree) exists."""
        git_entry = Path(path) / ".git"
        return git_entry.is_dir() or git_entry.is_file()

    def is_healthy_clone(self, path: Path) -> bool:
        """HEAD resolves, i.e. the clone is intact."""
        try:
            self._git(["rev-parse", "HEAD"], cwd=path)
            return True
        except GitError:
            return False

    # ── Configuration ───────────────────────────────────────────

    def config_get(self, key: str, cwd: Path | None = None, scope: str = "--local") -> str:
        """Value of ``key`` in ``scope``, or "" if unset."""
        try:
            return self._git(["config", scope, key], cwd=cwd).strip()
        except GitError:
            return ""

    def config_set(self, key: str, value: str, cwd: Path | None = None, scope: str = "--local") -> None:
        self._git(["config", scope, key, value], cwd=cwd)

    # ── Working tree ────────────────────────────────────────────

    def clone(self, url: str, dest: Path, tag: str = "", depth: int = 1) -> None:
        """Shallow clone with line-ending translation disabled."""
        args = ["-c", "core.autocrlf=false", "clone", f"--depth={depth}"]
        if tag:
            args += ["--branch", tag]
        args += [url, str(dest)]
        self._git(args)

    def unstage_all(self, repo: Path) -> None:
        self._git(["rm", "--cached", "-r", "-q", "."], cwd=repo)

    def reset_hard(self, repo: Path, ref: str = "HEAD") -> None:
        self._git(["reset", "--hard", "-q", ref], cwd=repo)

    # ── Helpers ─────────────────────────────────────────────────

    def _git(self, args: list[str], cwd: Path | None = None) -> str:
        """Run a git command and return stdout."""
        logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
        sub = next((a for a in args if not a.startswith("-") and "=" not in a), args[0])
        try:
            result = subprocess.run(
                [self._executable, *args],
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise GitError(f"git {sub} failed: {e}") from e
        if result.returncode != 0:
            raise GitError(result.stderr.strip() or f"git {sub} failed")
        return result.stdout
