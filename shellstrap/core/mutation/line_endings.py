"""
CRLF normalisation for plain files and git checkouts.

On WSL with ``core.autocrlf=true`` a fresh clone gets ``\\r\\n`` line
endings and zsh chokes on the ``^M``. Two fixes, both safe to run on
every invocation on every platform:

    normalize(file)                       strip CR bytes in place
    fix_repository_line_ending_policy()   autocrlf=false + re-checkout

LF-only files and already-fixed repositories are left alone.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from shellstrap.adapters.vcs.git import GitAdapter, GitError
from shellstrap.core.models.state import MutationOutcome
from shellstrap.core.mutation.text import strip_carriage_returns

logger = logging.getLogger(__name__)

_AUTOCRLF = "core.autocrlf"


class RepoLineEndingResult(str, Enum):
    NOT_A_REPO = "not-a-repo"
    ALREADY_DISABLED = "already-disabled"
    FIXED = "fixed"
    FAILED = "failed"


def has_crlf_corruption(path: Path) -> bool:
    """True iff ``path`` contains at least one CR byte."""
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                if b"\r" in chunk:
                    return True
    except (FileNotFoundError, IsADirectoryError):
        return False
    return False


def normalize(path: Path, dry_run: bool = False) -> MutationOutcome:
    return strip_carriage_returns(path, dry_run=dry_run)


def repository_needs_fix(repo_dir: Path, git: GitAdapter) -> bool:
    """Whether fix_repository_line_ending_policy would do anything."""
    if not GitAdapter.is_repository(repo_dir):
        return False
    return git.config_get(_AUTOCRLF, cwd=repo_dir) != "false"


def fix_repository_line_ending_policy(repo_dir: Path, git: GitAdapter) -> RepoLineEndingResult:
    """Disable autocrlf in ``repo_dir`` and re-materialise tracked files.

    Unstaging everything and hard-resetting to HEAD rewrites every tracked
    file from the stored blobs, which undoes any CRLF translation done at
    checkout. Never raises: git failures are logged and reported as FAILED.
    """
    repo_dir = Path(repo_dir)
    if not GitAdapter.is_repository(repo_dir):
        return RepoLineEndingResult.NOT_A_REPO

    if git.config_get(_AUTOCRLF, cwd=repo_dir) == "false":
        return RepoLineEndingResult.ALREADY_DISABLED

    logger.info("Fixing CRLF line endings in %s", repo_dir)
    try:
        git.config_set(_AUTOCRLF, "false", cwd=repo_dir)
    except GitError as e:
        logger.warning("Cannot set %s in %s: %s", _AUTOCRLF, repo_dir, e)
        return RepoLineEndingResult.FAILED

    result = RepoLineEndingResult.FIXED
    for op, label in ((git.unstage_all, "unstage"), (git.reset_hard, "reset")):
        try:
            op(repo_dir)
        except GitError as e:
            logger.warning("git %s failed in %s (continuing): %s", label, repo_dir, e)
            result = RepoLineEndingResult.FAILED
    return result
