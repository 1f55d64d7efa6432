"""
Line-ending repair step.

On WSL with ``core.autocrlf=true`` cloned files get CRLF endings, which
break zsh init scripts (``^M`` errors). This step strips CR from every
managed shell file and turns autocrlf off in the repositories zsh sources.
LF-only files are never rewritten.
"""

from __future__ import annotations

import logging

from shellstrap.core.engine.executor import StepContext
from shellstrap.core.models.receipt import Receipt
from shellstrap.core.models.state import MutationOutcome
from shellstrap.core.mutation.line_endings import (
    RepoLineEndingResult,
    fix_repository_line_ending_policy,
    normalize,
)

logger = logging.getLogger(__name__)


def fix_line_endings(ctx: StepContext) -> Receipt:
    cfg = ctx.config
    logger.info("Ensuring LF line endings in shell configs and plugins (CRLF/WSL fix) ...")

    files = {str(path): normalize(path).value for path in cfg.managed_files()}

    repos = {}
    for repo in cfg.managed_repos():
        repos[str(repo)] = fix_repository_line_ending_policy(repo, ctx.tools.git).value

    metadata = {"files": files, "repos": repos}
    failed = [r for r, result in repos.items() if result == RepoLineEndingResult.FAILED.value]
    if failed:
        return Receipt.failure("line-endings", "autocrlf repair failed: " + ", ".join(failed), metadata=metadata)

    fixed = sum(1 for v in files.values() if v == MutationOutcome.APPLIED.value)
    fixed += sum(1 for v in repos.values() if v == RepoLineEndingResult.FIXED.value)
    return Receipt.success("line-endings", f"{fixed} fixed", metadata=metadata)
