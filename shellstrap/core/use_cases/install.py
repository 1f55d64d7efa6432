"""
Install use case — the top-level orchestrator.

    lock → version decision → preflight → steps → commit → audit

The version token is committed only when no step raised a fatal
precondition, after every step has finished; only the audit entry is
written after it. Every run that gets past the version decision leaves
one entry in the audit ledger.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from shellstrap.adapters import Toolbox
from shellstrap.core.engine.executor import (
    ExecutionReport,
    Step,
    StepContext,
    execute_steps,
    generate_operation_id,
)
from shellstrap.core.models.config import BootstrapConfig
from shellstrap.core.models.state import RunDecision
from shellstrap.core.persistence.audit import AuditEntry, AuditWriter
from shellstrap.core.persistence.install_state import InstallStateTracker
from shellstrap.core.reliability.run_lock import RunLock
from shellstrap.core.services.steps import install_steps

logger = logging.getLogger(__name__)

CHANGES_MADE = (
    "bash remains your login shell (no chsh / no password)",
    "interactive bash now execs into: zsh -l",
    "both bash and zsh source: ~/.config/shell/common.sh",
    "zsh also sources ~/.bashrc (guarded) so installers that edit bashrc still apply",
    "zsh adds tmux + JetBrains/JediTerm fix (guarded, no duplicates)",
)

NEXT_STEPS = (
    "Open a NEW terminal (or run: source ~/.bashrc)",
    "Verify: uv --version; node -v && npm -v; zsh --version; tmux -V (if installed)",
    "If you didn't provide a p10k config, run: p10k configure",
)


@dataclass
class InstallResult:
    """Result of one ``shellstrap install`` invocation."""

    version: str = ""
    decision: RunDecision | None = None
    report: ExecutionReport | None = None
    committed: bool = False
    duration_ms: int = 0

    @property
    def skipped(self) -> bool:
        return self.decision is not None and not self.decision.should_run

    @property
    def aborted(self) -> bool:
        return self.report is not None and self.report.aborted

    @property
    def exit_code(self) -> int:
        return 1 if self.aborted else 0

    def summary_lines(self) -> list[str]:
        """The end-of-run summary shown to the user."""
        if self.skipped or self.report is None:
            return []
        if self.aborted:
            return [
                f"Install aborted: {self.report.fatal_error}",
                f"Version {self.version} was not recorded; fix the problem and re-run.",
            ]
        lines = ["What changes were made:"]
        lines += [f"  - {c}" for c in CHANGES_MADE]
        failed = self.report.errors()
        if failed:
            lines += ["", "Steps that failed (re-run with --force after fixing):"]
            lines += [f"  - {e}" for e in failed]
        lines += ["", "Next steps:"]
        lines += [f"  {i}) {s}" for i, s in enumerate(NEXT_STEPS, 1)]
        return lines

    def to_dict(self) -> dict:
        result: dict = {
            "version": self.version,
            "decision": self.decision.kind if self.decision else None,
            "from_version": self.decision.from_version if self.decision else None,
            "committed": self.committed,
            "duration_ms": self.duration_ms,
        }
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def preflight(tools: Toolbox) -> None:
    """Best-effort install of git before any step needs it."""
    if not tools.git.is_available():
        tools.packages.try_install(["git"])


def run_install(
    config: BootstrapConfig,
    tools: Toolbox | None = None,
    force: bool = False,
    steps: list[Step] | None = None,
) -> InstallResult:
    """Bring the user environment to ``config.install_version``.

    Raises:
        FatalPrecondition: another install holds the run lock.
    """
    tools = tools or Toolbox()
    tracker = InstallStateTracker(config.version_file)
    result = InstallResult(version=config.install_version)
    start = time.monotonic()

    with RunLock(config.lock_file):
        decision = tracker.should_run(config.install_version, forced=force)
        result.decision = decision
        logger.info("%s", decision.describe())
        if not decision.should_run:
            return result

        logger.info("No-password setup: bash stays default; interactive terminals jump into zsh.")
        preflight(tools)

        operation_id = generate_operation_id()
        report = execute_steps(
            steps if steps is not None else install_steps(),
            StepContext(config=config, tools=tools),
            operation_id=operation_id,
        )
        result.report = report

        if report.aborted:
            logger.error("Install aborted; version %s not recorded.", config.install_version)
        else:
            tracker.commit(config.install_version)
            result.committed = True
            logger.info("Done. (version %s)", config.install_version)

        result.duration_ms = int((time.monotonic() - start) * 1000)
        _write_audit(config, result, force)

    return result


def _write_audit(config: BootstrapConfig, result: InstallResult, forced: bool) -> None:
    report = result.report
    decision = result.decision
    assert report is not None and decision is not None

    entry = AuditEntry(
        operation_id=report.operation_id,
        version=result.version,
        from_version=decision.from_version,
        decision=decision.kind,
        forced=forced,
        status=report.status,
        steps_total=report.total,
        steps_succeeded=report.succeeded,
        steps_failed=report.failed,
        steps_skipped=report.skipped,
        duration_ms=result.duration_ms,
        committed=result.committed,
        errors=report.errors(),
        context={"home": str(config.home)},
    )
    AuditWriter(config.audit_file).write(entry)
