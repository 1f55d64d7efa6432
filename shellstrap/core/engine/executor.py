"""
Engine executor — run install steps in a fixed order, collect receipts.

Flow:
    steps → run one at a time → receipt per step → report

Each step fully completes before the next begins. A step signals its
outcome by returning a Receipt; the engine additionally converts raised
exceptions:

    FatalPrecondition        failed receipt, stop the run (report.aborted)
    RecoverableStepFailure   failed receipt, warning, continue
    any other Exception      failed receipt, warning, continue
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from shellstrap.adapters import Toolbox
from shellstrap.core.errors import FatalPrecondition, RecoverableStepFailure
from shellstrap.core.models.config import BootstrapConfig
from shellstrap.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


@dataclass
class StepContext:
    """Everything a step needs: configuration and external tools."""

    config: BootstrapConfig
    tools: Toolbox


@dataclass(frozen=True)
class Step:
    """A named, idempotent unit of the install sequence."""

    name: str
    run: Callable[[StepContext], Receipt]
    description: str = ""


@dataclass
class ExecutionReport:
    """Result of executing a step sequence."""

    operation_id: str = ""
    receipts: list[Receipt] = field(default_factory=list)
    fatal_error: str | None = None

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.status == "skipped")

    @property
    def aborted(self) -> bool:
        return self.fatal_error is not None

    @property
    def status(self) -> str:
        if self.aborted:
            return "aborted"
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def errors(self) -> list[str]:
        return [f"{r.step}: {r.error}" for r in self.receipts if r.failed and r.error]

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "fatal_error": self.fatal_error,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


def _run_step(step: Step, ctx: StepContext) -> tuple[Receipt, bool]:
    """Run one step. Returns (receipt, fatal)."""
    start = time.monotonic()
    fatal = False
    try:
        receipt = step.run(ctx)
    except FatalPrecondition as e:
        logger.error("%s", e)
        receipt = Receipt.failure(step.name, str(e), metadata={"fatal": True})
        fatal = True
    except RecoverableStepFailure as e:
        logger.warning("%s (continuing)", e)
        receipt = Receipt.failure(step.name, str(e))
    except Exception as e:
        logger.warning("Step %s failed (continuing): %s", step.name, e)
        logger.debug("Step %s traceback", step.name, exc_info=True)
        receipt = Receipt.failure(step.name, f"{type(e).__name__}: {e}")

    receipt.duration_ms = int((time.monotonic() - start) * 1000)
    receipt.ended_at = datetime.now(UTC).isoformat()
    return receipt, fatal


def execute_steps(
    steps: list[Step],
    ctx: StepContext,
    operation_id: str = "",
) -> ExecutionReport:
    """Execute ``steps`` strictly in order, stopping only on a fatal error."""
    report = ExecutionReport(operation_id=operation_id or generate_operation_id())

    for step in steps:
        logger.debug("Step %s: %s", step.name, step.description)
        receipt, fatal = _run_step(step, ctx)
        report.receipts.append(receipt)

        status_marker = "✓" if receipt.ok else "✗" if receipt.failed else "⊘"
        logger.debug("%s %s → %s", status_marker, step.name, receipt.status)

        if fatal:
            report.fatal_error = receipt.error
            break

    return report


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"install-{now}-{short}"
