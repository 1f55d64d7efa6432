"""
State and outcome types shared by the mutation engine and the steps.

These are small value objects: what a mutation did, what state a cache
link is in, and whether an install run should proceed at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MutationOutcome(str, Enum):
    """What a TextMutator operation did to its file."""

    APPLIED = "applied"                  # file was written
    ALREADY_PRESENT = "already-present"  # line or marker found, nothing written
    NOT_FOUND = "not-found"              # nothing to replace / no such file
    UNCHANGED = "unchanged"              # file exists, no edit was needed

    @property
    def changed(self) -> bool:
        return self is MutationOutcome.APPLIED


class CacheLinkState(str, Enum):
    """Observed state of an (original, shared target) pair."""

    ABSENT = "absent"
    UNLINKED_WITH_DATA = "unlinked-with-data"
    LINKED = "linked"
    BROKEN = "broken"


@dataclass
class LinkResult:
    """Result of TreeLinker.ensure_linked."""

    original: str
    target: str
    action: str = ""          # already-linked, linked, migrated, skipped, planned
    files_copied: int = 0
    message: str = ""

    @property
    def skipped(self) -> bool:
        return self.action == "skipped"

    def to_dict(self) -> dict:
        return {
            "original": self.original,
            "target": self.target,
            "action": self.action,
            "files_copied": self.files_copied,
            "message": self.message,
        }


@dataclass(frozen=True)
class RunDecision:
    """Whether an install run should proceed.

    kind is one of ``skip``, ``upgrade`` or ``fresh``.
    """

    kind: str
    from_version: str | None = None
    to_version: str = ""

    @property
    def should_run(self) -> bool:
        return self.kind != "skip"

    def describe(self) -> str:
        if self.kind == "skip":
            return f"Already at version {self.to_version}. Use --force to re-run."
        if self.kind == "fresh":
            return f"Fresh install of version {self.to_version}"
        if self.from_version == self.to_version:
            return f"Re-running version {self.to_version} (forced)"
        return f"Upgrading from {self.from_version} to {self.to_version}"
