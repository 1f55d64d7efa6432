"""
Error taxonomy — what can go wrong during a bootstrap run.

Only two classes ever leave a step:

    FatalPrecondition       abort the run, exit non-zero, no version commit
    RecoverableStepFailure  the engine records a failed receipt and moves on

``CorruptState`` and ``DataIntegrityRisk`` are raised and handled close to
where they happen (repair, or abort a single link).  "Nothing to replace"
is not an error at all: see ``MutationOutcome.NOT_FOUND``.
"""

from __future__ import annotations


class BootstrapError(Exception):
    """Base class for every error raised by shellstrap."""


class FatalPrecondition(BootstrapError):
    """A capability the run cannot proceed without is missing."""


class RecoverableStepFailure(BootstrapError):
    """A non-essential step failed; the run continues."""


class CorruptState(BootstrapError):
    """A component directory exists but its sentinel file is missing."""

    def __init__(self, directory: str, sentinel: str):
        super().__init__(f"{directory} exists but sentinel {sentinel} is missing")
        self.directory = directory
        self.sentinel = sentinel


class DataIntegrityRisk(BootstrapError):
    """A tree copy could not be verified; the source must not be deleted."""
