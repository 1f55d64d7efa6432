"""
Install state — the last configuration version fully applied.

Stored as a bare version token (no newline) so older shell-based
installs and this tool read the same file. The token is committed only
by the install use case, after every step finished without a fatal
error, and always through the atomic writer.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shellstrap.core.models.state import RunDecision
from shellstrap.core.persistence.atomic import atomic_write

logger = logging.getLogger(__name__)


class InstallStateTracker:
    """Read, compare and commit the installed version token."""

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def installed_version(self) -> str | None:
        """The committed version, or None for a fresh machine."""
        try:
            token = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Cannot read %s: %s; treating as fresh install", self._path, e)
            return None
        return token or None

    def should_run(self, current_version: str, forced: bool = False) -> RunDecision:
        """Decide between skip, upgrade and fresh for ``current_version``."""
        installed = self.installed_version()
        if installed is None:
            return RunDecision(kind="fresh", to_version=current_version)
        if installed == current_version and not forced:
            return RunDecision(kind="skip", from_version=installed, to_version=current_version)
        return RunDecision(kind="upgrade", from_version=installed, to_version=current_version)

    def commit(self, version: str) -> None:
        """Record ``version`` as fully applied."""
        atomic_write(self._path, version)
        logger.debug("Committed install version %s to %s", version, self._path)
