"""
Status use case — installed version, current version, last run.
"""

from __future__ import annotations

from dataclasses import dataclass

from shellstrap.core.models.config import BootstrapConfig
from shellstrap.core.persistence.audit import AuditEntry, AuditWriter
from shellstrap.core.persistence.install_state import InstallStateTracker


@dataclass
class StatusResult:
    installed_version: str | None = None
    current_version: str = ""
    last_run: AuditEntry | None = None

    @property
    def up_to_date(self) -> bool:
        return self.installed_version == self.current_version

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "installed_version": self.installed_version,
            "current_version": self.current_version,
            "up_to_date": self.up_to_date,
            "last_run": self.last_run.model_dump(mode="json") if self.last_run else None,
        }


def get_status(config: BootstrapConfig) -> StatusResult:
    recent = AuditWriter(config.audit_file).read_recent(1)
    return StatusResult(
        installed_version=InstallStateTracker(config.version_file).installed_version(),
        current_version=config.install_version,
        last_run=recent[-1] if recent else None,
    )
