"""
Adapters — every external tool the install steps talk to.

``Toolbox`` bundles one instance of each so the step functions take a
single argument for all side effects outside the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shellstrap.adapters.net.fetch import Fetcher
from shellstrap.adapters.packages.system import SystemPackages
from shellstrap.adapters.shell.command import CommandRunner
from shellstrap.adapters.vcs.git import GitAdapter


@dataclass
class Toolbox:
    runner: CommandRunner = field(default_factory=CommandRunner)
    git: GitAdapter = field(default_factory=GitAdapter)
    fetcher: Fetcher | None = None
    packages: SystemPackages | None = None

    def __post_init__(self) -> None:
        if self.fetcher is None:
            self.fetcher = Fetcher(self.runner)
        if self.packages is None:
            self.packages = SystemPackages(self.runner)

    def status(self) -> dict[str, dict[str, Any]]:
        """Availability of every adapter."""
        result = {}
        for adapter in (self.runner, self.git, self.fetcher, self.packages):
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            result[adapter.name] = {
                "name": adapter.name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return result


__all__ = ["CommandRunner", "Fetcher", "GitAdapter", "SystemPackages", "Toolbox"]
