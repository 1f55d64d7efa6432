"""
System package adapter — best-effort installs without a password.

macOS uses Homebrew. Elsewhere apt, dnf or pacman are used only when
``sudo -n`` works (passwordless sudo). Every failure is a warning: the
steps that need a package check for the binary afterwards and decide
for themselves whether its absence is fatal.
"""

from __future__ import annotations

import logging
import platform

from shellstrap.adapters.base import Adapter
from shellstrap.adapters.shell.command import CommandRunner

logger = logging.getLogger(__name__)

_LINUX_MANAGERS = (
    ("apt-get", [["apt-get", "update", "-y"]], ["apt-get", "install", "-y"]),
    ("dnf", [], ["dnf", "install", "-y"]),
    ("pacman", [], ["pacman", "-Sy", "--noconfirm"]),
)


class SystemPackages(Adapter):
    """Install OS packages when it can be done without a password."""

    def __init__(self, runner: CommandRunner | None = None, system: str | None = None):
        self._runner = runner or CommandRunner()
        self._system = system or platform.system()

    @property
    def name(self) -> str:
        return "packages"

    def is_available(self) -> bool:
        if self._system == "Darwin":
            return self._runner.which("brew") is not None
        return self.has_passwordless_sudo() and any(
            self._runner.which(mgr) for mgr, _, _ in _LINUX_MANAGERS
        )

    def has_passwordless_sudo(self) -> bool:
        if self._runner.which("sudo") is None:
            return False
        return self._runner.run(["sudo", "-n", "true"], capture=True).ok

    def try_install(self, packages: list[str]) -> bool:
        """Install ``packages``; True on success. Never raises."""
        if self._system == "Darwin":
            if self._runner.which("brew") is None:
                logger.warning("Homebrew not found. Skipping system package installs.")
                return False
            logger.info("brew detected. Installing: %s", " ".join(packages))
            result = self._runner.run(["brew", "install", *packages], capture=True)
            if not result.ok:
                logger.warning("brew install failed (continuing).")
            return result.ok

        if not self.has_passwordless_sudo():
            logger.warning("No passwordless sudo. Skipping system package installs.")
            return False

        for mgr, prepare, install in _LINUX_MANAGERS:
            if self._runner.which(mgr) is None:
                continue
            logger.info("Installing via %s (passwordless sudo): %s", mgr, " ".join(packages))
            for cmd in prepare:
                self._runner.run(["sudo", "-n", *cmd], capture=True)
            result = self._runner.run(["sudo", "-n", *install, *packages], capture=True)
            if not result.ok:
                logger.warning("%s install failed (continuing).", mgr)
            return result.ok

        logger.warning("No supported package manager detected (apt/dnf/pacman).")
        return False

    def ensure_command(self, command: str, package: str | None = None) -> bool:
        """Make ``command`` resolvable, installing ``package`` if needed."""
        if self._runner.which(command):
            return True
        self.try_install([package or command])
        return self._runner.which(command) is not None
