"""
Command adapter — run external programs and installer scripts.

Installers print their own progress, so by default their output goes
straight to the terminal; ``capture=True`` collects it instead. No
timeout is imposed: a hung installer is bounded by whoever runs us.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

from shellstrap.adapters.base import Adapter

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one external command."""

    command: list[str] = field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error(self) -> str:
        if self.ok:
            return ""
        return self.stderr.strip() or f"{self.command[0]} exited with code {self.returncode}"


class CommandRunner(Adapter):
    """Run commands, optionally through bash."""

    @property
    def name(self) -> str:
        return "command"

    def is_available(self) -> bool:
        return shutil.which("bash") is not None

    def which(self, command: str) -> str | None:
        return shutil.which(command)

    def run(
        self,
        command: list[str],
        env: dict[str, str] | None = None,
        cwd: Path | None = None,
        capture: bool = False,
        input_text: str | None = None,
    ) -> CommandResult:
        """Run ``command``; never raises for a non-zero exit."""
        merged_env = None
        if env:
            merged_env = os.environ.copy()
            merged_env.update(env)

        logger.debug("Executing: %s (cwd=%s)", " ".join(command), cwd)
        start = time.monotonic()
        try:
            proc = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=capture,
                text=True,
                input=input_text,
            )
        except OSError as e:
            return CommandResult(command=command, returncode=127, stderr=str(e))

        return CommandResult(
            command=command,
            returncode=proc.returncode,
            stdout=(proc.stdout or "") if capture else "",
            stderr=(proc.stderr or "") if capture else "",
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    def run_bash_script(
        self,
        script: Path,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        return self.run(["bash", str(script), *(args or [])], env=env)

    def run_bash(self, snippet: str, env: dict[str, str] | None = None, capture: bool = True) -> CommandResult:
        """Run a bash snippet (e.g. one that needs ``nvm`` sourced first)."""
        return self.run(["bash", "-c", snippet], env=env, capture=capture)
