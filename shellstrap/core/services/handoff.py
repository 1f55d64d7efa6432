"""
Shell handoff — land interactive sessions in zsh without ``chsh``.

The login shell stays bash. Every interactive bash session re-evaluates
one transition:

    BashLogin ──(interactive ∧ zsh on PATH ∧ guard unset)──▶ TargetShell
                 action: set guard, exec zsh -l

The guard lives in the environment only, so it is inherited by the
whole process tree of one session and forgotten by the next login.
zsh in turn sources ~/.bashrc (so installers that only edit bashrc still
apply) under its own flag, which also blocks the transition.

Two renditions of the same state machine live here: the bash/zsh blocks
written into the startup files, and ``ShellHandoffController`` for the
``shellstrap handoff`` command.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from pathlib import Path

from shellstrap.core.models.regions import Marker
from shellstrap.core.models.state import MutationOutcome
from shellstrap.core.mutation.text import prepend_block_once, upsert_block

logger = logging.getLogger(__name__)

GUARD_VAR = "BASH_TO_ZSH_HANDOFF"
COMPAT_VAR = "ZSH_BASHRC_COMPAT"

HANDOFF_MARKER = Marker.named("BASH_TO_ZSH_HANDOFF")
ZSH_COMPAT_MARKER = Marker.named("ZSH_BASHRC_COMPAT")
BASHRC_SHIM_MARKER = Marker.named("BASHRC_ZSH_COMPAT_SHIM")


# ── Session state ───────────────────────────────────────────────


class HandoffSession:
    """The re-entrancy guard of one session, backed by an environment."""

    def __init__(
        self,
        environ: MutableMapping[str, str] | None = None,
        guard_var: str = GUARD_VAR,
    ):
        self._environ = os.environ if environ is None else environ
        self._guard_var = guard_var

    @property
    def environ(self) -> MutableMapping[str, str]:
        return self._environ

    @property
    def initialized(self) -> bool:
        return bool(self._environ.get(self._guard_var))

    def enter(self) -> bool:
        """Set the guard. True if this call did it, False if already set."""
        if self.initialized:
            return False
        self._environ[self._guard_var] = "1"
        return True


@dataclass(frozen=True)
class HandoffDecision:
    """Outcome of evaluating the transition."""

    action: str                  # handoff, stay
    reason: str = ""
    argv: tuple[str, ...] = ()

    @property
    def will_handoff(self) -> bool:
        return self.action == "handoff"


class ShellHandoffController:
    """Evaluate and perform the bash → target-shell transition."""

    def __init__(
        self,
        target_shell: str = "zsh",
        session: HandoffSession | None = None,
        resolver: Callable[[str], str | None] = shutil.which,
        exec_fn: Callable[..., object] = os.execvpe,
    ):
        self._target_shell = target_shell
        self._session = session or HandoffSession()
        self._resolver = resolver
        self._exec = exec_fn

    @property
    def session(self) -> HandoffSession:
        return self._session

    def evaluate(self, interactive: bool | None = None) -> HandoffDecision:
        if interactive is None:
            interactive = sys.stdin.isatty()
        if not interactive:
            return HandoffDecision("stay", "not an interactive session")
        if self._session.initialized:
            return HandoffDecision("stay", f"{GUARD_VAR} already set")
        if self._session.environ.get(COMPAT_VAR):
            return HandoffDecision("stay", f"sourced from {self._target_shell} ({COMPAT_VAR} set)")
        resolved = self._resolver(self._target_shell)
        if not resolved:
            return HandoffDecision("stay", f"{self._target_shell} not found on PATH")
        return HandoffDecision("handoff", argv=(resolved, "-l"))

    def handoff(self, interactive: bool | None = None) -> HandoffDecision:
        """Replace the current process with the target shell if due.

        Only returns when the decision is ``stay`` (or when ``exec_fn`` is
        a test double).
        """
        decision = self.evaluate(interactive)
        if not decision.will_handoff:
            logger.debug("No handoff: %s", decision.reason)
            return decision
        self._session.enter()
        logger.debug("Handing off to %s", " ".join(decision.argv))
        self._exec(decision.argv[0], list(decision.argv), dict(self._session.environ))
        return decision


# ── Startup-file blocks ─────────────────────────────────────────


def render_handoff_block(target_shell: str = "zsh") -> str:
    return f"""\
{HANDOFF_MARKER.start}
# Interactive bash sessions continue in {target_shell}; the login shell stays bash.
if [[ -z "${{{GUARD_VAR}:-}}" && -z "${{{COMPAT_VAR}:-}}" ]]; then
  case $- in
    *i*)
      if command -v {target_shell} >/dev/null 2>&1; then
        export {GUARD_VAR}=1
        exec {target_shell} -l
      fi
      ;;
  esac
fi
{HANDOFF_MARKER.end}
"""


ZSH_COMPAT_BLOCK = f"""\
{ZSH_COMPAT_MARKER.start}
# Some installers only append exports/PATH to ~/.bashrc. Keep zsh in sync.
if [[ -z "${{{COMPAT_VAR}:-}}" ]]; then
  export {COMPAT_VAR}=1
  [[ -f ~/.bashrc ]] && source ~/.bashrc
fi
{ZSH_COMPAT_MARKER.end}
"""

BASHRC_SHIM_BLOCK = f"""\
{BASHRC_SHIM_MARKER.start}
# This file is sometimes sourced by zsh for compatibility.
# Bash-only builtins (shopt/complete/bind/...) will error in zsh unless we guard them.
if [ -z "${{BASH_VERSION:-}}" ]; then
  shopt()    {{ :; }}
  complete() {{ :; }}
  bind()     {{ :; }}
fi
{BASHRC_SHIM_MARKER.end}
"""


def ensure_bashrc_handoff(bashrc: Path, target_shell: str = "zsh", dry_run: bool = False) -> MutationOutcome:
    outcome = upsert_block(bashrc, HANDOFF_MARKER, render_handoff_block(target_shell), dry_run=dry_run)
    if outcome.changed:
        logger.info("Configured bash to exec into %s for interactive terminals (no chsh)", target_shell)
    return outcome


def ensure_zshrc_compat(zshrc: Path, dry_run: bool = False) -> MutationOutcome:
    return upsert_block(zshrc, ZSH_COMPAT_MARKER, ZSH_COMPAT_BLOCK, dry_run=dry_run)


def ensure_bashrc_shim(bashrc: Path, dry_run: bool = False) -> MutationOutcome:
    """Guard bash-only builtins at the very top of ~/.bashrc."""
    outcome = prepend_block_once(bashrc, BASHRC_SHIM_MARKER, BASHRC_SHIM_BLOCK, dry_run=dry_run)
    if outcome.changed:
        logger.info("Added bashrc zsh-compat shim to avoid shopt/complete/bind errors in zsh")
    return outcome
