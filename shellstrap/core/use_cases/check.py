"""
Check use case — report what an install would do, without doing it.

Read-only: takes no lock, writes nothing, runs no installer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shellstrap.adapters import Toolbox
from shellstrap.core.models.config import BootstrapConfig
from shellstrap.core.models.regions import Marker
from shellstrap.core.models.state import CacheLinkState
from shellstrap.core.mutation.line_endings import has_crlf_corruption, repository_needs_fix
from shellstrap.core.mutation.text import read_lines
from shellstrap.core.persistence.install_state import InstallStateTracker
from shellstrap.core.services.caches import cache_link_states
from shellstrap.core.services.handoff import BASHRC_SHIM_MARKER, HANDOFF_MARKER

logger = logging.getLogger(__name__)


@dataclass
class CheckItem:
    label: str
    ok: bool
    detail: str = ""


@dataclass
class CheckResult:
    """Everything ``install --check`` reports."""

    installed_version: str | None = None
    current_version: str = ""
    would_run: bool = True
    components: list[CheckItem] = field(default_factory=list)
    cache_links: list[CheckItem] = field(default_factory=list)
    line_endings: list[CheckItem] = field(default_factory=list)
    tools: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def missing(self) -> list[str]:
        return [c.label for c in self.components if not c.ok]

    @property
    def crlf_issues(self) -> bool:
        return any(not item.ok for item in self.line_endings)

    def to_dict(self) -> dict:
        def items(seq: list[CheckItem]) -> list[dict]:
            return [{"label": i.label, "ok": i.ok, "detail": i.detail} for i in seq]

        return {
            "installed_version": self.installed_version,
            "current_version": self.current_version,
            "would_run": self.would_run,
            "components": items(self.components),
            "cache_links": items(self.cache_links),
            "line_endings": items(self.line_endings),
            "tools": self.tools,
        }

    def render(self) -> list[str]:
        lines = [
            f"Installed version: {self.installed_version or 'none'}",
            f"Current version:   {self.current_version}",
            "",
        ]
        for item in self.components:
            status = "[OK]" if item.ok else "[MISSING — would install]"
            lines.append(f"  {item.label:<35} {status}")

        lines += ["", "  Cache symlinks:"]
        for item in self.cache_links:
            lines.append(f"    {item.label:<33} [{item.detail}]")

        lines += ["", "  CRLF line endings (WSL fix):"]
        for item in self.line_endings:
            lines.append(f"    {item.label:<33} [{item.detail}]")
        if not self.crlf_issues:
            lines.append("    (no CRLF issues detected)")

        lines += ["", "  Tools:"]
        for name, info in self.tools.items():
            lines.append(f"    {name:<33} [{'available' if info['available'] else 'unavailable'}]")
        return lines


def _short(path: Path, home: Path) -> str:
    try:
        return "~/" + str(path.relative_to(home))
    except ValueError:
        return str(path)


def _has_marker(path: Path, marker: Marker | str) -> bool:
    lines = read_lines(path) or []
    needle = marker.start if isinstance(marker, Marker) else marker
    return any(needle in line for line in lines)


def _component_checks(config: BootstrapConfig, tools: Toolbox) -> list[tuple[str, Callable[[], bool]]]:
    home = config.home
    custom = config.zsh_custom_dir
    which = tools.runner.which
    git = tools.git

    def credential_store() -> bool:
        return git.is_available() and "store" in git.config_get("credential.helper", scope="--global")

    return [
        ("git", lambda: git.is_available()),
        ("shared shell config", lambda: config.common_file.is_file()),
        ("bashrc zsh-compat shim", lambda: _has_marker(home / ".bashrc", BASHRC_SHIM_MARKER)),
        ("timezone", lambda: _has_marker(config.common_file, "export TZ=")),
        ("git credential store", credential_store),
        ("uv", lambda: which("uv") is not None),
        ("zsh", lambda: which("zsh") is not None),
        ("oh-my-zsh", lambda: (config.omz_dir / "oh-my-zsh.sh").is_file()),
        ("powerlevel10k", lambda: (custom / "themes" / "powerlevel10k").exists()),
        ("zsh-autosuggestions", lambda: (custom / "plugins" / "zsh-autosuggestions").exists()),
        ("zsh-syntax-highlighting", lambda: (custom / "plugins" / "zsh-syntax-highlighting").exists()),
        ("oh-my-tmux", lambda: (home / ".config" / "tmux" / "tmux.conf").is_file()
            or (home / ".tmux" / ".tmux.conf").is_file()),
        ("nvm", lambda: (home / ".nvm" / "nvm.sh").is_file()),
        ("bash-to-zsh handoff", lambda: _has_marker(home / ".bashrc", HANDOFF_MARKER)),
    ]


_LINK_DETAIL = {
    CacheLinkState.ABSENT: "absent",
    CacheLinkState.UNLINKED_WITH_DATA: "EXISTS — would migrate & link",
    CacheLinkState.BROKEN: "BROKEN — would relink",
}


def run_check(config: BootstrapConfig, tools: Toolbox | None = None, force: bool = False) -> CheckResult:
    """Inspect the environment and describe the install that would run."""
    tools = tools or Toolbox()
    home = config.home
    tracker = InstallStateTracker(config.version_file)
    decision = tracker.should_run(config.install_version, forced=force)

    result = CheckResult(
        installed_version=tracker.installed_version(),
        current_version=config.install_version,
        would_run=decision.should_run,
        tools=tools.status(),
    )

    for label, is_ok in _component_checks(config, tools):
        result.components.append(CheckItem(label, is_ok()))

    for original, _target, state in cache_link_states(config):
        if state is CacheLinkState.LINKED:
            detail = f"OK -> {original.readlink()}"
        else:
            detail = _LINK_DETAIL[state]
        result.cache_links.append(CheckItem(_short(original, home), state is CacheLinkState.LINKED, detail))

    for path in config.managed_files():
        if not path.is_file():
            continue
        dirty = has_crlf_corruption(path)
        result.line_endings.append(
            CheckItem(_short(path, home), not dirty, "HAS CRLF — would fix" if dirty else "OK")
        )
    for repo in config.managed_repos():
        if not repo.is_dir():
            continue
        needs_fix = repository_needs_fix(repo, tools.git)
        result.line_endings.append(
            CheckItem(_short(repo, home), not needs_fix, "autocrlf not fixed — would fix" if needs_fix else "OK")
        )

    logger.debug("Check: %d missing component(s)", len(result.missing))
    return result
