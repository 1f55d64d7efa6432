"""
Powerlevel10k, zsh plugins and ~/.zshrc wiring.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from shellstrap.adapters.net.fetch import FetchError
from shellstrap.adapters.vcs.git import GitAdapter, GitError
from shellstrap.core.engine.executor import StepContext
from shellstrap.core.errors import FatalPrecondition
from shellstrap.core.models.config import BootstrapConfig
from shellstrap.core.models.receipt import Receipt
from shellstrap.core.models.regions import Marker
from shellstrap.core.mutation.text import append_block_once, append_line_once, create_file_once
from shellstrap.core.services.handoff import ensure_zshrc_compat

logger = logging.getLogger(__name__)

P10K_REPO = "https://github.com/romkatv/powerlevel10k.git"
AUTOSUGGESTIONS_REPO = "https://github.com/zsh-users/zsh-autosuggestions"
SYNTAX_HIGHLIGHTING_REPO = "https://github.com/zsh-users/zsh-syntax-highlighting.git"

ZSHRC_LINES = (
    "[[ -f ~/.config/shell/common.sh ]] && source ~/.config/shell/common.sh",
    'export ZSH="$HOME/.oh-my-zsh"',
    'ZSH_THEME="powerlevel10k/powerlevel10k"',
    "plugins=(git zsh-autosuggestions zsh-syntax-highlighting)",
    'source "$ZSH/oh-my-zsh.sh"',
)
P10K_SOURCE_LINE = "[[ -f ~/.p10k.zsh ]] && source ~/.p10k.zsh"

P10K_PLACEHOLDER = """\
# Minimal placeholder; replace with your own or run `p10k configure`
typeset -g POWERLEVEL9K_MODE=nerdfont-complete
"""

JEDITERM_MARKER = Marker.named("ZSH_TMUX_JEDITERM_FIX")
JEDITERM_BLOCK = f"""\
{JEDITERM_MARKER.start}
# tmux configuration - fix intellij terminal bug
if [[ -n "$TMUX" ]]; then
  tmux set -g status-position top 2>/dev/null

  # Fix JediTerm DA1 response leak (prints "6c" in prompt)
  # Only applies to IntelliJ/JediTerm terminal
  if [[ "$TERMINAL_EMULATOR" == "JetBrains-JediTerm" ]]; then
    while read -t 0.01 -k discard; do :; done
    clear
  fi
  # tmux set -g status-position bottom 2>/dev/null
fi
{JEDITERM_MARKER.end}
"""


def plugin_repos(config: BootstrapConfig) -> list[tuple[Path, str, str]]:
    """(checkout dir, remote, pinned tag) for the theme and each plugin."""
    custom = config.zsh_custom_dir
    v = config.versions
    return [
        (custom / "themes" / "powerlevel10k", P10K_REPO, v.p10k),
        (custom / "plugins" / "zsh-autosuggestions", AUTOSUGGESTIONS_REPO, v.zsh_autosuggestions),
        (custom / "plugins" / "zsh-syntax-highlighting", SYNTAX_HIGHLIGHTING_REPO, v.zsh_syntax_highlighting),
    ]


def ensure_clone(git: GitAdapter, dest: Path, url: str, tag: str = "") -> str:
    """Clone ``url`` at ``tag`` unless an intact clone is already there."""
    if dest.exists():
        if git.is_healthy_clone(dest):
            logger.info("Already cloned: %s", dest)
            return "already-cloned"
        logger.warning("Broken clone detected at %s; removing and re-cloning.", dest)
        shutil.rmtree(dest)
        action = "recloned"
    else:
        action = "cloned"
    git.clone(url, dest, tag=tag)
    return action


def install_p10k_config(ctx: StepContext) -> str:
    """Put ~/.p10k.zsh in place unless the user already has one."""
    cfg = ctx.config
    fetcher = ctx.tools.fetcher
    dest = cfg.home / ".p10k.zsh"

    if dest.exists():
        logger.info("p10k config already exists (~/.p10k.zsh); leaving as-is.")
        return "kept"

    local = fetcher.local_path(cfg.p10k_config_path) if cfg.p10k_config_path else None
    if local is not None and local.is_file():
        fetcher.fetch_to(str(local), dest)
        return "copied"
    if cfg.p10k_config_url:
        fetcher.fetch_to(cfg.p10k_config_url, dest)
        return "downloaded"
    create_file_once(dest, P10K_PLACEHOLDER)
    return "placeholder"


def install_p10k_and_plugins(ctx: StepContext) -> Receipt:
    cfg = ctx.config
    tools = ctx.tools

    if not tools.git.is_available():
        tools.packages.try_install(["git"])
        if not tools.git.is_available():
            raise FatalPrecondition("git not available; cannot install OMZ plugins/themes.")

    custom = cfg.zsh_custom_dir
    (custom / "plugins").mkdir(parents=True, exist_ok=True)
    (custom / "themes").mkdir(parents=True, exist_ok=True)

    clones: dict[str, str] = {}
    errors: list[str] = []
    for dest, url, tag in plugin_repos(cfg):
        try:
            clones[dest.name] = ensure_clone(tools.git, dest, url, tag)
        except GitError as e:
            logger.error("Clone failed for %s: %s", url, e)
            clones[dest.name] = "failed"
            errors.append(f"{dest.name}: {e}")

    zshrc = cfg.home / ".zshrc"
    for line in ZSHRC_LINES:
        append_line_once(zshrc, line)
    ensure_zshrc_compat(zshrc)

    try:
        p10k = install_p10k_config(ctx)
    except FetchError as e:
        logger.warning("Cannot install p10k config (continuing): %s", e)
        p10k = "failed"
        errors.append(f"p10k config: {e}")

    append_line_once(zshrc, P10K_SOURCE_LINE)
    append_block_once(zshrc, JEDITERM_MARKER, JEDITERM_BLOCK)

    metadata = {"clones": clones, "p10k_config": p10k}
    if errors:
        return Receipt.failure("p10k-plugins", "; ".join(errors), metadata=metadata)
    return Receipt.success("p10k-plugins", ", ".join(f"{k}: {v}" for k, v in clones.items()), metadata=metadata)
