"""
Tool install steps — user-space installers with sentinel health checks.

Each component is verified by a sentinel file inside its install:

    oh-my-zsh   ~/.oh-my-zsh/oh-my-zsh.sh
    oh-my-tmux  ~/.config/tmux/tmux.conf  (legacy: ~/.tmux/.tmux.conf)
    nvm         ~/.nvm/nvm.sh             (must be non-empty)

A directory without its sentinel is a half-finished install: it is
deleted and installed again. Installer scripts are downloaded to a temp
file and run with bash.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from shellstrap.adapters.net.fetch import FetchError
from shellstrap.core.engine.executor import StepContext
from shellstrap.core.errors import CorruptState, FatalPrecondition, RecoverableStepFailure
from shellstrap.core.models.receipt import Receipt
from shellstrap.core.models.regions import Marker
from shellstrap.core.mutation.text import upsert_block

logger = logging.getLogger(__name__)

UV_INSTALL_URL = "https://astral.sh/uv/install.sh"
OMZ_INSTALL_URL = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
OH_MY_TMUX_INSTALL_URL = "https://github.com/gpakosz/.tmux/raw/refs/heads/master/install.sh"
NVM_INSTALL_URL = "https://raw.githubusercontent.com/nvm-sh/nvm/{version}/install.sh"

TMUX_SHELL_MARKER = Marker.named("TMUX_DEFAULT_SHELL")


# ── Sentinel health ─────────────────────────────────────────────


def verify_install(directory: Path, sentinels: Iterable[Path], nonempty: bool = False) -> bool:
    """True if any sentinel is present, False if nothing is installed.

    Raises:
        CorruptState: ``directory`` exists but no sentinel does.
    """
    sentinels = list(sentinels)
    for sentinel in sentinels:
        if sentinel.is_file() and (not nonempty or sentinel.stat().st_size > 0):
            return True
    if directory.exists():
        raise CorruptState(str(directory), " or ".join(str(s) for s in sentinels))
    return False


def needs_install(label: str, directory: Path, sentinels: Iterable[Path], nonempty: bool = False) -> bool:
    """Check health; remove a broken install so it can be redone."""
    try:
        if verify_install(directory, sentinels, nonempty=nonempty):
            logger.info("%s already installed.", label)
            return False
    except CorruptState as e:
        logger.warning("%s: %s. Re-installing.", label, e)
        shutil.rmtree(directory)
    return True


def _run_installer(ctx: StepContext, url: str, label: str, env: dict[str, str] | None = None) -> None:
    merged = {"HOME": str(ctx.config.home)}
    merged.update(env or {})
    try:
        result = ctx.tools.fetcher.fetch_and_run(url, env=merged)
    except FetchError as e:
        raise RecoverableStepFailure(f"cannot download {label} installer: {e}") from e
    if not result.ok:
        raise RecoverableStepFailure(f"{label} installer failed: {result.error}")


# ── Steps ───────────────────────────────────────────────────────


def install_uv(ctx: StepContext) -> Receipt:
    runner = ctx.tools.runner
    if runner.which("uv"):
        version = runner.run(["uv", "--version"], capture=True).stdout.strip()
        logger.info("uv already installed: %s", version)
        return Receipt.success("uv", version or "already installed")

    logger.info("Installing uv (user-space)")
    _run_installer(ctx, UV_INSTALL_URL, "uv")
    return Receipt.success("uv", "installed")


def ensure_zsh(ctx: StepContext) -> Receipt:
    tools = ctx.tools
    path = tools.runner.which("zsh")
    if path:
        logger.info("zsh found: %s", path)
        return Receipt.success("zsh", path)

    logger.warning("zsh not found. Trying to install without password...")
    if not tools.packages.ensure_command("zsh"):
        raise FatalPrecondition("zsh is required but couldn't be installed without admin rights.")
    return Receipt.success("zsh", tools.runner.which("zsh") or "installed")


def install_oh_my_zsh(ctx: StepContext) -> Receipt:
    omz_dir = ctx.config.omz_dir
    if not needs_install("Oh My Zsh", omz_dir, [omz_dir / "oh-my-zsh.sh"]):
        return Receipt.success("oh-my-zsh", "already installed")

    logger.info("Installing Oh My Zsh (unattended, no chsh)")
    _run_installer(
        ctx,
        OMZ_INSTALL_URL,
        "Oh My Zsh",
        env={"RUNZSH": "no", "CHSH": "no", "KEEP_ZSHRC": "yes", "ZSH": str(omz_dir)},
    )
    return Receipt.success("oh-my-zsh", "installed")


def install_oh_my_tmux(ctx: StepContext) -> Receipt:
    # Current installs keep their data under ~/.local/share and symlink
    # ~/.config/tmux/tmux.conf into it; older ones used ~/.tmux/.tmux.conf.
    home = ctx.config.home
    data_dir = home / ".local" / "share" / "tmux" / "oh-my-tmux"
    sentinels = [home / ".config" / "tmux" / "tmux.conf", home / ".tmux" / ".tmux.conf"]
    if not needs_install("oh-my-tmux", data_dir, sentinels):
        return Receipt.success("oh-my-tmux", "already installed")

    logger.info("Installing oh-my-tmux (official installer)")
    _run_installer(ctx, OH_MY_TMUX_INSTALL_URL, "oh-my-tmux")
    return Receipt.success("oh-my-tmux", "installed")


def render_tmux_shell_block(zsh_path: str) -> str:
    return f"""\
{TMUX_SHELL_MARKER.start}
# use zsh inside tmux (login shell may still be bash)
set -g default-shell "{zsh_path}"
set -g default-command "{zsh_path}"
{TMUX_SHELL_MARKER.end}
"""


def install_tmux_local_config(ctx: StepContext) -> Receipt:
    cfg = ctx.config
    tools = ctx.tools
    dest = cfg.tmux_local_config

    local = tools.fetcher.local_path(cfg.tmux_local_config_path) if cfg.tmux_local_config_path else None
    if local is not None and local.is_file():
        logger.info("Installing tmux local config from file")
        source = str(local)
    elif cfg.tmux_local_config_url:
        logger.info("Installing tmux local config from URL")
        source = cfg.tmux_local_config_url
    else:
        logger.info("No tmux local config provided; leaving default.")
        return Receipt.skip("tmux-local-config", "no tmux local config provided")

    try:
        tools.fetcher.fetch_to(source, dest, mode=0o644)
    except FetchError as e:
        raise RecoverableStepFailure(f"cannot install tmux local config: {e}") from e

    # Resolved now; a later zsh move refreshes the block on the next run.
    zsh_path = tools.runner.which("zsh") or "/bin/zsh"
    outcome = upsert_block(dest, TMUX_SHELL_MARKER, render_tmux_shell_block(zsh_path))

    if tools.runner.which("tmux"):
        tools.runner.run(["tmux", "source-file", str(dest)], capture=True)
    return Receipt.success("tmux-local-config", outcome.value, metadata={"dest": str(dest), "shell": zsh_path})


def install_nvm_and_node(ctx: StepContext) -> Receipt:
    cfg = ctx.config
    nvm_dir = cfg.home / ".nvm"
    sentinel = nvm_dir / "nvm.sh"

    if needs_install("nvm", nvm_dir, [sentinel], nonempty=True):
        _run_installer(
            ctx,
            NVM_INSTALL_URL.format(version=cfg.versions.nvm),
            "nvm",
            env={"NVM_DIR": str(nvm_dir)},
        )

    if not (sentinel.is_file() and sentinel.stat().st_size > 0):
        logger.warning("nvm not available in this session; open a new shell and run: nvm install --lts")
        return Receipt.skip("nvm-node", "nvm not loadable in this session")

    result = ctx.tools.runner.run_bash(
        f'export NVM_DIR="{nvm_dir}"; . "$NVM_DIR/nvm.sh" && '
        "nvm install --lts >/dev/null && { nvm alias default 'lts/*' >/dev/null || true; }",
        env={"HOME": str(cfg.home)},
    )
    if not result.ok:
        raise RecoverableStepFailure(f"nvm install --lts failed: {result.error}")
    return Receipt.success("nvm-node", "node lts installed")
