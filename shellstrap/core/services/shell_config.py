"""
Shell config steps — startup files shared by bash and zsh.

Layout after a run:

    ~/.bash_profile, ~/.profile   source ~/.bashrc
    ~/.bashrc                     zsh-compat shim (top), sources common.sh,
                                  bash→zsh handoff block (bottom)
    ~/.config/shell/common.sh     PATH, nvm, TZ, uv venv wrapper
"""

from __future__ import annotations

import logging

from shellstrap.core.engine.executor import StepContext
from shellstrap.core.errors import RecoverableStepFailure
from shellstrap.core.models.receipt import Receipt
from shellstrap.core.mutation.text import append_block_once, append_line_once, create_file_once
from shellstrap.core.services.handoff import ensure_bashrc_handoff, ensure_bashrc_shim
from shellstrap.core.services.venv_wrapper import UV_ALIASES_MARKER, render_uv_aliases_block

logger = logging.getLogger(__name__)

COMMON_SH_TEMPLATE = """\
# Shared shell config sourced by both bash and zsh.

# user local bins (uv installs here by default)
export PATH="$HOME/.local/bin:$PATH"

# nvm (installed by this script)
export NVM_DIR="$HOME/.nvm"
if [ -s "$NVM_DIR/nvm.sh" ]; then
  # shellcheck disable=SC1090
  . "$NVM_DIR/nvm.sh"
fi
"""

SOURCE_BASHRC_LINE = "[[ -f ~/.bashrc ]] && . ~/.bashrc"
SOURCE_COMMON_LINE = "[[ -f ~/.config/shell/common.sh ]] && . ~/.config/shell/common.sh"
TIMEZONE_COMMENT = "# -- timezone config --"


def setup_shared_shell_config(ctx: StepContext) -> Receipt:
    cfg = ctx.config
    home = cfg.home
    created = create_file_once(cfg.common_file, COMMON_SH_TEMPLATE)
    if created.changed:
        logger.info("Creating shared shell config: %s", cfg.common_file)
    else:
        logger.info("Shared shell config exists: %s (leaving as-is)", cfg.common_file)

    outcomes = [
        append_line_once(home / ".bash_profile", SOURCE_BASHRC_LINE),
        append_line_once(home / ".profile", SOURCE_BASHRC_LINE),
        append_line_once(home / ".bashrc", SOURCE_COMMON_LINE),
    ]
    logger.info("Configured bash to source ~/.config/shell/common.sh")
    changed = sum(o.changed for o in [created, *outcomes])
    return Receipt.success("shared-shell-config", f"{changed} file(s) updated")


def add_bashrc_compat_shim(ctx: StepContext) -> Receipt:
    outcome = ensure_bashrc_shim(ctx.config.home / ".bashrc")
    return Receipt.success("bashrc-compat-shim", outcome.value)


def set_timezone(ctx: StepContext) -> Receipt:
    common = ctx.config.common_file
    export_line = f'export TZ="{ctx.config.timezone}"'
    append_line_once(common, TIMEZONE_COMMENT)
    outcome = append_line_once(common, export_line)
    logger.info("Timezone set: %s", export_line)
    return Receipt.success("timezone", outcome.value, metadata={"timezone": ctx.config.timezone})


def setup_git_credential_store(ctx: StepContext) -> Receipt:
    git = ctx.tools.git
    if not git.is_available():
        raise RecoverableStepFailure("git not available; cannot set credential.helper")
    if "store" in git.config_get("credential.helper", scope="--global"):
        logger.info("git credential.helper already set to store.")
        return Receipt.success("git-credential-store", "already set")
    git.config_set("credential.helper", "store", scope="--global")
    logger.info("git credential.helper set to store.")
    return Receipt.success("git-credential-store", "set")


def setup_uv_aliases(ctx: StepContext) -> Receipt:
    cfg = ctx.config
    venv_base = cfg.shared_local_base / ".uv_venv" if cfg.shared_local_base else None
    outcome = append_block_once(cfg.common_file, UV_ALIASES_MARKER, render_uv_aliases_block(venv_base))
    return Receipt.success("uv-aliases", outcome.value)


def enable_bash_to_zsh_handoff(ctx: StepContext) -> Receipt:
    outcome = ensure_bashrc_handoff(ctx.config.home / ".bashrc")
    if not outcome.changed:
        logger.info("bash->zsh handoff already configured.")
    return Receipt.success("bash-to-zsh-handoff", outcome.value)
