"""
The install sequence, in execution order.
"""

from __future__ import annotations

from shellstrap.core.engine.executor import Step
from shellstrap.core.services import caches, crlf_repair, shell_config, tool_install, zsh_setup

INSTALL_STEPS: tuple[Step, ...] = (
    Step("shared-shell-config", shell_config.setup_shared_shell_config, "common.sh and bash startup files"),
    Step("bashrc-compat-shim", shell_config.add_bashrc_compat_shim, "guard bash-only builtins in ~/.bashrc"),
    Step("timezone", shell_config.set_timezone, "export TZ in common.sh"),
    Step("git-credential-store", shell_config.setup_git_credential_store, "git credential.helper=store"),
    Step("uv", tool_install.install_uv, "uv (user-space)"),
    Step("cache-symlinks", caches.ensure_cache_symlinks, "relink heavy caches to the shared volume"),
    Step("uv-aliases", shell_config.setup_uv_aliases, "uv venv wrapper in common.sh"),
    Step("zsh", tool_install.ensure_zsh, "zsh must be on PATH"),
    Step("oh-my-zsh", tool_install.install_oh_my_zsh, "Oh My Zsh"),
    Step("p10k-plugins", zsh_setup.install_p10k_and_plugins, "powerlevel10k, plugins, ~/.zshrc"),
    Step("oh-my-tmux", tool_install.install_oh_my_tmux, "oh-my-tmux"),
    Step("tmux-local-config", tool_install.install_tmux_local_config, "tmux.conf.local payload"),
    Step("nvm-node", tool_install.install_nvm_and_node, "nvm and node LTS"),
    Step("bash-to-zsh-handoff", shell_config.enable_bash_to_zsh_handoff, "exec zsh from interactive bash"),
    Step("line-endings", crlf_repair.fix_line_endings, "strip CRLF, disable autocrlf in clones"),
)


def install_steps() -> list[Step]:
    return list(INSTALL_STEPS)
