"""
shellstrap — user-space shell environment bootstrapper.

Installs and idempotently configures zsh, Oh My Zsh, powerlevel10k,
oh-my-tmux, nvm and uv without administrative rights and without
changing the account's login shell.
"""

__version__ = "1.0.2"
