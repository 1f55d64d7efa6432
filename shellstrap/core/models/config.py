"""
BootstrapConfig — every tunable of an install run in one validated model.

Defaults reproduce a stock install. The loader layers a YAML file and
environment variables on top (see ``core.config.loader``).
"""

from __future__ import annotations

import getpass
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_INSTALL_VERSION = "1.0.2"

DEFAULT_CACHE_DIRS = [
    "uv",
    "pip",
    "huggingface",
    "torch",
    "npm",
    "yarn",
    "go-build",
    "go/mod",
]

DEFAULT_DATA_DIRS = [
    ".local/share/uv",
    ".conda",
    ".triton",
]


def _default_user() -> str:
    try:
        return getpass.getuser()
    except Exception:
        return "user"


class PinnedVersions(BaseModel):
    """Versions of the third-party components fetched by the steps."""

    nvm: str = "v0.40.4"
    p10k: str = "v1.20.0"
    zsh_autosuggestions: str = "v0.7.1"
    zsh_syntax_highlighting: str = "0.8.0"


class BootstrapConfig(BaseModel):
    """Root configuration model."""

    install_version: str = DEFAULT_INSTALL_VERSION
    home: Path = Field(default_factory=Path.home)
    user: str = Field(default_factory=_default_user)

    timezone: str = "Asia/Singapore"

    # Heavy caches are relinked under <shared_local_base>/...
    shared_local_base: Path | None = None
    cache_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_CACHE_DIRS))
    data_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_DATA_DIRS))

    versions: PinnedVersions = Field(default_factory=PinnedVersions)

    # Opaque payloads installed verbatim
    p10k_config_path: str | None = None
    p10k_config_url: str | None = None
    tmux_local_config_path: str | None = None
    tmux_local_config_url: str | None = None

    zsh_custom: Path | None = None

    @field_validator("cache_dirs", "data_dirs")
    @classmethod
    def _relative_only(cls, value: list[str]) -> list[str]:
        for entry in value:
            if entry.startswith("/") or ".." in Path(entry).parts:
                raise ValueError(f"must be a relative path without '..': {entry}")
        return value

    # ── Derived paths ──────────────────────────────────────────────

    @property
    def state_dir(self) -> Path:
        return self.home / ".config" / "shell"

    @property
    def common_file(self) -> Path:
        return self.state_dir / "common.sh"

    @property
    def version_file(self) -> Path:
        return self.state_dir / "install-version"

    @property
    def audit_file(self) -> Path:
        return self.state_dir / "install-audit.ndjson"

    @property
    def lock_file(self) -> Path:
        return self.state_dir / ".install.lock"

    @property
    def shared_base(self) -> Path:
        return self.shared_local_base or Path("/local") / self.user

    @property
    def omz_dir(self) -> Path:
        return self.home / ".oh-my-zsh"

    @property
    def zsh_custom_dir(self) -> Path:
        return self.zsh_custom or self.omz_dir / "custom"

    @property
    def tmux_local_config(self) -> Path:
        return self.home / ".config" / "tmux" / "tmux.conf.local"

    def cache_links(self) -> list[tuple[Path, Path]]:
        """All (original, shared target) pairs to relink."""
        base = self.shared_base
        pairs = [
            (self.home / ".cache" / d, base / ".cache" / d) for d in self.cache_dirs
        ]
        pairs.extend((self.home / d, base / d) for d in self.data_dirs)
        return pairs

    def managed_files(self) -> list[Path]:
        """Shell config files whose line endings are normalised."""
        return [
            self.home / ".bashrc",
            self.home / ".bash_profile",
            self.home / ".profile",
            self.home / ".zshrc",
            self.home / ".p10k.zsh",
            self.common_file,
            self.tmux_local_config,
        ]

    def managed_repos(self) -> list[Path]:
        """Git checkouts sourced by zsh."""
        custom = self.zsh_custom_dir
        return [
            self.omz_dir,
            custom / "themes" / "powerlevel10k",
            custom / "plugins" / "zsh-autosuggestions",
            custom / "plugins" / "zsh-syntax-highlighting",
        ]
