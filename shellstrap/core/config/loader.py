"""
Configuration loader — defaults, then YAML, then environment.

Precedence (later wins):
    1. BootstrapConfig defaults
    2. YAML file: --config, $SHELLSTRAP_CONFIG, or ~/.config/shellstrap/config.yml
    3. Environment variables (see ENV_OVERRIDES)

The payload variables (P10K_CONFIG_PATH, TMUX_LOCAL_CONFIG_URL, ...) keep
the names earlier shell-based installs used, so existing setups carry over.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from shellstrap.core.models.config import BootstrapConfig

logger = logging.getLogger(__name__)

CONFIG_ENV = "SHELLSTRAP_CONFIG"
CONFIG_RELPATH = Path(".config") / "shellstrap" / "config.yml"

ENV_OVERRIDES = {
    "SHELLSTRAP_HOME": "home",
    "SHELLSTRAP_TIMEZONE": "timezone",
    "SHELLSTRAP_SHARED_BASE": "shared_local_base",
    "P10K_CONFIG_PATH": "p10k_config_path",
    "P10K_CONFIG_URL": "p10k_config_url",
    "TMUX_LOCAL_CONFIG_PATH": "tmux_local_config_path",
    "TMUX_LOCAL_CONFIG_URL": "tmux_local_config_url",
    "ZSH_CUSTOM": "zsh_custom",
}


class ConfigError(Exception):
    """Raised when the configuration file is invalid."""


def find_config_file(
    explicit: Path | None = None,
    environ: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> Path | None:
    """Locate the YAML config file, if any.

    An explicit path that does not exist is an error; the implicit
    locations are optional.
    """
    env = os.environ if environ is None else environ
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    from_env = env.get(CONFIG_ENV)
    if from_env:
        candidate = Path(os.path.expanduser(from_env))
        if not candidate.is_file():
            raise ConfigError(f"Config file not found: {candidate} (from ${CONFIG_ENV})")
        return candidate

    candidate = (home or Path.home()) / CONFIG_RELPATH
    return candidate if candidate.is_file() else None


def _read_yaml(path: Path) -> dict[str, Any]:
    logger.debug("Loading config from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> BootstrapConfig:
    """Build the effective configuration.

    Raises:
        ConfigError: the file is unreadable or fails validation.
    """
    env = os.environ if environ is None else environ

    home_override = env.get("SHELLSTRAP_HOME")
    home = Path(os.path.expanduser(home_override)) if home_override else None

    data: dict[str, Any] = {}
    config_file = find_config_file(path, env, home)
    if config_file is not None:
        data.update(_read_yaml(config_file))

    for var, key in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[key] = os.path.expanduser(value)

    try:
        config = BootstrapConfig.model_validate(data)
    except ValidationError as e:
        source = config_file or "environment"
        raise ConfigError(f"Invalid configuration ({source}): {e}") from e

    logger.debug("Effective config: home=%s version=%s", config.home, config.install_version)
    return config
