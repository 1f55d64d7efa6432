"""
uv venv wrapper — named virtualenvs under one base directory.

The wrapper adds a closed set of subcommands on top of ``uv`` and passes
everything else through untouched:

    activate NAME          source NAME/bin/activate
    deactivate             leave the active venv
    create NAME [PYTHON]   uv venv [--python PYTHON] BASE/NAME
    rm NAME                delete after confirmation
    env list | env path NAME
    <anything else>        command uv ...

It exists twice. ``render_uv_aliases_block`` gives the shell function for
common.sh (activate/deactivate can only work inside the user's shell).
``VenvWrapper`` is the same dispatch table in Python behind
``shellstrap uv``; its ``activate`` prints the script path to source.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from shellstrap.adapters.shell.command import CommandRunner
from shellstrap.core.models.regions import Marker

logger = logging.getLogger(__name__)

UV_ALIASES_MARKER = Marker.named("UV_VENV_ALIASES")


class VenvError(Exception):
    """Invalid venv name or a venv in the wrong state."""


def validate_name(name: str) -> str:
    """Reject names that would escape the base directory."""
    if not name or "/" in name or name in (".", "..") or name.startswith(".."):
        raise VenvError(f"Invalid venv name: {name}")
    return name


@dataclass(frozen=True)
class Subcommand:
    name: str
    handler: Callable[[list[str]], int]
    usage: str


class VenvWrapper:
    """Python rendition of the ``uv`` shell wrapper."""

    def __init__(
        self,
        base: Path,
        runner: CommandRunner | None = None,
        echo: Callable[[str], None] = print,
        confirm: Callable[[str], bool] | None = None,
    ):
        self._base = Path(base)
        self._runner = runner or CommandRunner()
        self._echo = echo
        self._confirm = confirm or (lambda prompt: False)
        self._table = {
            sub.name: sub
            for sub in (
                Subcommand("activate", self._activate, "uv activate <venv_name>"),
                Subcommand("deactivate", self._deactivate, "uv deactivate"),
                Subcommand("create", self._create, "uv create <venv_name> [python_version]"),
                Subcommand("rm", self._rm, "uv rm <venv_name>"),
                Subcommand("env", self._env, "uv env list | uv env path <venv_name>"),
            )
        }

    @property
    def base(self) -> Path:
        return self._base

    @property
    def subcommands(self) -> list[str]:
        return sorted(self._table)

    def dispatch(self, argv: list[str]) -> int:
        """Run one wrapper invocation; returns the exit status."""
        sub = self._table.get(argv[0]) if argv else None
        if sub is None:
            return self._passthrough(argv)
        try:
            return sub.handler(argv[1:])
        except VenvError as e:
            self._echo(str(e))
            return 1

    # ── Queries ─────────────────────────────────────────────────

    def list_envs(self) -> list[str]:
        if not self._base.is_dir():
            return []
        return sorted(
            p.name for p in self._base.iterdir() if (p / "bin" / "activate").is_file()
        )

    def venv_dir(self, name: str) -> Path:
        venv_dir = self._base / validate_name(name)
        if venv_dir.parent != self._base:
            raise VenvError(f"Invalid venv name: {name}")
        return venv_dir

    # ── Handlers ────────────────────────────────────────────────

    def _usage_with_envs(self, usage: str) -> int:
        self._echo(f"Usage: {usage}")
        self._echo("Available:")
        for name in self.list_envs():
            self._echo(f"  {name}")
        return 1

    def _activate(self, args: list[str]) -> int:
        if not args:
            return self._usage_with_envs(self._table["activate"].usage)
        script = self.venv_dir(args[0]) / "bin" / "activate"
        if not script.is_file():
            self._echo(f"No venv found: {script}")
            return 1
        self._echo(str(script))
        return 0

    def _deactivate(self, args: list[str]) -> int:
        self._echo("deactivate must run in your shell: use the uv function from common.sh")
        return 1

    def _create(self, args: list[str]) -> int:
        if not args:
            self._echo(f"Usage: {self._table['create'].usage}")
            return 1
        venv_dir = self.venv_dir(args[0])
        if venv_dir.is_dir():
            self._echo(f"Venv already exists: {venv_dir}")
            return 1
        self._base.mkdir(parents=True, exist_ok=True)
        cmd = ["uv", "venv"]
        if len(args) > 1 and args[1]:
            cmd += ["--python", args[1]]
        cmd.append(str(venv_dir))
        return self._runner.run(cmd).returncode

    def _rm(self, args: list[str]) -> int:
        if not args:
            return self._usage_with_envs(self._table["rm"].usage)
        venv_dir = self.venv_dir(args[0])
        if not venv_dir.is_dir():
            self._echo(f"No venv found: {venv_dir}")
            return 1
        if not self._confirm(f"Remove {venv_dir}?"):
            self._echo("Cancelled")
            return 0
        shutil.rmtree(venv_dir)
        self._echo(f"Removed {args[0]}")
        return 0

    def _env(self, args: list[str]) -> int:
        action = args[0] if args else ""
        if action == "list":
            envs = self.list_envs()
            if not self._base.is_dir():
                self._echo(f"(no venvs — {self._base} does not exist)")
                return 1
            for name in envs:
                self._echo(name)
            return 0
        if action == "path":
            if len(args) < 2:
                self._echo("Usage: uv env path <venv_name>")
                return 1
            venv_dir = self.venv_dir(args[1])
            if not venv_dir.is_dir():
                self._echo(f"No venv found: {venv_dir}")
                return 1
            self._echo(str(venv_dir))
            return 0
        return self._passthrough(["env", *args])

    def _passthrough(self, argv: list[str]) -> int:
        if self._runner.which("uv") is None:
            self._echo("uv is not installed")
            return 127
        return self._runner.run(["uv", *argv]).returncode


# ── Shell rendition ─────────────────────────────────────────────

_UV_ALIASES_TEMPLATE = r"""# ---- UV_VENV_ALIASES ----
# uv venv base directory
UV_VENV_BASE=@UV_VENV_BASE@

# Helper: list available uv venvs
_uv_env_list() {
  if [[ ! -d "$UV_VENV_BASE" ]]; then
    echo "(no venvs — $UV_VENV_BASE does not exist)"
    return 1
  fi
  for d in "$UV_VENV_BASE"/*/bin/activate; do
    [[ -f "$d" ]] && basename "$(dirname "$(dirname "$d")")"
  done
}

# Validate venv name: no path traversal
_uv_validate_name() {
  local name="$1"
  if [[ -z "$name" || "$name" == "." || "$name" == */* || "$name" == ..* ]]; then
    echo "Invalid venv name: $name"
    return 1
  fi
}

# Wrapper: intercept custom subcommands, pass the rest to real uv
uv() {
  case "${1:-}" in
    activate)
      local name="${2:-}"
      if [[ -z "$name" ]]; then
        echo "Usage: uv activate <venv_name>"
        echo "Available:"
        _uv_env_list 2>/dev/null | sed 's/^/  /'
        return 1
      fi
      _uv_validate_name "$name" || return 1
      local activate="${UV_VENV_BASE}/${name}/bin/activate"
      if [[ -f "$activate" ]]; then
        source "$activate"
      else
        echo "No venv found: $activate"
        return 1
      fi
      ;;
    deactivate)
      if typeset -f deactivate >/dev/null 2>&1; then
        deactivate
      else
        echo "No venv is currently active"
        return 1
      fi
      ;;
    create)
      local name="${2:-}"
      if [[ -z "$name" ]]; then
        echo "Usage: uv create <venv_name> [python_version]"
        return 1
      fi
      _uv_validate_name "$name" || return 1
      local venv_dir="${UV_VENV_BASE}/${name}"
      if [[ -d "$venv_dir" ]]; then
        echo "Venv already exists: $venv_dir"
        return 1
      fi
      mkdir -p "$UV_VENV_BASE"
      local py_flag=()
      [[ -n "${3:-}" ]] && py_flag=(--python "$3")
      command uv venv "${py_flag[@]}" "$venv_dir"
      ;;
    rm)
      local name="${2:-}"
      if [[ -z "$name" ]]; then
        echo "Usage: uv rm <venv_name>"
        echo "Available:"
        _uv_env_list 2>/dev/null | sed 's/^/  /'
        return 1
      fi
      _uv_validate_name "$name" || return 1
      local venv_dir="${UV_VENV_BASE}/${name}"
      if [[ ! -d "$venv_dir" ]]; then
        echo "No venv found: $venv_dir"
        return 1
      fi
      echo -n "Remove $venv_dir? [y/N] "
      read -r reply
      if [[ "$reply" =~ ^[Yy]$ ]]; then
        rm -rf "$venv_dir"
        echo "Removed $name"
      else
        echo "Cancelled"
      fi
      ;;
    env)
      case "${2:-}" in
        list) _uv_env_list ;;
        path)
          local name="${3:-}"
          if [[ -z "$name" ]]; then
            echo "Usage: uv env path <venv_name>"
            return 1
          fi
          _uv_validate_name "$name" || return 1
          local venv_dir="${UV_VENV_BASE}/${name}"
          if [[ -d "$venv_dir" ]]; then
            echo "$venv_dir"
          else
            echo "No venv found: $venv_dir"
            return 1
          fi
          ;;
        *) command uv "$@" ;;
      esac
      ;;
    *)
      command uv "$@"
      ;;
  esac
}

# Tab completion for custom uv subcommands
if [[ -n "${ZSH_VERSION:-}" ]]; then
  _uv_custom_complete() {
    case "${words[2]}" in
      activate|rm) compadd -- $(_uv_env_list 2>/dev/null) ;;
      env)
        case "${words[3]}" in
          path) compadd -- $(_uv_env_list 2>/dev/null) ;;
          *)    compadd -- list path ;;
        esac ;;
      *) return 1 ;;
    esac
  }
  compdef _uv_custom_complete uv
elif [[ -n "${BASH_VERSION:-}" ]]; then
  _uv_custom_complete() {
    local cur="${COMP_WORDS[COMP_CWORD]}"
    local sub="${COMP_WORDS[1]}"
    case "$sub" in
      activate|rm) COMPREPLY=($(compgen -W "$(_uv_env_list 2>/dev/null)" -- "$cur")) ;;
      env)
        if [[ "${COMP_WORDS[2]}" == "path" ]]; then
          COMPREPLY=($(compgen -W "$(_uv_env_list 2>/dev/null)" -- "$cur"))
        else
          COMPREPLY=($(compgen -W "list path" -- "$cur"))
        fi ;;
    esac
  }
  complete -F _uv_custom_complete uv
fi

# In zsh, `which` is a builtin that shows function bodies instead of binary
# paths. Wrap it so `which uv` prints the binary path like users expect.
if [[ -n "${ZSH_VERSION:-}" ]]; then
  which() {
    local arg
    for arg in "$@"; do
      if [[ "$(whence -w "$arg" 2>/dev/null)" == *function* ]]; then
        whence -p "$arg" 2>/dev/null || { echo "$arg not found"; return 1; }
      else
        builtin which "$arg"
      fi
    done
  }
fi
# ---- /UV_VENV_ALIASES ----
"""


def render_uv_aliases_block(venv_base: Path | None = None) -> str:
    """The wrapper function block; base defaults to /local/$USER/.uv_venv."""
    base = f'"{venv_base}"' if venv_base else '"/local/${USER}/.uv_venv"'
    return _UV_ALIASES_TEMPLATE.replace("@UV_VENV_BASE@", base)
