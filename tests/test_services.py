"""
Tests for the install steps, run against a fake home with recording tools.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from shellstrap.adapters import Toolbox
from shellstrap.core.engine.executor import StepContext
from shellstrap.core.errors import FatalPrecondition, RecoverableStepFailure
from shellstrap.core.models.config import BootstrapConfig
from shellstrap.core.services import caches, crlf_repair, shell_config, tool_install, zsh_setup
from shellstrap.core.services.handoff import BASHRC_SHIM_MARKER, HANDOFF_MARKER, ZSH_COMPAT_MARKER
from shellstrap.core.services.steps import install_steps
from shellstrap.core.services.venv_wrapper import UV_ALIASES_MARKER

from tests.fakes import FakeFetcher, FakeGit, FakePackages, FakeRunner


def _tools(runner: FakeRunner, git: FakeGit | None = None, provides: dict | None = None) -> Toolbox:
    return Toolbox(
        runner=runner,
        git=git or FakeGit(),
        fetcher=FakeFetcher(runner),
        packages=FakePackages(runner, provides),
    )


# ── Step list ────────────────────────────────────────────────────────


class TestInstallSteps:
    def test_order(self):
        names = [s.name for s in install_steps()]
        assert len(names) == 15
        assert names[0] == "shared-shell-config"
        assert names.index("zsh") < names.index("oh-my-zsh") < names.index("p10k-plugins")
        assert names.index("bash-to-zsh-handoff") == 13
        assert names[-1] == "line-endings"

    def test_unique_names(self):
        names = [s.name for s in install_steps()]
        assert len(set(names)) == len(names)


# ── Shell config ─────────────────────────────────────────────────────


class TestSharedShellConfig:
    def test_creates_and_wires(self, ctx, home: Path):
        receipt = shell_config.setup_shared_shell_config(ctx)
        assert receipt.ok
        assert receipt.output == "4 file(s) updated"
        assert (home / ".config" / "shell" / "common.sh").read_text() == shell_config.COMMON_SH_TEMPLATE
        assert shell_config.SOURCE_BASHRC_LINE in (home / ".bash_profile").read_text()
        assert shell_config.SOURCE_BASHRC_LINE in (home / ".profile").read_text()
        assert shell_config.SOURCE_COMMON_LINE in (home / ".bashrc").read_text()

    def test_idempotent(self, ctx, home: Path):
        shell_config.setup_shared_shell_config(ctx)
        before = (home / ".bashrc").read_text()
        receipt = shell_config.setup_shared_shell_config(ctx)
        assert receipt.output == "0 file(s) updated"
        assert (home / ".bashrc").read_text() == before

    def test_existing_common_kept(self, ctx, config: BootstrapConfig):
        config.common_file.parent.mkdir(parents=True)
        config.common_file.write_text("# mine\n")
        shell_config.setup_shared_shell_config(ctx)
        assert config.common_file.read_text() == "# mine\n"


class TestBashrcShim:
    def test_prepends_once(self, ctx, home: Path):
        (home / ".bashrc").write_text("shopt -s checkwinsize\n")
        assert shell_config.add_bashrc_compat_shim(ctx).output == "applied"
        assert shell_config.add_bashrc_compat_shim(ctx).output != "applied"
        text = (home / ".bashrc").read_text()
        assert text.startswith(BASHRC_SHIM_MARKER.start)
        assert text.count(BASHRC_SHIM_MARKER.start) == 1


class TestTimezone:
    def test_export_appended_once(self, ctx, config: BootstrapConfig):
        shell_config.set_timezone(ctx)
        receipt = shell_config.set_timezone(ctx)
        text = config.common_file.read_text()
        assert text.count('export TZ="Asia/Singapore"') == 1
        assert shell_config.TIMEZONE_COMMENT in text
        assert receipt.metadata == {"timezone": "Asia/Singapore"}

    def test_custom_timezone(self, home: Path, tools):
        cfg = BootstrapConfig(home=home, user="tester", timezone="UTC")
        shell_config.set_timezone(StepContext(cfg, tools))
        assert 'export TZ="UTC"' in cfg.common_file.read_text()


class TestGitCredentialStore:
    def test_sets_store(self, ctx, tools):
        assert shell_config.setup_git_credential_store(ctx).output == "set"
        assert tools.git.config[("--global", "credential.helper")] == "store"
        assert shell_config.setup_git_credential_store(ctx).output == "already set"

    def test_no_git(self, config):
        tools = _tools(FakeRunner(), git=FakeGit(available=False))
        with pytest.raises(RecoverableStepFailure):
            shell_config.setup_git_credential_store(StepContext(config, tools))


class TestUvAliases:
    def test_block_uses_shared_base(self, ctx, config: BootstrapConfig, shared_base: Path):
        assert shell_config.setup_uv_aliases(ctx).output == "applied"
        text = config.common_file.read_text()
        assert UV_ALIASES_MARKER.start in text
        assert f'UV_VENV_BASE="{shared_base / ".uv_venv"}"' in text
        assert shell_config.setup_uv_aliases(ctx).output == "already-present"


class TestHandoffStep:
    def test_appends_handoff_block(self, ctx, home: Path):
        assert shell_config.enable_bash_to_zsh_handoff(ctx).output == "applied"
        assert HANDOFF_MARKER.start in (home / ".bashrc").read_text()
        assert shell_config.enable_bash_to_zsh_handoff(ctx).output == "unchanged"


# ── Tools ────────────────────────────────────────────────────────────


class TestInstallUv:
    def test_already_installed(self, ctx, runner, tools):
        receipt = tool_install.install_uv(ctx)
        assert receipt.ok
        assert ["uv", "--version"] in runner.calls
        assert tools.fetcher.installers == []

    def test_runs_installer(self, config, home: Path):
        tools = _tools(FakeRunner())
        receipt = tool_install.install_uv(StepContext(config, tools))
        assert receipt.output == "installed"
        url, env = tools.fetcher.installers[0]
        assert url == tool_install.UV_INSTALL_URL
        assert env["HOME"] == str(home)

    def test_installer_failure_is_recoverable(self, config):
        tools = _tools(FakeRunner())
        tools.fetcher.installer_returncode = 1
        with pytest.raises(RecoverableStepFailure):
            tool_install.install_uv(StepContext(config, tools))


class TestEnsureZsh:
    def test_found(self, ctx):
        assert tool_install.ensure_zsh(ctx).output == "/usr/bin/zsh"

    def test_installed_via_packages(self, config):
        tools = _tools(FakeRunner(), provides={"zsh": "/usr/bin/zsh"})
        assert tool_install.ensure_zsh(StepContext(config, tools)).ok
        assert tools.packages.requested == [["zsh"]]

    def test_missing_is_fatal(self, config):
        tools = _tools(FakeRunner())
        with pytest.raises(FatalPrecondition, match="zsh is required"):
            tool_install.ensure_zsh(StepContext(config, tools))


class TestSentinels:
    def test_nothing_installed(self, tmp_path: Path):
        assert tool_install.verify_install(tmp_path / "x", [tmp_path / "x" / "s"]) is False

    def test_empty_sentinel_with_nonempty(self, tmp_path: Path):
        d = tmp_path / ".nvm"
        d.mkdir()
        (d / "nvm.sh").write_text("")
        assert tool_install.needs_install("nvm", d, [d / "nvm.sh"], nonempty=True)
        assert not d.exists()


class TestOhMyZsh:
    def test_already_installed(self, ctx, config, tools):
        config.omz_dir.mkdir()
        (config.omz_dir / "oh-my-zsh.sh").write_text("# omz\n")
        assert tool_install.install_oh_my_zsh(ctx).output == "already installed"
        assert tools.fetcher.installers == []

    def test_broken_dir_is_reinstalled(self, ctx, config, tools):
        config.omz_dir.mkdir()
        (config.omz_dir / "stale").write_text("x")

        def installer(env):
            assert not (config.omz_dir / "stale").exists()
            Path(env["ZSH"]).mkdir()
            (Path(env["ZSH"]) / "oh-my-zsh.sh").write_text("# omz\n")

        tools.fetcher.hooks[tool_install.OMZ_INSTALL_URL] = installer
        assert tool_install.install_oh_my_zsh(ctx).output == "installed"
        _, env = tools.fetcher.installers[0]
        assert env["RUNZSH"] == "no"
        assert env["CHSH"] == "no"
        assert env["KEEP_ZSHRC"] == "yes"


class TestOhMyTmux:
    def test_legacy_sentinel_counts(self, ctx, home: Path, tools):
        (home / ".tmux").mkdir()
        (home / ".tmux" / ".tmux.conf").write_text("# legacy\n")
        assert tool_install.install_oh_my_tmux(ctx).output == "already installed"
        assert tools.fetcher.installers == []

    def test_fresh_install(self, ctx, tools):
        assert tool_install.install_oh_my_tmux(ctx).output == "installed"
        assert tools.fetcher.installers[0][0] == tool_install.OH_MY_TMUX_INSTALL_URL


class TestTmuxLocalConfig:
    def test_skipped_without_source(self, ctx):
        assert tool_install.install_tmux_local_config(ctx).status == "skipped"

    def test_from_file(self, home: Path, tools, tmp_path: Path):
        src = tmp_path / "tmux.conf.local"
        src.write_text("set -g mouse on\r\n")
        cfg = BootstrapConfig(home=home, user="tester", tmux_local_config_path=str(src))
        receipt = tool_install.install_tmux_local_config(StepContext(cfg, tools))
        assert receipt.ok
        text = cfg.tmux_local_config.read_text()
        assert text.startswith("set -g mouse on\n")
        assert 'set -g default-shell "/usr/bin/zsh"' in text
        assert receipt.metadata["shell"] == "/usr/bin/zsh"

    def test_from_url_and_reload(self, home: Path, runner, tools):
        url = "https://example.invalid/tmux.conf.local"
        tools.fetcher.payloads[url] = b"set -g history-limit 10000\n"
        runner.available["tmux"] = "/usr/bin/tmux"
        cfg = BootstrapConfig(home=home, user="tester", tmux_local_config_url=url)
        tool_install.install_tmux_local_config(StepContext(cfg, tools))
        assert tool_install.TMUX_SHELL_MARKER.start in cfg.tmux_local_config.read_text()
        assert ["tmux", "source-file", str(cfg.tmux_local_config)] in runner.calls

    def test_download_failure(self, home: Path, tools):
        cfg = BootstrapConfig(home=home, user="tester", tmux_local_config_url="https://example.invalid/x")
        with pytest.raises(RecoverableStepFailure):
            tool_install.install_tmux_local_config(StepContext(cfg, tools))
        assert not cfg.tmux_local_config.exists()


class TestNvm:
    def test_skipped_when_not_loadable(self, ctx, tools):
        receipt = tool_install.install_nvm_and_node(ctx)
        assert receipt.status == "skipped"
        url, env = tools.fetcher.installers[0]
        assert url == tool_install.NVM_INSTALL_URL.format(version="v0.40.4")
        assert env["NVM_DIR"].endswith(".nvm")

    def test_installs_lts(self, ctx, runner, tools):
        def installer(env):
            nvm_dir = Path(env["NVM_DIR"])
            nvm_dir.mkdir()
            (nvm_dir / "nvm.sh").write_text("nvm() { :; }\n")

        tools.fetcher.hooks[tool_install.NVM_INSTALL_URL.format(version="v0.40.4")] = installer
        assert tool_install.install_nvm_and_node(ctx).ok
        bash = [c for c in runner.calls if c[:2] == ["bash", "-c"]]
        assert "nvm install --lts" in bash[0][2]

    def test_node_install_failure(self, ctx, home: Path, runner):
        (home / ".nvm").mkdir()
        (home / ".nvm" / "nvm.sh").write_text("nvm() { :; }\n")
        runner.returncodes["bash"] = 1
        with pytest.raises(RecoverableStepFailure):
            tool_install.install_nvm_and_node(ctx)


# ── zsh theme and plugins ────────────────────────────────────────────


class TestP10kAndPlugins:
    def test_fresh(self, ctx, config, tools, home: Path):
        receipt = zsh_setup.install_p10k_and_plugins(ctx)
        assert receipt.ok
        assert set(receipt.metadata["clones"].values()) == {"cloned"}
        assert [tag for _, _, tag in tools.git.clones] == ["v1.20.0", "v0.7.1", "0.8.0"]
        assert receipt.metadata["p10k_config"] == "placeholder"

        zshrc = (home / ".zshrc").read_text()
        for line in zsh_setup.ZSHRC_LINES:
            assert line in zshrc
        assert ZSH_COMPAT_MARKER.start in zshrc
        assert zsh_setup.JEDITERM_MARKER.start in zshrc
        assert zshrc.index(zsh_setup.P10K_SOURCE_LINE) < zshrc.index(zsh_setup.JEDITERM_MARKER.start)
        assert (home / ".p10k.zsh").read_text() == zsh_setup.P10K_PLACEHOLDER

    def test_rerun_is_noop(self, ctx, tools, home: Path):
        zsh_setup.install_p10k_and_plugins(ctx)
        before = (home / ".zshrc").read_text()
        receipt = zsh_setup.install_p10k_and_plugins(ctx)
        assert set(receipt.metadata["clones"].values()) == {"already-cloned"}
        assert receipt.metadata["p10k_config"] == "kept"
        assert (home / ".zshrc").read_text() == before
        assert len(tools.git.clones) == 3

    def test_broken_clone_recloned(self, ctx, config, tools):
        p10k = config.zsh_custom_dir / "themes" / "powerlevel10k"
        p10k.mkdir(parents=True)
        (p10k / "README.md").write_text("partial")
        receipt = zsh_setup.install_p10k_and_plugins(ctx)
        assert receipt.metadata["clones"]["powerlevel10k"] == "recloned"
        assert not (p10k / "README.md").exists()

    def test_clone_failure_still_wires_zshrc(self, ctx, tools, home: Path):
        tools.git.fail_clone.add(zsh_setup.AUTOSUGGESTIONS_REPO)
        receipt = zsh_setup.install_p10k_and_plugins(ctx)
        assert receipt.failed
        assert receipt.metadata["clones"]["zsh-autosuggestions"] == "failed"
        assert zsh_setup.P10K_SOURCE_LINE in (home / ".zshrc").read_text()

    def test_p10k_config_from_file(self, home: Path, tools, tmp_path: Path):
        src = tmp_path / "p10k.zsh"
        src.write_text("typeset -g POWERLEVEL9K_MODE=ascii\n")
        cfg = BootstrapConfig(home=home, user="tester", p10k_config_path=str(src))
        receipt = zsh_setup.install_p10k_and_plugins(StepContext(cfg, tools))
        assert receipt.metadata["p10k_config"] == "copied"
        assert (home / ".p10k.zsh").read_text() == src.read_text()

    def test_p10k_download_failure_is_reported(self, home: Path, tools):
        cfg = BootstrapConfig(home=home, user="tester", p10k_config_url="https://example.invalid/p10k.zsh")
        receipt = zsh_setup.install_p10k_and_plugins(StepContext(cfg, tools))
        assert receipt.failed
        assert receipt.metadata["p10k_config"] == "failed"
        assert not (home / ".p10k.zsh").exists()

    def test_no_git_is_fatal(self, config):
        tools = _tools(FakeRunner(), git=FakeGit(available=False))
        with pytest.raises(FatalPrecondition):
            zsh_setup.install_p10k_and_plugins(StepContext(config, tools))
        assert tools.packages.requested == [["git"]]


# ── Caches ───────────────────────────────────────────────────────────


class TestCacheSymlinks:
    def test_links_everything(self, ctx, config, home: Path, shared_base: Path):
        pip = home / ".cache" / "pip"
        pip.mkdir(parents=True)
        (pip / "wheel.whl").write_bytes(b"data")

        receipt = caches.ensure_cache_symlinks(ctx)
        assert receipt.ok
        assert receipt.output == "11 linked, 0 unchanged"
        assert pip.is_symlink()
        assert (shared_base / ".cache" / "pip" / "wheel.whl").read_bytes() == b"data"

        assert caches.ensure_cache_symlinks(ctx).output == "0 linked, 11 unchanged"

    def test_missing_volume_skips(self, home: Path, tools):
        cfg = BootstrapConfig(home=home, user="tester", shared_local_base=Path("/nonexistent-shellstrap-volume/tester"))
        receipt = caches.ensure_cache_symlinks(StepContext(cfg, tools))
        assert receipt.status == "skipped"
        assert not (home / ".cache").exists()

    def test_file_in_the_way_fails_that_link_only(self, ctx, home: Path):
        (home / ".cache").mkdir()
        (home / ".cache" / "uv").write_text("not a dir")
        receipt = caches.ensure_cache_symlinks(ctx)
        assert receipt.failed
        assert (home / ".cache" / "uv").read_text() == "not a dir"
        assert (home / ".cache" / "pip").is_symlink()

    def test_shared_volume(self):
        cfg = BootstrapConfig(home=Path("/home/t"), user="t")
        assert caches.shared_volume(cfg) == Path("/local")


# ── Line endings ─────────────────────────────────────────────────────


class TestFixLineEndings:
    def test_strips_crlf_and_fixes_repos(self, ctx, config, tools, home: Path):
        (home / ".zshrc").write_bytes(b"export A=1\r\n")
        (home / ".bashrc").write_bytes(b"export B=1\n")
        (config.omz_dir / ".git").mkdir(parents=True)

        receipt = crlf_repair.fix_line_endings(ctx)
        assert receipt.ok
        assert receipt.output == "2 fixed"
        assert (home / ".zshrc").read_bytes() == b"export A=1\n"
        assert tools.git.config[(str(config.omz_dir), "core.autocrlf")] == "false"
        assert tools.git.resets == [config.omz_dir]

        assert crlf_repair.fix_line_endings(ctx).output == "0 fixed"
        assert tools.git.resets == [config.omz_dir]
