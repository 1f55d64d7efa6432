"""
Shared test fixtures and configuration.

Git, package managers, command execution and downloads are replaced by
recording fakes; nothing here touches the network or the real $HOME.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from shellstrap.adapters import Toolbox
from shellstrap.core.engine.executor import StepContext
from shellstrap.core.models.config import BootstrapConfig

from tests.fakes import FakeFetcher, FakeGit, FakePackages, FakeRunner


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """An empty fake home directory."""
    h = tmp_path / "home"
    h.mkdir()
    return h


@pytest.fixture
def shared_base(tmp_path: Path) -> Path:
    return tmp_path / "local" / "tester"


@pytest.fixture
def config(home: Path, shared_base: Path) -> BootstrapConfig:
    return BootstrapConfig(home=home, user="tester", shared_local_base=shared_base)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner({"zsh": "/usr/bin/zsh", "uv": "/home/tester/.local/bin/uv"})


@pytest.fixture
def tools(runner: FakeRunner) -> Toolbox:
    fetcher = FakeFetcher(runner)
    return Toolbox(
        runner=runner,
        git=FakeGit(),
        fetcher=fetcher,
        packages=FakePackages(runner),
    )


@pytest.fixture
def ctx(config: BootstrapConfig, tools: Toolbox) -> StepContext:
    return StepContext(config=config, tools=tools)


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """setup_logging() replaces root handlers; restore them after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
