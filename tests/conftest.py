from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from dotlink.backup import BackupStore
from dotlink.config import DEFAULT_CONFIG_FILENAME, load_config
from dotlink.engine import SymlinkEngine
from dotlink.environment import Environment
from dotlink.models import Platform
from dotlink.resolver import Responder


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    return home


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    repo_dir = tmp_path / "repo"
    (repo_dir / "config").mkdir(parents=True)
    return repo_dir


@pytest.fixture
def linux_env(fake_home: Path) -> Environment:
    return Environment(home=fake_home, platform=Platform.LINUX, hostname="work-laptop", interactive=True)


@pytest.fixture
def make_engine(repo: Path, linux_env: Environment) -> Callable[..., SymlinkEngine]:
    """Build an engine from a ``[symlinks]`` body written into ``repo``."""

    def factory(
        symlinks: str,
        *,
        env: Environment | None = None,
        responder: Responder | None = None,
        clock: Callable[[], int] | None = None,
    ) -> SymlinkEngine:
        (repo / DEFAULT_CONFIG_FILENAME).write_text(f"[symlinks]\n{symlinks}\n")
        config = load_config(repo)
        env = env or linux_env
        backups = BackupStore.for_home(env.home, clock=clock) if clock is not None else None
        return SymlinkEngine(config, env, responder=responder, backups=backups)

    return factory
