from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator

import pytest

from taskpipe.config import reset_config_cache


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point TASKPIPE_HOME at an empty directory so user config never leaks in."""
    home = tmp_path_factory.mktemp("taskpipe-home")
    monkeypatch.setenv("TASKPIPE_HOME", str(home))
    reset_config_cache()
    yield home
    reset_config_cache()


@pytest.fixture()
def make_dir(tmp_path: Path) -> Callable[..., Path]:
    """Create a directory under tmp_path holding empty files with the given names."""

    def _make(*names: str, dirname: str = "listing") -> Path:
        target = tmp_path / dirname
        target.mkdir()
        for name in names:
            (target / name).touch()
        return target

    return _make
