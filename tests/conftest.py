from collections.abc import Iterator
from pathlib import Path

import pytest

from julials.core.config import ConfigManager
from julials.core.global_paths import GlobalPath
from julials.util.log import Log


@pytest.fixture(autouse=True)
def isolated_paths(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    root = tmp_path / "_julials"
    monkeypatch.setattr(GlobalPath, "data", classmethod(lambda cls: str(root / "data")))
    monkeypatch.setattr(GlobalPath, "config", classmethod(lambda cls: str(root / "config")))
    monkeypatch.delenv("JULIALS_CONFIG_CONTENT", raising=False)
    monkeypatch.delenv("JULIALS_EXTENSION_PATH", raising=False)
    monkeypatch.delenv("JULIALS_STORAGE_PATH", raising=False)
    monkeypatch.delenv("JULIALS_TEST_HOME", raising=False)
    yield
    Log.close()


@pytest.fixture(autouse=True)
def config_context() -> Iterator[None]:
    token = ConfigManager.provide(ConfigManager())
    try:
        yield
    finally:
        ConfigManager.restore(token)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
