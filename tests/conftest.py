from __future__ import annotations

from typing import Iterator

import pytest

from anytomd.settings import get_settings


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> Iterator[None]:
    for name in (
        "GEMINI_API_KEY",
        "GEMINI_MODEL",
        "ANYTOMD_GEMINI_API_KEY",
        "ANYTOMD_GEMINI_MODEL",
        "ANYTOMD_CONFIG_PATH",
        "ANYTOMD_ENABLE_LOCAL_API",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
