"""Shared fixtures for the bot launcher test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from bot_launcher.cache import CacheStore
from bot_launcher.config import get_settings
from bot_launcher.context import LauncherContext


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Keep cached Settings from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture()
def context(cache_dir: Path) -> LauncherContext:
    """A launcher context rooted in a temporary cache directory."""
    return LauncherContext(
        server_url="http://updates.test",
        cache_dir=cache_dir,
        check_timeout=5.0,
        download_timeout=30.0,
    )


@pytest.fixture()
def store(context: LauncherContext) -> CacheStore:
    return CacheStore(context)
