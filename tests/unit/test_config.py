"""Unit tests for the configuration module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from bot_launcher.config import Settings, get_settings


def _make_settings(**overrides) -> Settings:
    """Create a Settings instance isolated from any .env file."""
    defaults = {"_env_file": None}
    defaults.update(overrides)
    return Settings(**defaults)


class TestDefaults:
    """Tests for default values."""

    def test_server_url_default(self, monkeypatch):
        monkeypatch.delenv("SERVER_URL", raising=False)
        assert _make_settings().server_url == "http://localhost:3000"

    def test_timeouts_default(self):
        settings = _make_settings()
        assert settings.check_timeout == 5.0
        assert settings.download_timeout == 30.0

    def test_cache_defaults(self, monkeypatch):
        monkeypatch.delenv("CACHE_DIR", raising=False)
        settings = _make_settings()
        assert settings.cache_dir == Path(".bot-cache")
        assert settings.cache_lock is True

    def test_runner_defaults_to_subprocess(self, monkeypatch):
        monkeypatch.delenv("RUNNER", raising=False)
        assert _make_settings().runner == "subprocess"


class TestEnvironmentOverrides:
    """Tests for reading settings from the environment."""

    def test_server_url_from_env(self, monkeypatch):
        monkeypatch.setenv("SERVER_URL", "https://bots.example.com")
        assert _make_settings().server_url == "https://bots.example.com"

    def test_env_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("runner", "inprocess")
        assert _make_settings().runner == "inprocess"

    def test_cache_lock_from_env(self, monkeypatch):
        monkeypatch.setenv("CACHE_LOCK", "false")
        assert _make_settings().cache_lock is False

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.setenv("SERVER_URL", "https://first.example.com")
        first = get_settings()
        monkeypatch.setenv("SERVER_URL", "https://second.example.com")
        assert get_settings() is first


class TestValidation:
    """Tests for rejected values."""

    def test_unknown_runner_rejected(self):
        with pytest.raises(ValidationError):
            _make_settings(runner="docker")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            _make_settings(check_timeout=0)


class TestIsDevelopment:
    """Tests for the is_development property."""

    def test_development(self):
        assert _make_settings(environment="Development").is_development is True

    def test_production(self):
        assert _make_settings(environment="production").is_development is False
