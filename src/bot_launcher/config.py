"""Configuration management for the bot launcher."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bot_launcher.constants import (
    CHECK_UPDATE_TIMEOUT_SECONDS,
    DEFAULT_CACHE_DIR,
    DEFAULT_SERVER_URL,
    DOWNLOAD_TIMEOUT_SECONDS,
)


class Settings(BaseSettings):
    """Launcher settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Update server
    server_url: str = Field(
        default=DEFAULT_SERVER_URL, description="Base URL of the bot update server"
    )
    check_timeout: float = Field(
        default=CHECK_UPDATE_TIMEOUT_SECONDS, gt=0, description="Update check timeout (s)"
    )
    download_timeout: float = Field(
        default=DOWNLOAD_TIMEOUT_SECONDS, gt=0, description="Artifact download timeout (s)"
    )

    # Local cache
    cache_dir: Path = Field(
        default=Path(DEFAULT_CACHE_DIR), description="Directory holding the artifact"
    )
    cache_lock: bool = Field(
        default=True, description="Take an advisory lock on the cache directory"
    )

    # Execution
    runner: Literal["subprocess", "inprocess"] = Field(
        default="subprocess", description="How the downloaded artifact is run"
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
