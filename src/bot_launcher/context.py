"""Launcher context shared by every component of a single launch."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from bot_launcher.constants import ARTIFACT_FILENAME, LOCK_FILENAME, METADATA_FILENAME

if TYPE_CHECKING:
    from bot_launcher.config import Settings


@dataclass(frozen=True)
class LauncherContext:
    """Server location, cache paths and timeouts, resolved once at startup."""

    server_url: str
    cache_dir: Path
    check_timeout: float
    download_timeout: float

    @property
    def artifact_path(self) -> Path:
        return self.cache_dir / ARTIFACT_FILENAME

    @property
    def metadata_path(self) -> Path:
        return self.cache_dir / METADATA_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.cache_dir / LOCK_FILENAME

    def endpoint(self, path: str) -> str:
        """Join an API path onto the server base URL."""
        return f"{self.server_url}{path}"

    @classmethod
    def from_settings(cls, settings: Settings) -> LauncherContext:
        return cls(
            server_url=settings.server_url.rstrip("/"),
            cache_dir=Path(settings.cache_dir).expanduser().resolve(),
            check_timeout=settings.check_timeout,
            download_timeout=settings.download_timeout,
        )
