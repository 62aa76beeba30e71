"""Local artifact cache: the metadata record and the cache directory lock.

Reads and writes of the metadata record are fail-open. A record that
cannot be read is a cache miss, and a record that cannot be written is
logged and skipped; neither stops a launch.
"""

from __future__ import annotations

import fcntl
import json
import os
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import IO, Any

from bot_launcher.context import LauncherContext
from bot_launcher.errors import CacheLockedError
from bot_launcher.logging import get_logger

log = get_logger("bot_launcher.cache")


@dataclass(frozen=True)
class CacheRecord:
    """Metadata describing the last verified artifact."""

    version: str
    hash: str  # lowercase hex SHA-256
    downloaded_at: str  # ISO-8601
    file_size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "hash": self.hash,
            "downloaded_at": self.downloaded_at,
            "file_size": self.file_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheRecord:
        file_size = data["file_size"]
        if isinstance(file_size, bool) or not isinstance(file_size, int):
            raise TypeError(f"file_size must be an int, got {type(file_size).__name__}")
        return cls(
            version=str(data["version"]),
            hash=str(data["hash"]).lower(),
            downloaded_at=str(data["downloaded_at"]),
            file_size=file_size,
        )


class CacheStore:
    """Reads and replaces the metadata record in the cache directory."""

    def __init__(self, context: LauncherContext) -> None:
        self._path = context.metadata_path

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> CacheRecord | None:
        """Return the cached record, or None when absent or unreadable."""
        try:
            if not self._path.exists():
                return None
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                log.debug("cache_metadata_not_an_object", path=str(self._path))
                return None
            return CacheRecord.from_dict(data)
        except Exception as exc:
            log.debug("cache_metadata_read_failed", path=str(self._path), error=str(exc))
            return None

    def write(self, record: CacheRecord) -> bool:
        """Replace the metadata record. Returns False if it could not be saved."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(
                json.dumps(record.to_dict(), indent=2, sort_keys=True),
                encoding="utf-8",
            )
            tmp_path.replace(self._path)
        except Exception as exc:
            log.warning("cache_metadata_write_failed", path=str(self._path), error=str(exc))
            return False
        log.debug("cache_metadata_written", version=record.version)
        return True

    def clear(self) -> None:
        """Remove the metadata record if one exists."""
        self._path.unlink(missing_ok=True)


class CacheLock:
    """Advisory lock keeping a cache directory to one launcher at a time.

    Uses a non-blocking ``fcntl.flock`` on a PID file. The kernel drops the
    lock when the holder exits, so a crashed launcher never leaves a stale
    lock behind.
    """

    def __init__(self, context: LauncherContext) -> None:
        self._path = context.lock_path
        self._file: IO[str] | None = None

    @property
    def held(self) -> bool:
        return self._file is not None

    def acquire(self) -> bool:
        """Try to take the lock. Returns False if another process holds it."""
        if self._file is not None:
            return True

        self._path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self._path, "a+", encoding="utf-8")  # noqa: SIM115
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.seek(0)
            holder = handle.read().strip() or "unknown"
            handle.close()
            log.error("cache_locked", path=str(self._path), holder_pid=holder)
            return False

        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()))
        handle.flush()
        self._file = handle
        log.debug("cache_lock_acquired", path=str(self._path))
        return True

    def release(self) -> None:
        """Release the lock. Safe to call multiple times or without acquire."""
        if self._file is None:
            return
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
            self._file.close()
            log.debug("cache_lock_released", path=str(self._path))
        except OSError as exc:
            log.warning("cache_lock_release_failed", error=str(exc))
        finally:
            self._file = None

    def __enter__(self) -> CacheLock:
        if not self.acquire():
            raise CacheLockedError(f"cache directory {self._path.parent} is in use")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
