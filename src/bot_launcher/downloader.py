"""Artifact download with integrity verification.

The body is staged next to the artifact and only replaces it after the
hash check passes, so a corrupted or tampered download leaves the previous
artifact and its metadata record untouched.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import httpx

from bot_launcher.cache import CacheRecord, CacheStore
from bot_launcher.constants import DOWNLOAD_PATH, HASH_HEADER, UNKNOWN_VERSION, VERSION_HEADER
from bot_launcher.context import LauncherContext
from bot_launcher.errors import DownloadError, IntegrityError
from bot_launcher.integrity import compute_hash
from bot_launcher.logging import get_logger

log = get_logger("bot_launcher.downloader")


class Downloader:
    """Fetches the artifact, verifies it, and records it in the cache."""

    def __init__(self, context: LauncherContext, cache: CacheStore) -> None:
        self._context = context
        self._cache = cache

    @property
    def staging_path(self) -> Path:
        path = self._context.artifact_path
        return path.with_name(path.name + ".part")

    async def download(self) -> Path:
        """Download and install the artifact, returning its path.

        Raises:
            DownloadError: the server could not be reached or refused the request.
            IntegrityError: the body does not match the declared ``x-file-hash``.
        """
        url = self._context.endpoint(DOWNLOAD_PATH)
        log.info("artifact_download_started", url=url)

        try:
            async with httpx.AsyncClient(timeout=self._context.download_timeout) as client:
                resp = await client.get(url)
        except httpx.HTTPError as exc:
            log.error("artifact_download_failed", url=url, error=str(exc))
            raise DownloadError(f"could not download artifact from {url}: {exc}") from exc

        if resp.status_code >= 400:
            log.error("artifact_download_failed", url=url, status=resp.status_code)
            raise DownloadError(f"download from {url} failed with HTTP {resp.status_code}")

        body = resp.content
        version = resp.headers.get(VERSION_HEADER) or UNKNOWN_VERSION
        declared_hash = resp.headers.get(HASH_HEADER)

        staging = self.staging_path
        staging.parent.mkdir(parents=True, exist_ok=True)
        staging.write_bytes(body)

        actual_hash = compute_hash(staging) or ""
        if declared_hash:
            if actual_hash != declared_hash.strip().lower():
                staging.unlink(missing_ok=True)
                log.error(
                    "artifact_integrity_failed",
                    expected=declared_hash,
                    actual=actual_hash,
                    version=version,
                )
                raise IntegrityError(declared_hash, actual_hash)
            log.debug("artifact_integrity_verified", hash=actual_hash)
        else:
            log.warning("artifact_hash_not_declared", version=version)

        artifact = self._context.artifact_path
        staging.replace(artifact)

        self._cache.write(
            CacheRecord(
                version=version,
                hash=actual_hash,
                downloaded_at=datetime.now(UTC).isoformat(),
                file_size=len(body),
            )
        )
        log.info("artifact_downloaded", version=version, size=len(body), path=str(artifact))
        return artifact
