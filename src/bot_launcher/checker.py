"""Update check against the bot server.

The check never raises. When the server cannot be reached or answers with
something unusable, the decision is "no update" and the launcher keeps
whatever artifact it already has.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from bot_launcher.cache import CacheStore
from bot_launcher.constants import CHECK_UPDATE_PATH
from bot_launcher.context import LauncherContext
from bot_launcher.integrity import compute_hash
from bot_launcher.logging import get_logger

log = get_logger("bot_launcher.checker")


@dataclass(frozen=True)
class UpdateDecision:
    """Outcome of one update check.

    ``reachable`` is False when the decision is the offline fallback rather
    than the server's answer; ``error`` then says why.
    """

    update_available: bool
    current_version: str | None = None
    latest_version: str | None = None
    reachable: bool = True
    error: str | None = None

    @classmethod
    def offline(cls, current_version: str | None, error: str) -> UpdateDecision:
        return cls(
            update_available=False,
            current_version=current_version,
            reachable=False,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "update_available": self.update_available,
            "current_version": self.current_version,
            "latest_version": self.latest_version,
            "reachable": self.reachable,
            "error": self.error,
        }


class UpdateChecker:
    """Asks the server whether the cached artifact is still current."""

    def __init__(self, context: LauncherContext, cache: CacheStore) -> None:
        self._context = context
        self._cache = cache

    async def check(self) -> UpdateDecision:
        """Send the cached version and artifact hash, return the server's decision."""
        record = self._cache.read()
        cached_version = record.version if record else None
        try:
            local_hash = compute_hash(self._context.artifact_path)
        except OSError as exc:
            log.warning(
                "local_artifact_unreadable", path=str(self._context.artifact_path), error=str(exc)
            )
            local_hash = None

        params = {"version": cached_version or "", "hash": local_hash or ""}
        url = self._context.endpoint(CHECK_UPDATE_PATH)

        try:
            async with httpx.AsyncClient(timeout=self._context.check_timeout) as client:
                resp = await client.get(url, params=params)
        except httpx.ConnectError as exc:
            log.warning("update_server_offline", url=url, error=str(exc))
            return UpdateDecision.offline(cached_version, "server offline")
        except httpx.HTTPError as exc:
            log.warning("update_check_failed", url=url, error=str(exc))
            return UpdateDecision.offline(cached_version, str(exc))

        if resp.status_code >= 400:
            log.warning("update_check_failed", url=url, status=resp.status_code)
            return UpdateDecision.offline(cached_version, f"HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            log.warning("update_check_invalid_response", url=url, error=str(exc))
            return UpdateDecision.offline(cached_version, "invalid response")

        if not isinstance(data, dict):
            log.warning("update_check_invalid_response", url=url, body_type=type(data).__name__)
            return UpdateDecision.offline(cached_version, "invalid response")

        decision = UpdateDecision(
            update_available=data.get("updateAvailable") is True,
            current_version=data.get("currentVersion") or cached_version,
            latest_version=data.get("latestVersion"),
        )
        log.info(
            "update_check_complete",
            update_available=decision.update_available,
            current=decision.current_version,
            latest=decision.latest_version,
        )
        return decision
