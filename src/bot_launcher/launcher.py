"""Launch pipeline and console entry points.

A launch moves through:

    STARTUP -> CHECK_UPDATE -> DOWNLOAD | USE_CACHE -> EXECUTE -> RUNNING
            -> CLEANUP -> FINAL

Exit status is 0 when the artifact finishes or is interrupted by a signal,
and 1 for any launcher, integrity or execution error.
"""

from __future__ import annotations

import asyncio
import sys
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from bot_launcher import __version__
from bot_launcher.cache import CacheLock, CacheStore
from bot_launcher.checker import UpdateChecker
from bot_launcher.config import Settings, get_settings
from bot_launcher.constants import EXIT_FAILURE, EXIT_OK
from bot_launcher.context import LauncherContext
from bot_launcher.downloader import Downloader
from bot_launcher.errors import (
    CacheLockedError,
    DownloadError,
    ExecutionError,
    IntegrityError,
    LauncherError,
)
from bot_launcher.executor import Executor
from bot_launcher.heap import read_heap_profile
from bot_launcher.integrity import compute_hash
from bot_launcher.lifecycle import LifecycleManager
from bot_launcher.logging import (
    bind_launch_context,
    clear_launch_context,
    get_logger,
    setup_logging,
)
from bot_launcher.runner import ArtifactRunner, build_runner

log = get_logger("bot_launcher.launcher")


class LaunchPhase(Enum):
    """Stage of a single launch."""

    STARTUP = "startup"
    CHECK_UPDATE = "check_update"
    DOWNLOAD = "download"
    USE_CACHE = "use_cache"
    EXECUTE = "execute"
    RUNNING = "running"
    CLEANUP = "cleanup"
    FINAL = "final"


class Launcher:
    """Wires the components of one launch around a shared context."""

    def __init__(
        self,
        settings: Settings,
        context: LauncherContext | None = None,
        runner: ArtifactRunner | None = None,
    ) -> None:
        self._settings = settings
        self._context = context or LauncherContext.from_settings(settings)
        self._runner = runner
        self._phase = LaunchPhase.STARTUP

        self.cache = CacheStore(self._context)
        self.checker = UpdateChecker(self._context, self.cache)
        self.downloader = Downloader(self._context, self.cache)
        self.lifecycle = LifecycleManager(self._context)
        self.lock = CacheLock(self._context)

    @property
    def context(self) -> LauncherContext:
        return self._context

    @property
    def phase(self) -> LaunchPhase:
        return self._phase

    async def prepare(self) -> Path:
        """Make sure a current artifact is on disk and return its path."""
        self._phase = LaunchPhase.CHECK_UPDATE
        decision = await self.checker.check()
        artifact = self._context.artifact_path
        have_artifact = artifact.exists()

        if not decision.update_available and have_artifact:
            self._phase = LaunchPhase.USE_CACHE
            log.info("using_cached_artifact", version=decision.current_version)
            return artifact

        self._phase = LaunchPhase.DOWNLOAD
        try:
            return await self.downloader.download()
        except IntegrityError:
            raise
        except DownloadError as exc:
            if not have_artifact:
                raise LauncherError("no cached artifact and the download failed") from exc
            self._phase = LaunchPhase.USE_CACHE
            log.warning("download_failed_using_cache", error=str(exc))
            return artifact

    def launch(self) -> None:
        """Run the whole pipeline. Cleanup runs once the artifact has been handed off.

        Only the update check and download run on an event loop. The loop is
        closed before the artifact starts, so the artifact runs on a plain
        main thread and the termination hooks are installed outside any loop.
        """
        _log_heap_profile()

        if self._settings.cache_lock and not self.lock.acquire():
            raise CacheLockedError(f"cache directory {self._context.cache_dir} is in use")

        try:
            artifact = asyncio.run(self.prepare())

            record = self.cache.read()
            runner = self._runner or build_runner(
                self._settings.runner, self._context, record.version if record else None
            )
            self.lifecycle.add_cleanup_hook(runner.stop)
            self.lifecycle.arm()

            self._phase = LaunchPhase.EXECUTE
            Executor(runner).execute(artifact)

            self._phase = LaunchPhase.RUNNING
            runner.wait()
        finally:
            if self.lifecycle.armed:
                self._phase = LaunchPhase.CLEANUP
                self.lifecycle.cleanup()
            self.lock.release()
            self._phase = LaunchPhase.FINAL


def _log_heap_profile() -> None:
    try:
        profile = read_heap_profile()
    except Exception as exc:
        log.debug("heap_profile_unavailable", error=str(exc))
        return
    log.info("heap_profile", **profile.to_dict())


def run_launcher(settings: Settings, launcher: Launcher | None = None) -> int:
    """Launch and translate the outcome into a process exit code."""
    launcher = launcher or Launcher(settings)
    bind_launch_context(__version__)
    log.info("launcher_starting", server_url=settings.server_url)
    try:
        launcher.launch()
    except IntegrityError as exc:
        log.error("launch_aborted_integrity", expected=exc.expected, actual=exc.actual)
        return EXIT_FAILURE
    except CacheLockedError as exc:
        log.error(
            "launch_cache_locked",
            error=str(exc),
            hint="another launcher is using CACHE_DIR; stop it, point CACHE_DIR elsewhere, "
            "or set CACHE_LOCK=false",
        )
        return EXIT_FAILURE
    except ExecutionError as exc:
        log.exception("artifact_execution_failed", error=str(exc))
        return EXIT_FAILURE
    except LauncherError as exc:
        log.error(
            "launch_failed",
            error=str(exc),
            hint=f"check that SERVER_URL ({settings.server_url}) points at a running update server",
        )
        return EXIT_FAILURE
    except Exception as exc:
        log.exception("launch_unexpected_error", error=str(exc))
        return EXIT_FAILURE
    finally:
        launcher.lifecycle.disarm()
        clear_launch_context()

    log.info("launcher_stopped")
    return EXIT_OK


def _load_settings() -> Settings | None:
    try:
        return get_settings()
    except ValidationError as exc:
        log.error("invalid_configuration", error=str(exc))
        return None


def main() -> None:
    """Console entry point: update, run, and clean up the artifact."""
    settings = _load_settings()
    if settings is None:
        sys.exit(EXIT_FAILURE)
    setup_logging()
    sys.exit(run_launcher(settings))


def diagnostics() -> None:
    """Console entry point: report the heap profile and cache state."""
    settings = _load_settings()
    if settings is None:
        sys.exit(EXIT_FAILURE)
    setup_logging()

    context = LauncherContext.from_settings(settings)
    record = CacheStore(context).read()
    profile = read_heap_profile()
    log.info(
        "diagnostics",
        heap=profile.to_dict(),
        cache_dir=str(context.cache_dir),
        cached=record.to_dict() if record else None,
        artifact_hash=compute_hash(context.artifact_path),
    )
    sys.exit(EXIT_OK)
