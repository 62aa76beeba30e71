"""Process termination hooks and artifact cleanup.

Cleanup can be triggered by several hooks for the same termination: the
signal handler runs it and then exits, which fires the ``atexit`` hook as
well. Cleanup is therefore guarded by checking what still exists on disk,
and any number of calls leaves the cache directory in the same state.
"""

from __future__ import annotations

import atexit
import signal
from collections.abc import Callable
from enum import Enum
from types import FrameType
from typing import Any

from bot_launcher.constants import EXIT_OK
from bot_launcher.context import LauncherContext
from bot_launcher.logging import get_logger

log = get_logger("bot_launcher.lifecycle")

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LifecycleState(Enum):
    """Where the launcher is on its way out."""

    IDLE = "idle"
    ARMED = "armed"
    CLEANING = "cleaning"
    DONE = "done"


class LifecycleManager:
    """Removes the artifact on normal exit, SIGINT and SIGTERM."""

    def __init__(self, context: LauncherContext) -> None:
        self._artifact_path = context.artifact_path
        self._state = LifecycleState.IDLE
        self._hooks: list[Callable[[], None]] = []
        self._previous_handlers: dict[int, Any] = {}

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def armed(self) -> bool:
        return self._state is not LifecycleState.IDLE

    def add_cleanup_hook(self, hook: Callable[[], None]) -> None:
        """Run *hook* during cleanup, before the artifact is removed."""
        self._hooks.append(hook)

    def arm(self) -> None:
        """Register the exit hook and signal handlers.

        Call outside a running event loop, otherwise the handler saved for
        SIGINT is the loop runner's own and goes stale when the loop closes.
        """
        if self._state is not LifecycleState.IDLE:
            return
        atexit.register(self.cleanup)
        for signum in HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
        self._state = LifecycleState.ARMED
        log.debug("lifecycle_armed", artifact=str(self._artifact_path))

    def disarm(self) -> None:
        """Restore the previous signal handlers and drop the exit hook."""
        atexit.unregister(self.cleanup)
        for signum, handler in self._previous_handlers.items():
            # None means the handler was installed outside Python
            signal.signal(signum, signal.SIG_DFL if handler is None else handler)
        self._previous_handlers.clear()

    def cleanup(self) -> None:
        """Stop the artifact and delete its file. Safe to call repeatedly."""
        transition = self._state in (LifecycleState.IDLE, LifecycleState.ARMED)
        if transition:
            self._state = LifecycleState.CLEANING
            log.info("cleanup_started")

        for hook in self._hooks:
            try:
                hook()
            except Exception as exc:
                log.warning("cleanup_hook_failed", hook=repr(hook), error=str(exc))

        if self._artifact_path.exists():
            try:
                self._artifact_path.unlink()
                log.info("artifact_removed", path=str(self._artifact_path))
            except FileNotFoundError:
                pass
            except OSError as exc:
                log.warning("artifact_remove_failed", path=str(self._artifact_path), error=str(exc))

        if transition:
            self._state = LifecycleState.DONE

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        log.info("termination_signal_received", signal=signal.Signals(signum).name)
        self.cleanup()
        raise SystemExit(EXIT_OK)
