"""Artifact runners.

Two ways to run the downloaded artifact:

- ``SubprocessRunner`` starts it as a child interpreter and hands it its
  configuration through environment variables. This is the default.
- ``InProcessRunner`` executes it inside the launcher's own interpreter on
  the main thread. The artifact gets the launcher's environment, imports and
  privileges, with no isolation of any kind.

Both are called after the launcher has left its own event loop, so an
artifact is free to start one with ``asyncio.run``. ``start()`` returns once
the artifact's top-level code has run, and ``wait()`` returns when it is done.
"""

from __future__ import annotations

import asyncio
import builtins
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Protocol

from bot_launcher.context import LauncherContext
from bot_launcher.errors import ExecutionError
from bot_launcher.logging import get_logger

log = get_logger("bot_launcher.runner")


class ArtifactRunner(Protocol):
    """Runs an artifact's source code."""

    def start(self, path: Path, source: str) -> None: ...

    def wait(self) -> None: ...

    def stop(self) -> None: ...


class InProcessRunner:
    """Executes the artifact in a fresh ``__main__`` namespace of this process.

    A new event loop is installed as the current loop before the artifact
    runs. Tasks the artifact schedules on it without running it (for example
    ``asyncio.get_event_loop().create_task(serve())``) are driven to
    completion by ``wait()``. An artifact that calls ``asyncio.run`` uses its
    own loop and leaves this one empty.
    """

    def __init__(self) -> None:
        self.namespace: dict[str, Any] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    def start(self, path: Path, source: str) -> None:
        try:
            code = compile(source, str(path), "exec")
        except SyntaxError as exc:
            raise ExecutionError(f"artifact does not compile: {exc}") from exc

        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self.namespace = {
            "__name__": "__main__",
            "__file__": str(path),
            "__builtins__": builtins,
        }

        log.info("artifact_started", mode="inprocess", path=str(path))
        try:
            exec(code, self.namespace)  # noqa: S102
        except Exception as exc:
            raise ExecutionError(f"artifact raised: {exc!r}") from exc

    def wait(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.run_until_complete(self._drain())
        finally:
            self._close_loop()

    def stop(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        for task in asyncio.all_tasks(loop):
            task.cancel()

    async def _drain(self) -> None:
        current = asyncio.current_task()
        while True:
            pending = {task for task in asyncio.all_tasks() if task is not current}
            if not pending:
                return
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                if task.cancelled():
                    continue
                exc = task.exception()
                if exc is not None:
                    for other in pending:
                        other.cancel()
                    raise ExecutionError(f"artifact task failed: {exc!r}") from exc

    def _close_loop(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        asyncio.set_event_loop(None)


class SubprocessRunner:
    """Runs the artifact as a child Python process.

    The child receives the server URL, cache directory and artifact version
    as ``BOT_*`` environment variables. The interpreter directive line is a
    comment to Python, so the file on disk is run unchanged.
    """

    def __init__(self, env: dict[str, str] | None = None) -> None:
        self._env = env or {}
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def start(self, path: Path, source: str) -> None:
        try:
            self._process = subprocess.Popen(
                [sys.executable, str(path)],
                env={**os.environ, **self._env},
            )
        except OSError as exc:
            raise ExecutionError(f"could not start artifact process: {exc}") from exc
        log.info("artifact_started", mode="subprocess", path=str(path), pid=self._process.pid)

    def wait(self) -> None:
        if self._process is None:
            return
        returncode = self._process.wait()
        if returncode != 0:
            raise ExecutionError(f"artifact exited with status {returncode}")
        log.info("artifact_exited", pid=self._process.pid)

    def stop(self) -> None:
        if self._process is None or self._process.poll() is not None:
            return
        try:
            self._process.terminate()
            log.info("artifact_process_terminated", pid=self._process.pid)
        except ProcessLookupError:
            pass


def build_runner(kind: str, context: LauncherContext, version: str | None) -> ArtifactRunner:
    """Create the runner selected by the ``runner`` setting."""
    if kind == "inprocess":
        return InProcessRunner()
    if kind == "subprocess":
        env = {
            "BOT_SERVER_URL": context.server_url,
            "BOT_CACHE_DIR": str(context.cache_dir),
        }
        if version:
            env["BOT_VERSION"] = version
        return SubprocessRunner(env=env)
    raise ValueError(f"unknown runner: {kind}")
