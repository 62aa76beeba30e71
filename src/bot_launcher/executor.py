"""Loads the cached artifact and hands it to a runner."""

from __future__ import annotations

from pathlib import Path

from bot_launcher.errors import ExecutionError
from bot_launcher.logging import get_logger
from bot_launcher.runner import ArtifactRunner

log = get_logger("bot_launcher.executor")

INTERPRETER_DIRECTIVE = "#!"


def strip_interpreter_directive(source: str) -> str:
    """Drop a leading ``#!`` line, keeping its newline so line numbers match."""
    if not source.startswith(INTERPRETER_DIRECTIVE):
        return source
    newline = source.find("\n")
    if newline == -1:
        return ""
    return source[newline:]


class Executor:
    """Reads the artifact source and starts it with the configured runner.

    No timeout or resource ceiling is applied; the only check on the code
    is the hash comparison done at download time.
    """

    def __init__(self, runner: ArtifactRunner) -> None:
        self._runner = runner

    @property
    def runner(self) -> ArtifactRunner:
        return self._runner

    def execute(self, path: Path) -> None:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ExecutionError(f"cannot read artifact {path}: {exc}") from exc

        log.debug("artifact_loaded", path=str(path), chars=len(source))
        self._runner.start(path, strip_interpreter_directive(source))
