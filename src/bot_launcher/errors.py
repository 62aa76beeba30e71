"""Errors that end a launch.

Network and cache failures never appear here: the update check and the
metadata store absorb them and report a fallback value instead.
"""


class LauncherError(Exception):
    """A launch cannot continue."""


class DownloadError(LauncherError):
    """The artifact could not be fetched from the update server."""


class IntegrityError(LauncherError):
    """Downloaded bytes do not match the hash declared by the server."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"artifact hash mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class ExecutionError(LauncherError):
    """The artifact failed while being loaded or run."""


class CacheLockedError(LauncherError):
    """Another launcher instance holds the cache directory."""
