"""SHA-256 fingerprints for artifact files and download bodies."""

from __future__ import annotations

import hashlib
from pathlib import Path

_CHUNK_SIZE = 1024 * 1024


def hash_bytes(data: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def compute_hash(path: str | Path) -> str | None:
    """Return the lowercase hex SHA-256 digest of a file.

    Returns None when the file does not exist. Other I/O errors propagate.
    """
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as handle:
            while True:
                chunk = handle.read(_CHUNK_SIZE)
                if not chunk:
                    break
                digest.update(chunk)
    except FileNotFoundError:
        return None
    return digest.hexdigest()
