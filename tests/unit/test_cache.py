"""Unit tests for the cache metadata store and the cache directory lock."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from bot_launcher.cache import CacheLock, CacheRecord, CacheStore
from bot_launcher.context import LauncherContext
from bot_launcher.errors import CacheLockedError


def _record(**overrides: object) -> CacheRecord:
    data: dict[str, object] = {
        "version": "1.4.0",
        "hash": "ab" * 32,
        "downloaded_at": "2026-10-19T08:00:00+00:00",
        "file_size": 2048,
    }
    data.update(overrides)
    return CacheRecord(**data)  # type: ignore[arg-type]


class TestCacheRecord:
    """Tests for CacheRecord serialisation."""

    def test_to_dict(self) -> None:
        assert _record().to_dict() == {
            "version": "1.4.0",
            "hash": "ab" * 32,
            "downloaded_at": "2026-10-19T08:00:00+00:00",
            "file_size": 2048,
        }

    def test_from_dict_lowercases_hash(self) -> None:
        record = CacheRecord.from_dict({**_record().to_dict(), "hash": "AB" * 32})
        assert record.hash == "ab" * 32

    def test_from_dict_missing_field_raises(self) -> None:
        data = _record().to_dict()
        del data["version"]
        with pytest.raises(KeyError):
            CacheRecord.from_dict(data)

    def test_from_dict_rejects_non_integer_size(self) -> None:
        with pytest.raises(TypeError):
            CacheRecord.from_dict({**_record().to_dict(), "file_size": "2048"})


class TestCacheStore:
    """Tests for CacheStore read/write."""

    def test_round_trip(self, store: CacheStore) -> None:
        record = _record()
        assert store.write(record) is True
        assert store.read() == record

    def test_write_creates_cache_dir(self, store: CacheStore, cache_dir: Path) -> None:
        assert not cache_dir.exists()
        store.write(_record())
        assert cache_dir.is_dir()
        assert store.path.exists()

    def test_write_is_human_readable_json(self, store: CacheStore) -> None:
        store.write(_record())
        text = store.path.read_text(encoding="utf-8")
        assert '"version": "1.4.0"' in text
        assert json.loads(text)["file_size"] == 2048

    def test_write_replaces_whole_record(self, store: CacheStore) -> None:
        store.write(_record())
        store.write(_record(version="1.5.0", file_size=10))
        assert store.read() == _record(version="1.5.0", file_size=10)

    def test_write_leaves_no_temp_file(self, store: CacheStore, cache_dir: Path) -> None:
        store.write(_record())
        assert [p.name for p in cache_dir.iterdir()] == [store.path.name]

    def test_read_missing_returns_none(self, store: CacheStore) -> None:
        assert store.read() is None

    def test_read_corrupt_json_returns_none(self, store: CacheStore, cache_dir: Path) -> None:
        cache_dir.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")
        assert store.read() is None

    def test_read_non_object_returns_none(self, store: CacheStore, cache_dir: Path) -> None:
        cache_dir.mkdir(parents=True)
        store.path.write_text("[1, 2, 3]", encoding="utf-8")
        assert store.read() is None

    def test_read_incomplete_record_returns_none(
        self, store: CacheStore, cache_dir: Path
    ) -> None:
        cache_dir.mkdir(parents=True)
        store.path.write_text(json.dumps({"version": "1.0.0"}), encoding="utf-8")
        assert store.read() is None

    def test_read_unstattable_path_returns_none(self, store: CacheStore) -> None:
        with patch.object(Path, "exists", side_effect=PermissionError("denied")):
            assert store.read() is None

    def test_read_directory_in_place_of_record_returns_none(self, store: CacheStore) -> None:
        store.path.mkdir(parents=True)
        assert store.read() is None

    def test_write_failure_returns_false(self, store: CacheStore) -> None:
        with patch.object(Path, "write_text", side_effect=OSError("disk full")):
            assert store.write(_record()) is False

    def test_write_failure_keeps_previous_record(self, store: CacheStore) -> None:
        store.write(_record())
        with patch.object(Path, "replace", side_effect=PermissionError("read-only")):
            assert store.write(_record(version="2.0.0")) is False
        assert store.read() == _record()

    def test_clear(self, store: CacheStore) -> None:
        store.write(_record())
        store.clear()
        assert store.read() is None
        store.clear()


class TestCacheLock:
    """Tests for the advisory cache directory lock."""

    def test_acquire_writes_pid(self, context: LauncherContext) -> None:
        lock = CacheLock(context)
        assert lock.acquire() is True
        try:
            assert lock.held is True
            assert context.lock_path.read_text(encoding="utf-8") == str(os.getpid())
        finally:
            lock.release()

    def test_second_lock_is_refused(self, context: LauncherContext) -> None:
        first = CacheLock(context)
        second = CacheLock(context)
        assert first.acquire() is True
        try:
            assert second.acquire() is False
            assert second.held is False
        finally:
            first.release()

    def test_release_allows_reacquire(self, context: LauncherContext) -> None:
        first = CacheLock(context)
        second = CacheLock(context)
        first.acquire()
        first.release()
        assert second.acquire() is True
        second.release()

    def test_release_is_idempotent(self, context: LauncherContext) -> None:
        lock = CacheLock(context)
        lock.release()
        lock.acquire()
        lock.release()
        lock.release()
        assert lock.held is False

    def test_acquire_twice_is_reentrant(self, context: LauncherContext) -> None:
        lock = CacheLock(context)
        assert lock.acquire() is True
        assert lock.acquire() is True
        lock.release()

    def test_context_manager_raises_when_locked(self, context: LauncherContext) -> None:
        holder = CacheLock(context)
        holder.acquire()
        try:
            with pytest.raises(CacheLockedError):
                with CacheLock(context):
                    pass
        finally:
            holder.release()

    def test_context_manager_releases(self, context: LauncherContext) -> None:
        with CacheLock(context) as lock:
            assert lock.held is True
        assert lock.held is False
