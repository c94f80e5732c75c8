# tests/unit/cache/test_unit_document_cache.py - v1
"""Tests for cache/document_cache.py and cache/cache_factory.py."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from taskdocs.cache.base_cache_store import BaseCacheStore
from taskdocs.cache.cache_factory import create_cache_store
from taskdocs.cache.document_cache import DocumentCache
from taskdocs.cache.json_store import JsonCacheStore
from taskdocs.cache.memory_store import MemoryCacheStore
from taskdocs.cache.sqlite_store import SqliteCacheStore
from taskdocs.config.settings import Settings

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _broken_store() -> MagicMock:
    store = MagicMock(spec=BaseCacheStore)
    store.get_all = AsyncMock(side_effect=OSError("disk gone"))
    store.put = AsyncMock(side_effect=OSError("disk gone"))
    store.clear_task = AsyncMock(side_effect=OSError("disk gone"))
    store.sweep_older_than = AsyncMock(side_effect=OSError("disk gone"))
    return store


class TestDocumentCache:
    @pytest.mark.asyncio
    async def test_round_trip(self):
        cache = DocumentCache(MemoryCacheStore())
        assert await cache.put("T1", 1, b"b", {"i": 1}) is True
        assert await cache.put("T1", 0, b"a", {"i": 0}) is True
        docs = await cache.get_all("T1")
        assert [d.index for d in docs] == [0, 1]

    @pytest.mark.asyncio
    async def test_clear_task(self, caplog):
        cache = DocumentCache(MemoryCacheStore())
        await cache.put("T1", 0, b"a", None)
        with caplog.at_level(logging.INFO):
            assert await cache.clear_task("T1") is True
        assert await cache.get_all("T1") == []
        assert "Cleared 1 cached document(s) of task T1" in caplog.text

    @pytest.mark.asyncio
    async def test_sweep_expired_default_window(self):
        cache = DocumentCache(MemoryCacheStore())
        await cache.put("T1", 0, b"old", None, stored_at=NOW - timedelta(days=7, seconds=1))
        await cache.put("T1", 1, b"edge", None, stored_at=NOW - timedelta(days=6))
        await cache.put("T2", 0, b"old", None, stored_at=NOW - timedelta(days=30))

        removed = await cache.sweep_expired(now=NOW)
        assert removed == 2
        assert [d.index for d in await cache.get_all("T1")] == [1]

    @pytest.mark.asyncio
    async def test_sweep_custom_window(self):
        cache = DocumentCache(MemoryCacheStore())
        await cache.put("T1", 0, b"x", None, stored_at=NOW - timedelta(days=2))
        assert await cache.sweep_expired(max_age_days=1, now=NOW) == 1

    @pytest.mark.asyncio
    async def test_read_failure_is_a_miss(self, caplog):
        cache = DocumentCache(_broken_store())
        with caplog.at_level(logging.WARNING):
            assert await cache.get_all("T1") == []
        assert "Cache read failed" in caplog.text

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self):
        cache = DocumentCache(_broken_store())
        assert await cache.put("T1", 0, b"x", None) is False

    @pytest.mark.asyncio
    async def test_clear_and_sweep_failures_are_swallowed(self):
        cache = DocumentCache(_broken_store())
        assert await cache.clear_task("T1") is False
        assert await cache.sweep_expired(now=NOW) == 0

    def test_close_delegates(self):
        store = _broken_store()
        DocumentCache(store).close()
        store.close.assert_called_once()


class TestCacheFactory:
    def test_default_sqlite(self, tmp_path):
        store = create_cache_store(Settings(_env_file=None, cache_root=tmp_path))
        assert isinstance(store, SqliteCacheStore)
        store.close()
        assert (tmp_path / "taskdocs_cache.db").exists()

    def test_json(self, tmp_path):
        store = create_cache_store(
            Settings(_env_file=None, cache_backend="json", cache_root=tmp_path)
        )
        assert isinstance(store, JsonCacheStore)

    def test_memory(self):
        store = create_cache_store(Settings(_env_file=None, cache_backend="memory"))
        assert isinstance(store, MemoryCacheStore)

    def test_redis_without_url(self):
        settings = Settings(_env_file=None, cache_backend="memory")
        settings.cache_backend = "redis"
        with pytest.raises(ValueError, match="CACHE_REDIS_URL"):
            create_cache_store(settings)

    def test_unknown_backend(self):
        settings = Settings(_env_file=None)
        settings.cache_backend = "mongo"
        with pytest.raises(ValueError, match="Unsupported cache backend"):
            create_cache_store(settings)
