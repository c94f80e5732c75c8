# tests/unit/cache/test_unit_redis_store.py - v1
"""Tests for cache/redis_store.py - in-memory stand-in for the Redis client."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


class _FakeRedis:
    """Implements the handful of commands RedisCacheStore issues (bytes replies)."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[bytes, bytes]] = {}
        self.sets: dict[str, set[bytes]] = {}
        self.zsets: dict[str, dict[bytes, float]] = {}
        self.closed = False

    @staticmethod
    def _b(value) -> bytes:
        return value if isinstance(value, bytes) else str(value).encode()

    def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update(
            {self._b(k): self._b(v) for k, v in mapping.items()}
        )

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def sadd(self, key, member):
        self.sets.setdefault(key, set()).add(self._b(member))

    def srem(self, key, member):
        self.sets.get(key, set()).discard(self._b(member))

    def smembers(self, key):
        return set(self.sets.get(key, set()))

    def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update({self._b(k): v for k, v in mapping.items()})

    def zrem(self, key, member):
        self.zsets.get(key, {}).pop(self._b(member), None)

    def zrangebyscore(self, key, low, high):
        assert low == "-inf" and high.startswith("(")
        bound = float(high[1:])
        return [m for m, score in self.zsets.get(key, {}).items() if score < bound]

    def delete(self, key):
        self.hashes.pop(key, None)
        self.sets.pop(key, None)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return _FakeRedis()


@pytest.fixture
def store(fake_redis):
    with patch("taskdocs.cache.redis_store.RedisCacheStore.__init__", return_value=None):
        from taskdocs.cache.redis_store import RedisCacheStore
        s = RedisCacheStore.__new__(RedisCacheStore)
        s._client = fake_redis
    return s


class TestRedisCacheStore:
    def test_import_error_without_redis(self):
        """Clear ImportError when redis is not available."""
        redis_mod = sys.modules.get("redis")
        sys.modules["redis"] = None  # type: ignore[assignment]
        try:
            from taskdocs.cache.redis_store import RedisCacheStore
            with pytest.raises(ImportError, match="redis"):
                RedisCacheStore(redis_url="redis://localhost")
        finally:
            if redis_mod is not None:
                sys.modules["redis"] = redis_mod
            else:
                sys.modules.pop("redis", None)

    @pytest.mark.asyncio
    async def test_put_and_get_all(self, store, fake_redis):
        await store.put("T1", 1, b"\x00img1", {"page": 1}, stored_at=NOW)
        await store.put("T1", 0, b"img0", {"page": 0}, stored_at=NOW)

        docs = await store.get_all("T1")
        assert [d.index for d in docs] == [0, 1]
        assert docs[1].image_blob == b"\x00img1"
        assert docs[1].metadata == {"page": 1}
        assert docs[0].stored_at == NOW
        assert b"T1:0" in fake_redis.zsets["taskdocs:stored_at"]

    @pytest.mark.asyncio
    async def test_get_all_skips_vanished_hash(self, store, fake_redis):
        await store.put("T1", 0, b"a", None)
        fake_redis.sadd("taskdocs:task:T1", "5")
        docs = await store.get_all("T1")
        assert [d.index for d in docs] == [0]

    @pytest.mark.asyncio
    async def test_clear_task(self, store, fake_redis):
        await store.put("T1", 0, b"a", None)
        await store.put("T1", 1, b"b", None)
        await store.put("T2", 0, b"c", None)

        assert await store.clear_task("T1") == 2
        assert await store.get_all("T1") == []
        assert len(await store.get_all("T2")) == 1
        assert set(fake_redis.zsets["taskdocs:stored_at"]) == {b"T2:0"}

    @pytest.mark.asyncio
    async def test_sweep_older_than(self, store):
        await store.put("T1", 0, b"old", None, stored_at=NOW - timedelta(days=10))
        await store.put("T1", 1, b"new", None, stored_at=NOW)

        assert await store.sweep_older_than(NOW - timedelta(days=7)) == 1
        assert [d.index for d in await store.get_all("T1")] == [1]

    def test_close(self, store, fake_redis):
        store.close()
        assert fake_redis.closed is True
