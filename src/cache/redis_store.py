# src/cache/redis_store.py - v1
"""Redis-based document store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable when several processes on one host share the cache.

Keys:
    taskdocs:doc:<task_id>:<index>   hash {image, metadata, stored_at}
    taskdocs:task:<task_id>          set of indices
    taskdocs:stored_at               sorted set "<task_id>:<index>" -> epoch
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from taskdocs.cache.base_cache_store import BaseCacheStore
from taskdocs.cache.models import CachedDocument, ensure_utc, utcnow

logger = logging.getLogger(__name__)

_KEY_PREFIX = "taskdocs:"
_AGE_INDEX_KEY = "taskdocs:stored_at"


def _doc_key(task_id: str, index: int) -> str:
    return f"{_KEY_PREFIX}doc:{task_id}:{index}"


def _task_key(task_id: str) -> str:
    return f"{_KEY_PREFIX}task:{task_id}"


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class RedisCacheStore(BaseCacheStore):
    """Redis-backed document store."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        # Blobs are binary: keep raw bytes in responses.
        self._client = redis.Redis.from_url(redis_url, decode_responses=False)

    async def get_all(self, task_id: str) -> list[CachedDocument]:
        indices = sorted(int(_text(i)) for i in self._client.smembers(_task_key(task_id)))
        docs: list[CachedDocument] = []
        for index in indices:
            data = self._client.hgetall(_doc_key(task_id, index))
            if not data:
                continue
            try:
                docs.append(
                    CachedDocument(
                        task_id=task_id,
                        index=index,
                        image_blob=data[b"image"],
                        metadata=json.loads(_text(data[b"metadata"])),
                        stored_at=datetime.fromtimestamp(
                            float(_text(data[b"stored_at"])), tz=timezone.utc
                        ),
                    )
                )
            except (KeyError, ValueError) as e:
                logger.warning(
                    "Failed to deserialize cache entry %s/%s: %s", task_id, index, e
                )
        return docs

    async def put(
        self,
        task_id: str,
        index: int,
        blob: bytes,
        metadata: Any,
        stored_at: datetime | None = None,
    ) -> None:
        ts = ensure_utc(stored_at or utcnow()).timestamp()
        self._client.hset(
            _doc_key(task_id, index),
            mapping={
                "image": blob,
                "metadata": json.dumps(metadata),
                "stored_at": str(ts),
            },
        )
        self._client.sadd(_task_key(task_id), str(index))
        self._client.zadd(_AGE_INDEX_KEY, {f"{task_id}:{index}": ts})

    async def clear_task(self, task_id: str) -> int:
        indices = [int(_text(i)) for i in self._client.smembers(_task_key(task_id))]
        for index in indices:
            self._client.delete(_doc_key(task_id, index))
            self._client.zrem(_AGE_INDEX_KEY, f"{task_id}:{index}")
        self._client.delete(_task_key(task_id))
        return len(indices)

    async def sweep_older_than(self, cutoff: datetime) -> int:
        # Exclusive upper bound: entries stored exactly at cutoff survive.
        members = self._client.zrangebyscore(
            _AGE_INDEX_KEY, "-inf", f"({ensure_utc(cutoff).timestamp()}"
        )
        for member in members:
            task_id, _, index = _text(member).rpartition(":")
            self._client.delete(_doc_key(task_id, int(index)))
            self._client.srem(_task_key(task_id), index)
            self._client.zrem(_AGE_INDEX_KEY, _text(member))
        return len(members)

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
