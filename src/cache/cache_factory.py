# src/cache/cache_factory.py - v3
"""Factory for document store instantiation."""

from __future__ import annotations

from taskdocs.cache.base_cache_store import BaseCacheStore
from taskdocs.config.settings import Settings

_DEFAULT_CACHE_ROOT = "~/.taskdocs/cache"


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the configured document store backend.

    Args:
        settings: Application settings. Defaults to the SQLite backend.

    Returns:
        Configured BaseCacheStore implementation.
    """
    backend = "sqlite" if settings is None else settings.cache_backend
    cache_root = _DEFAULT_CACHE_ROOT if settings is None else str(settings.cache_root)

    if backend == "sqlite":
        from taskdocs.cache.sqlite_store import SqliteCacheStore
        return SqliteCacheStore(db_path=f"{cache_root}/taskdocs_cache.db")

    if backend == "json":
        from taskdocs.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_root=cache_root)

    if backend == "memory":
        from taskdocs.cache.memory_store import MemoryCacheStore
        return MemoryCacheStore()

    if backend == "redis":
        from taskdocs.cache.redis_store import RedisCacheStore
        if settings is None or not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisCacheStore(redis_url=settings.cache_redis_url)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
