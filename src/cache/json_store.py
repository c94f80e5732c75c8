# src/cache/json_store.py - v1
"""File-based document store (CACHE_BACKEND=json).

Layout under CACHE_ROOT:
    <quoted task_id>/<index>.bin   raw image bytes
    <quoted task_id>/<index>.json  {"metadata": ..., "stored_at": iso8601}
"""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote

from taskdocs.cache.base_cache_store import BaseCacheStore
from taskdocs.cache.models import CachedDocument, ensure_utc, utcnow

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based document store using one directory per task."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get_all(self, task_id: str) -> list[CachedDocument]:
        task_dir = self._task_dir(task_id)
        if not task_dir.is_dir():
            return []

        docs: list[CachedDocument] = []
        for meta_path in task_dir.glob("*.json"):
            doc = self._read_entry(task_id, meta_path)
            if doc is not None:
                docs.append(doc)
        docs.sort(key=lambda d: d.index)
        return docs

    async def put(
        self,
        task_id: str,
        index: int,
        blob: bytes,
        metadata: Any,
        stored_at: datetime | None = None,
    ) -> None:
        task_dir = self._task_dir(task_id)
        task_dir.mkdir(parents=True, exist_ok=True)
        ts = ensure_utc(stored_at or utcnow())
        (task_dir / f"{index}.bin").write_bytes(blob)
        (task_dir / f"{index}.json").write_text(
            json.dumps({"metadata": metadata, "stored_at": ts.isoformat()}),
            encoding="utf-8",
        )

    async def clear_task(self, task_id: str) -> int:
        task_dir = self._task_dir(task_id)
        if not task_dir.is_dir():
            return 0
        removed = len(list(task_dir.glob("*.json")))
        shutil.rmtree(task_dir)
        return removed

    async def sweep_older_than(self, cutoff: datetime) -> int:
        cutoff = ensure_utc(cutoff)
        removed = 0
        for task_dir in [p for p in self._root.iterdir() if p.is_dir()]:
            for meta_path in task_dir.glob("*.json"):
                stored_at = self._read_stored_at(meta_path)
                if stored_at is not None and stored_at >= cutoff:
                    continue
                meta_path.unlink(missing_ok=True)
                meta_path.with_suffix(".bin").unlink(missing_ok=True)
                removed += 1
            if not any(task_dir.iterdir()):
                task_dir.rmdir()
        return removed

    def _task_dir(self, task_id: str) -> Path:
        # One path segment per task id, never "." or ".." nor an empty name.
        safe_id = quote(task_id, safe="")
        if safe_id in ("", ".", ".."):
            safe_id = safe_id.replace(".", "%2E") or "%00"
        task_dir = self._root / safe_id
        if task_dir.resolve().parent != self._root.resolve():
            raise ValueError(f"Task id {task_id!r} escapes the cache root")
        return task_dir

    def _read_entry(self, task_id: str, meta_path: Path) -> CachedDocument | None:
        try:
            index = int(meta_path.stem)
            data = json.loads(meta_path.read_text(encoding="utf-8"))
            blob = meta_path.with_suffix(".bin").read_bytes()
            return CachedDocument(
                task_id=task_id,
                index=index,
                image_blob=blob,
                metadata=data.get("metadata"),
                stored_at=datetime.fromisoformat(data["stored_at"]),
            )
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Failed to read cache entry %s: %s", meta_path, e)
            return None

    @staticmethod
    def _read_stored_at(meta_path: Path) -> datetime | None:
        # Unreadable entries count as expired.
        try:
            data = json.loads(meta_path.read_text(encoding="utf-8"))
            return ensure_utc(datetime.fromisoformat(data["stored_at"]))
        except (OSError, ValueError, KeyError):
            return None
