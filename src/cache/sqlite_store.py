# src/cache/sqlite_store.py - v1
"""SQLite-based document store (CACHE_BACKEND=sqlite, default).

Uses stdlib sqlite3, no external dependency. Blobs are stored inline,
metadata as JSON text, stored_at as UTC epoch seconds.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from taskdocs.cache.base_cache_store import BaseCacheStore
from taskdocs.cache.models import CachedDocument, ensure_utc, utcnow

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    task_id TEXT NOT NULL,
    idx INTEGER NOT NULL,
    image BLOB NOT NULL,
    metadata TEXT,
    stored_at REAL NOT NULL,
    PRIMARY KEY (task_id, idx)
);
CREATE INDEX IF NOT EXISTS idx_documents_stored_at ON documents(stored_at);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed document store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get_all(self, task_id: str) -> list[CachedDocument]:
        """Return all documents of a task ordered by index."""
        cursor = self._conn.execute(
            "SELECT idx, image, metadata, stored_at FROM documents "
            "WHERE task_id = ? ORDER BY idx",
            (task_id,),
        )
        docs: list[CachedDocument] = []
        for idx, image, metadata, stored_at in cursor.fetchall():
            try:
                docs.append(
                    CachedDocument(
                        task_id=task_id,
                        index=idx,
                        image_blob=bytes(image),
                        metadata=json.loads(metadata) if metadata is not None else None,
                        stored_at=datetime.fromtimestamp(stored_at, tz=timezone.utc),
                    )
                )
            except (ValueError, TypeError) as e:
                logger.warning(
                    "Skipping unreadable cache row %s/%s: %s", task_id, idx, e
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
        """Store a document (upsert)."""
        ts = ensure_utc(stored_at or utcnow()).timestamp()
        self._conn.execute(
            """INSERT OR REPLACE INTO documents
               (task_id, idx, image, metadata, stored_at)
               VALUES (?, ?, ?, ?, ?)""",
            (task_id, index, sqlite3.Binary(blob), json.dumps(metadata), ts),
        )
        self._conn.commit()

    async def clear_task(self, task_id: str) -> int:
        cursor = self._conn.execute(
            "DELETE FROM documents WHERE task_id = ?", (task_id,)
        )
        self._conn.commit()
        return cursor.rowcount

    async def sweep_older_than(self, cutoff: datetime) -> int:
        cursor = self._conn.execute(
            "DELETE FROM documents WHERE stored_at < ?",
            (ensure_utc(cutoff).timestamp(),),
        )
        self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
