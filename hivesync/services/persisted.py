"""Key-value stores that keep a copy of synced data across restarts."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

DB_PATH = Path(__file__).resolve().parent.parent.parent / "hive_cache.db"


class PersistedCache(Protocol):
    """Async key-value contract; values are JSON-compatible dicts."""

    async def read(self, key: str) -> dict[str, Any] | None: ...

    async def write(self, key: str, value: dict[str, Any]) -> None: ...

    async def clear(self, key: str) -> None: ...


class MemoryPersistedCache:
    """Dict-backed store for tests and sessions without a disk."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def read(self, key: str) -> dict[str, Any] | None:
        raw = self._store.get(key)
        return json.loads(raw) if raw is not None else None

    async def write(self, key: str, value: dict[str, Any]) -> None:
        # Serialized so callers never share mutable state with the store.
        self._store[key] = json.dumps(value)

    async def clear(self, key: str) -> None:
        self._store.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._store)


class SQLitePersistedCache:
    """Stores JSON documents in a single SQLite table."""

    def __init__(self, db_path: Path | str = DB_PATH) -> None:
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_cache (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    async def read(self, key: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT value FROM kv_cache WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    async def write(self, key: str, value: dict[str, Any]) -> None:
        self._conn.execute("""
            INSERT INTO kv_cache (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
        """, (key, json.dumps(value), datetime.now().isoformat()))
        self._conn.commit()

    async def clear(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()
