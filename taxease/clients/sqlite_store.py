"""SQLite-backed durable key-value storage for wizard progress and poller markers."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional


class SQLiteKeyValueStore:
    """String key to string value table, the on-device storage used by the client core."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path).expanduser()
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_items (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def set_item(self, key: str, value: str) -> None:
        if not key:
            raise ValueError("Storage key must be a non-empty string")
        updated_at = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_items (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, updated_at),
            )

    def get_item(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_items WHERE key = ?",
                (key,),
            ).fetchone()
        if not row:
            return None
        return row["value"]

    def remove_item(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv_items WHERE key = ?", (key,))

    def multi_remove(self, keys: Iterable[str]) -> None:
        with self._connect() as conn:
            conn.executemany(
                "DELETE FROM kv_items WHERE key = ?",
                [(key,) for key in keys],
            )

    def get_all_keys(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT key FROM kv_items ORDER BY key").fetchall()
        return [row["key"] for row in rows]


__all__ = ["SQLiteKeyValueStore"]
