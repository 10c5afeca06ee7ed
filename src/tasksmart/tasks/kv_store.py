# src/tasksmart/tasks/kv_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """
    On-device key-value byte store backed by a single SQLite table.

    Semantics are deliberately minimal (get/set/remove, no cross-key transactions):
    callers serialize their own values and must tolerate garbage on read.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "device.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteKeyValueStore ready db=%s", self._db_path)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> bytes | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            if row is None:
                return None
            value = row[0]
            return value.encode("utf-8") if isinstance(value, str) else bytes(value)
        finally:
            conn.close()

    def set(self, key: str, value: bytes) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, sqlite3.Binary(value), time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    def remove(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()
