# src/tasksmart/llm/usage.py

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)


class UsageLedger:
    """
    AI usage ledger for quota accounting (one row per successful AI call).

    owner: callable returning the current owner key (principal or guest id),
    read at record time so the ledger follows session changes.
    """

    def __init__(self, db_path: str | Path, owner: Callable[[], str | None]) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._owner = owner
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ai_usage (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_key TEXT,
                    feature TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_ai_usage_owner ON ai_usage(owner_key, created_at)")
            conn.commit()
        finally:
            conn.close()

    def _get_conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path), timeout=30.0)

    def record(self, feature: str) -> None:
        owner = self._owner()
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO ai_usage(owner_key, feature, created_at) VALUES (?, ?, ?)",
                (owner, feature, time.time()),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("AI usage recorded feature=%s owner=%s", feature, owner)

    def count(self, owner_key: str | None = None, *, since: float | None = None) -> int:
        sql = "SELECT COUNT(*) FROM ai_usage WHERE 1 = 1"
        params: list[object] = []
        if owner_key is not None:
            sql += " AND owner_key = ?"
            params.append(owner_key)
        if since is not None:
            sql += " AND created_at >= ?"
            params.append(float(since))
        conn = self._get_conn()
        try:
            (n,) = conn.execute(sql, params).fetchone()
            return int(n)
        finally:
            conn.close()
