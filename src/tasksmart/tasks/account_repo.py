# src/tasksmart/tasks/account_repo.py

from __future__ import annotations

import contextlib
import logging
import secrets
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..core.errors import AuthorizationError, RetryableStoreError, TaskNotFoundError
from .task_models import Category, Priority, TaskDraft, TaskRecord, validate_changes, validate_draft

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccountTaskRepository:
    """
    Durable, multi-principal task repository (the server side of the account store).

    Every read/write is scoped to a principal. A record owned by someone else is
    reported as TaskNotFoundError, exactly like a missing one; the precise reason
    only goes to the log.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "accounts.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("AccountTaskRepository ready db=%s total=%s", self._db_path, self.count_tasks())

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_key TEXT NOT NULL,
                    title TEXT NOT NULL,
                    category TEXT NOT NULL,
                    priority TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    due_date TEXT,
                    notes TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("AccountTaskRepository migration: added column %s", name)

            add_col("due_date", "TEXT")
            add_col("notes", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_key, created_at)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> TaskRecord:
        return TaskRecord(
            id=int(row["id"]),
            owner_key=str(row["owner_key"]),
            title=str(row["title"]),
            category=Category.parse(row["category"]) or Category.PERSONAL,
            priority=Priority.parse(row["priority"]) or Priority.MEDIUM,
            completed=bool(row["completed"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            due_date=row["due_date"],
            notes=row["notes"],
        )

    def _owned_row(self, conn: sqlite3.Connection, principal: str, task_id: int) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        if row is None:
            logger.debug("Task id=%s not found (principal=%s)", task_id, principal)
            raise TaskNotFoundError(task_id)
        if row["owner_key"] != principal:
            logger.warning(
                "Task id=%s is owned by another principal; denying access to principal=%s",
                task_id,
                principal,
            )
            raise TaskNotFoundError(task_id)
        return row

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def list_tasks(self, principal: str) -> list[TaskRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE owner_key = ? ORDER BY created_at ASC, id ASC",
                (principal,),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def get_task(self, principal: str, task_id: int) -> TaskRecord:
        conn = self._get_conn()
        try:
            return self._row_to_task(self._owned_row(conn, principal, task_id))
        finally:
            conn.close()

    def create_task(self, principal: str, draft: TaskDraft) -> TaskRecord:
        draft = validate_draft(draft)
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO tasks(
                    owner_key, title, category, priority, completed,
                    due_date, notes, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    principal,
                    draft.title,
                    draft.category.value,
                    draft.priority.value,
                    int(draft.completed),
                    draft.due_date,
                    draft.notes,
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            logger.info("Task created id=%s principal=%s", rowid, principal)
            return self._row_to_task(conn.execute("SELECT * FROM tasks WHERE id = ?", (rowid,)).fetchone())
        finally:
            conn.close()

    def update_task(self, principal: str, task_id: int, changes: dict[str, Any]) -> TaskRecord:
        clean = validate_changes(changes)
        conn = self._get_conn()
        try:
            self._owned_row(conn, principal, task_id)

            fields: list[str] = []
            params: list[Any] = []
            for name, value in clean.items():
                fields.append(f"{name} = ?")
                if name == "completed":
                    params.append(int(value))
                elif name in ("category", "priority"):
                    params.append(value.value)
                else:
                    params.append(value)

            fields.append("updated_at = ?")
            params.append(time.time())
            params.append(int(task_id))

            conn.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
            logger.info("Task updated id=%s principal=%s fields=%s", task_id, principal, sorted(clean))
            return self._row_to_task(self._owned_row(conn, principal, task_id))
        finally:
            conn.close()

    def complete_task(self, principal: str, task_id: int, completed: bool) -> TaskRecord:
        return self.update_task(principal, task_id, {"completed": completed})

    def delete_task(self, principal: str, task_id: int) -> None:
        conn = self._get_conn()
        try:
            self._owned_row(conn, principal, task_id)
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            logger.info("Task deleted id=%s principal=%s", task_id, principal)
        finally:
            conn.close()

    def clear_completed(self, principal: str) -> int:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE owner_key = ? AND completed = 1", (principal,))
            conn.commit()
            logger.info("Cleared %s completed task(s) principal=%s", cur.rowcount, principal)
            return cur.rowcount
        finally:
            conn.close()


class TokenRegistry:
    """
    In-process bearer token -> principal table.

    Stands in for the identity broker when the account repository runs in the
    same process (local mode, tests). The core never issues tokens itself.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, str] = {}

    def issue(self, principal: str) -> str:
        token = secrets.token_urlsafe(24)
        self._tokens[token] = principal
        return token

    def revoke(self, token: str) -> None:
        self._tokens.pop(token, None)

    def verify(self, token: str) -> str | None:
        return self._tokens.get(token)


class LocalTaskGateway:
    """TaskGateway that talks to an AccountTaskRepository in the same process."""

    def __init__(self, repository: AccountTaskRepository, tokens: TokenRegistry) -> None:
        self._repo = repository
        self._tokens = tokens

    def _principal(self, token: str) -> str:
        principal = self._tokens.verify(token)
        if principal is None:
            raise AuthorizationError("Bearer token was rejected.")
        return principal

    def _run(self, fn: Callable[..., T], token: str, *args: Any) -> T:
        principal = self._principal(token)
        try:
            return fn(principal, *args)
        except sqlite3.OperationalError as e:
            # locked / unavailable database: the caller may retry
            raise RetryableStoreError(f"Task database unavailable: {e}") from e

    async def list_tasks(self, token: str) -> list[TaskRecord]:
        return self._run(self._repo.list_tasks, token)

    async def create_task(self, token: str, draft: TaskDraft) -> TaskRecord:
        return self._run(self._repo.create_task, token, draft)

    async def update_task(self, token: str, task_id: int, changes: dict[str, Any]) -> TaskRecord:
        return self._run(self._repo.update_task, token, task_id, changes)

    async def complete_task(self, token: str, task_id: int, completed: bool) -> TaskRecord:
        return self._run(self._repo.complete_task, token, task_id, completed)

    async def delete_task(self, token: str, task_id: int) -> None:
        self._run(self._repo.delete_task, token, task_id)

    async def clear_completed(self, token: str) -> int:
        return self._run(self._repo.clear_completed, token)
