# src/tasksmart/tasks/guest_store.py

"""
Guest (on-device) task store.

All records live as one JSON list under a single key of the device key-value
store, plus a separate key holding the id sequence. IDs are negative and
strictly decreasing, so they never collide with server ids and are never
reused after a delete.

Reads are defensive: unparsable data means "no tasks" and malformed items are
skipped, so guest mode keeps working even after storage corruption.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from ..core.ports import KeyValueStore
from ..core.session import GuestIdentity
from .guest_settings import GUEST_SETTINGS_KEY
from .task_models import TaskDraft, TaskRecord, validate_changes, validate_draft

logger = logging.getLogger(__name__)

GUEST_TASKS_KEY = "tasksmart_guest_tasks"
GUEST_SEQ_KEY = "tasksmart_guest_seq"


@dataclass(slots=True, frozen=True)
class GuestStorageStats:
    task_count: int
    bytes_used: int

    @property
    def human_size(self) -> str:
        if self.bytes_used < 1024:
            return f"{self.bytes_used} bytes"
        if self.bytes_used < 1024 * 1024:
            return f"{self.bytes_used / 1024:.2f} KB"
        return f"{self.bytes_used / (1024 * 1024):.2f} MB"


class GuestTaskStore:
    def __init__(self, kv: KeyValueStore, identity: GuestIdentity) -> None:
        self._kv = kv
        self._identity = identity

    # ---- low-level helpers ----

    def _load(self) -> list[TaskRecord]:
        raw = self._kv.get(GUEST_TASKS_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Guest task data is unreadable; treating it as empty.")
            return []
        if not isinstance(data, list):
            logger.warning("Guest task data is not a list (%s); treating it as empty.", type(data).__name__)
            return []

        out: list[TaskRecord] = []
        seen: set[int] = set()
        for item in data:
            try:
                rec = TaskRecord.from_wire(item)
            except ValueError as e:
                logger.warning("Skipping malformed guest task: %s", e)
                continue
            if rec.id in seen:
                logger.warning("Skipping duplicate guest task id=%s", rec.id)
                continue
            seen.add(rec.id)
            out.append(rec)
        return out

    def _save(self, records: list[TaskRecord]) -> None:
        payload = json.dumps([r.to_wire() for r in records], ensure_ascii=False)
        self._kv.set(GUEST_TASKS_KEY, payload.encode("utf-8"))

    def _next_id(self, records: list[TaskRecord]) -> int:
        floor = min((r.id for r in records), default=0)
        raw = self._kv.get(GUEST_SEQ_KEY)
        try:
            last = int(raw.decode("utf-8")) if raw else 0
        except (UnicodeDecodeError, ValueError):
            last = 0
        next_id = min(floor, last, 0) - 1
        self._kv.set(GUEST_SEQ_KEY, str(next_id).encode("utf-8"))
        return next_id

    @staticmethod
    def _index_of(records: list[TaskRecord], task_id: int) -> int | None:
        for i, r in enumerate(records):
            if r.id == task_id:
                return i
        return None

    # ---- public API ----

    async def list(self) -> list[TaskRecord]:
        return self._load()

    async def create(self, draft: TaskDraft) -> TaskRecord:
        draft = validate_draft(draft)
        owner = self._identity.ensure()
        records = self._load()
        now = time.time()
        rec = TaskRecord(
            id=self._next_id(records),
            owner_key=owner,
            title=draft.title,
            category=draft.category,
            priority=draft.priority,
            completed=draft.completed,
            created_at=now,
            updated_at=now,
            due_date=draft.due_date,
            notes=draft.notes,
        )
        records.append(rec)
        self._save(records)
        logger.debug("Guest task added id=%s category=%s priority=%s", rec.id, rec.category, rec.priority)
        return rec

    async def update(self, task_id: int, changes: dict[str, Any]) -> TaskRecord | None:
        clean = validate_changes(changes)
        records = self._load()
        idx = self._index_of(records, task_id)
        if idx is None:
            return None
        records[idx] = records[idx].with_changes(clean, now=time.time())
        self._save(records)
        return records[idx]

    async def complete(self, task_id: int, completed: bool) -> TaskRecord | None:
        return await self.update(task_id, {"completed": completed})

    async def delete(self, task_id: int) -> bool:
        records = self._load()
        kept = [r for r in records if r.id != task_id]
        if len(kept) == len(records):
            return False
        self._save(kept)
        return True

    async def clear_completed(self) -> int:
        records = self._load()
        kept = [r for r in records if not r.completed]
        removed = len(records) - len(kept)
        if removed:
            self._save(kept)
        logger.info("Cleared %d completed guest tasks", removed)
        return removed

    async def clear_all(self, *, forget_identity: bool = False) -> None:
        self._kv.remove(GUEST_TASKS_KEY)
        self._kv.remove(GUEST_SEQ_KEY)
        if forget_identity:
            self._kv.remove(GUEST_SETTINGS_KEY)
            self._identity.clear()
        logger.info("Guest storage cleared (forget_identity=%s)", forget_identity)

    async def export_for_transfer(self) -> list[TaskDraft]:
        """Strip ids, owner and timestamps; the server assigns its own."""
        return [r.to_draft() for r in self._load()]

    def stats(self) -> GuestStorageStats:
        tasks_raw = self._kv.get(GUEST_TASKS_KEY) or b""
        id_raw = self._kv.get(GUEST_SEQ_KEY) or b""
        settings_raw = self._kv.get(GUEST_SETTINGS_KEY) or b""
        guest_id = self._identity.get() or ""
        total = len(tasks_raw) + len(id_raw) + len(settings_raw) + len(guest_id)
        total += len(GUEST_TASKS_KEY) + len(GUEST_SEQ_KEY) + len(GUEST_SETTINGS_KEY)
        return GuestStorageStats(task_count=len(self._load()), bytes_used=total)
