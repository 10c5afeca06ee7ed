# src/tasksmart/tasks/task_cache.py

from __future__ import annotations

from collections.abc import Callable, Iterable

from ..core.session import BackendKind
from .task_models import TaskRecord

CacheScope = tuple[BackendKind, str | None]


class TaskCache:
    """
    Shared in-memory view of the current task list.

    Mutations are applied here right after the durable write so the next read
    reflects them without a refetch. The cache belongs to one scope
    (backend + owner); touching it with another scope drops the old content.
    """

    def __init__(self) -> None:
        self._scope: CacheScope | None = None
        self._items: dict[int, TaskRecord] = {}

    @property
    def scope(self) -> CacheScope | None:
        return self._scope

    def _enter(self, scope: CacheScope) -> None:
        if scope != self._scope:
            self._scope = scope
            self._items = {}

    def replace(self, scope: CacheScope, records: Iterable[TaskRecord]) -> None:
        self._scope = scope
        self._items = {r.id: r for r in records}

    def upsert(self, scope: CacheScope, record: TaskRecord) -> None:
        self._enter(scope)
        self._items[record.id] = record

    def remove(self, scope: CacheScope, task_id: int) -> None:
        self._enter(scope)
        self._items.pop(task_id, None)

    def remove_where(self, scope: CacheScope, predicate: Callable[[TaskRecord], bool]) -> None:
        self._enter(scope)
        self._items = {k: v for k, v in self._items.items() if not predicate(v)}

    def invalidate(self) -> None:
        self._scope = None
        self._items = {}

    def view(self, scope: CacheScope | None = None) -> list[TaskRecord]:
        if scope is not None and scope != self._scope:
            return []
        return sorted(self._items.values(), key=lambda r: (r.created_at, abs(r.id)))
