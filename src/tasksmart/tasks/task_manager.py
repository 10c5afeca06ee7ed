# src/tasksmart/tasks/task_manager.py

"""
Backend selector.

One task-operations interface for callers. Every call reads the session's
BackendKind and routes to the guest store or the server store; the choice is
never cached, so a guest -> registered switch takes effect on the very next
call. Anonymous sessions are routed to the server store, whose
AuthorizationError propagates to the caller.

The manager does not migrate guest data on its own; see tasks/migration.py.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..core.ports import TaskBackend
from ..core.session import BackendKind, SessionState
from ..ingestion.pipeline import IngestionPipeline
from ..llm.assist import Summarizer, Summary, TaskSuggester
from .guest_settings import GuestSettingsStore
from .task_cache import CacheScope, TaskCache
from .task_models import Category, Priority, TaskDraft, TaskRecord, validate_draft

logger = logging.getLogger(__name__)


class TaskManager:
    def __init__(
        self,
        session: SessionState,
        *,
        guest_store: TaskBackend,
        server_store: TaskBackend,
        pipeline: IngestionPipeline,
        summarizer: Summarizer | None = None,
        suggester: TaskSuggester | None = None,
        cache: TaskCache | None = None,
        ai_enabled: bool = True,
        guest_settings: GuestSettingsStore | None = None,
    ) -> None:
        self._session = session
        self._backends: dict[BackendKind, TaskBackend] = {
            BackendKind.GUEST: guest_store,
            BackendKind.SERVER: server_store,
        }
        self._pipeline = pipeline
        self._summarizer = summarizer or Summarizer(None)
        self._suggester = suggester or TaskSuggester(None)
        self._cache = cache or TaskCache()
        self._ai_enabled = ai_enabled
        self._guest_settings = guest_settings

    @property
    def cache(self) -> TaskCache:
        return self._cache

    @property
    def guest_settings(self) -> GuestSettingsStore | None:
        return self._guest_settings

    def backend_kind(self) -> BackendKind:
        return self._session.backend_kind()

    def _select(self) -> tuple[TaskBackend, CacheScope]:
        kind = self._session.backend_kind()
        scope: CacheScope = (kind, self._session.owner_key())
        if self._cache.scope is not None and self._cache.scope != scope:
            logger.debug("Backend scope changed %s -> %s; dropping cached view", self._cache.scope, scope)
            self._cache.invalidate()
        return self._backends[kind], scope

    def _touch_guest(self) -> None:
        if self._guest_settings is None or self.backend_kind() is not BackendKind.GUEST:
            return
        try:
            self._guest_settings.touch()
        except Exception:
            logger.exception("Failed to update guest lastActive.")

    def _assist_ai_allowed(self) -> bool:
        if not self._ai_enabled:
            return False
        if self._guest_settings is not None and self.backend_kind() is BackendKind.GUEST:
            return self._guest_settings.get().enable_ai_features
        return True

    # ---- reads ----

    async def list(self) -> list[TaskRecord]:
        backend, scope = self._select()
        records = await backend.list()
        self._cache.replace(scope, records)
        return records

    async def refresh(self) -> list[TaskRecord]:
        return await self.list()

    def snapshot(self) -> list[TaskRecord]:
        """Cached view for the current scope (empty if the scope changed since the last read)."""
        kind = self._session.backend_kind()
        return self._cache.view((kind, self._session.owner_key()))

    async def list_by_category(self, category: Category | str) -> list[TaskRecord]:
        wanted = Category.parse(category)
        return [r for r in await self.list() if r.category is wanted]

    async def list_by_priority(self, priority: Priority | str) -> list[TaskRecord]:
        wanted = Priority.parse(priority)
        return [r for r in await self.list() if r.priority is wanted]

    # ---- writes ----

    async def create(self, draft: TaskDraft | Mapping[str, Any]) -> TaskRecord:
        clean = validate_draft(draft)
        backend, scope = self._select()
        record = await backend.create(clean)
        self._cache.upsert(scope, record)
        self._touch_guest()
        return record

    async def process(self, raw_text: str) -> TaskRecord:
        """Ingest free text and create the resulting task in the current backend."""
        kind = self.backend_kind()
        use_ai = self._ai_enabled and kind is BackendKind.SERVER
        if kind is BackendKind.GUEST and self._guest_settings is not None:
            prefs = self._guest_settings.get()
            draft = await self._pipeline.process(
                raw_text,
                use_ai=False,
                default_category=prefs.default_category,
                default_priority=prefs.default_priority,
            )
        else:
            draft = await self._pipeline.process(raw_text, use_ai=use_ai)
        return await self.create(draft)

    async def update(self, task_id: int, changes: Mapping[str, Any]) -> TaskRecord | None:
        backend, scope = self._select()
        record = await backend.update(task_id, dict(changes))
        if record is None:
            self._cache.remove(scope, task_id)
        else:
            self._cache.upsert(scope, record)
            self._touch_guest()
        return record

    async def complete(self, task_id: int, completed: bool = True) -> TaskRecord | None:
        backend, scope = self._select()
        record = await backend.complete(task_id, completed)
        if record is None:
            self._cache.remove(scope, task_id)
        else:
            self._cache.upsert(scope, record)
            self._touch_guest()
        return record

    async def delete(self, task_id: int) -> bool:
        backend, scope = self._select()
        deleted = await backend.delete(task_id)
        self._cache.remove(scope, task_id)
        return deleted

    async def clear_completed(self) -> int:
        backend, scope = self._select()
        removed = await backend.clear_completed()
        self._cache.remove_where(scope, lambda r: r.completed)
        return removed

    # ---- AI helpers ----

    async def summarize(self, text: str) -> Summary:
        return await self._summarizer.summarize(text, use_ai=self._assist_ai_allowed())

    async def suggest(self, task_input: str, count: int = 3) -> list[TaskDraft]:
        return await self._suggester.suggest(task_input, count, use_ai=self._assist_ai_allowed())
