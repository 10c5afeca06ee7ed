# tests/fakes.py

from __future__ import annotations

import asyncio
from typing import Any

from tasksmart.core.errors import RetryableStoreError
from tasksmart.core.ports import ChatMessage, TaskGateway
from tasksmart.tasks.task_models import TaskDraft, TaskRecord


class MemoryKeyValueStore:
    """Dict-backed KeyValueStore (stands in for on-device storage)."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Returns a predefined text, raises `error`, or sleeps `delay` seconds first
    """

    def __init__(self, next_text: str = "ok", *, error: Exception | None = None, delay: float = 0.0) -> None:
        self.next_text = next_text
        self.error = error
        self.delay = delay
        self.calls: list[tuple[list[ChatMessage], str]] = []

    async def complete(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        *,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> str:
        self.calls.append((messages, system_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.next_text


class FlakyGateway:
    """
    Wraps a real TaskGateway.

    - create_task fails for the listed call numbers (1-based)
    - list_tasks fails while `fail_list` is set
    """

    def __init__(self, inner: TaskGateway, *, fail_on_create: set[int] | None = None) -> None:
        self.inner = inner
        self.fail_on_create = set(fail_on_create or ())
        self.create_calls = 0
        self.fail_list = False

    async def list_tasks(self, token: str) -> list[TaskRecord]:
        if self.fail_list:
            raise RetryableStoreError("Task service error (HTTP 503); try again.")
        return await self.inner.list_tasks(token)

    async def create_task(self, token: str, draft: TaskDraft) -> TaskRecord:
        self.create_calls += 1
        if self.create_calls in self.fail_on_create:
            raise RetryableStoreError("Task service error (HTTP 503); try again.")
        return await self.inner.create_task(token, draft)

    async def update_task(self, token: str, task_id: int, changes: dict[str, Any]) -> TaskRecord:
        return await self.inner.update_task(token, task_id, changes)

    async def complete_task(self, token: str, task_id: int, completed: bool) -> TaskRecord:
        return await self.inner.complete_task(token, task_id, completed)

    async def delete_task(self, token: str, task_id: int) -> None:
        await self.inner.delete_task(token, task_id)

    async def clear_completed(self, token: str) -> int:
        return await self.inner.clear_completed(token)


class RecordingUsage:
    def __init__(self) -> None:
        self.features: list[str] = []

    def record(self, feature: str) -> None:
        self.features.append(feature)
