# src/tasksmart/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/network/LLM providers swappable and makes testing easier.
"""

from typing import Any, Protocol

from ..tasks.task_models import TaskDraft, TaskRecord

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class KeyValueStore(Protocol):
    """On-device byte store. No transactional guarantees across keys."""

    def get(self, key: str) -> bytes | None: ...
    def set(self, key: str, value: bytes) -> None: ...
    def remove(self, key: str) -> None: ...


class LLMClient(Protocol):
    """Chat completion client (OpenAI/OpenRouter-compatible)."""

    async def complete(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            *,
            json_mode: bool = False,
            max_tokens: int | None = None,
    ) -> str: ...


class UsageRecorder(Protocol):
    """Quota/usage accounting for successful AI calls."""

    def record(self, feature: str) -> None: ...


class TaskBackend(Protocol):
    """
    The task-operations shape shared by the guest and server stores.

    Missing ids (and ids owned by someone else) come back as None / False.
    """

    async def list(self) -> list[TaskRecord]: ...
    async def create(self, draft: TaskDraft) -> TaskRecord: ...
    async def update(self, task_id: int, changes: dict[str, Any]) -> TaskRecord | None: ...
    async def complete(self, task_id: int, completed: bool) -> TaskRecord | None: ...
    async def delete(self, task_id: int) -> bool: ...
    async def clear_completed(self) -> int: ...


class TaskGateway(Protocol):
    """
    Authenticated transport to the durable task service.

    Every call carries the caller's bearer token; implementations raise
    TaskNotFoundError, AuthorizationError or RetryableStoreError.
    """

    async def list_tasks(self, token: str) -> list[TaskRecord]: ...
    async def create_task(self, token: str, draft: TaskDraft) -> TaskRecord: ...
    async def update_task(self, token: str, task_id: int, changes: dict[str, Any]) -> TaskRecord: ...
    async def complete_task(self, token: str, task_id: int, completed: bool) -> TaskRecord: ...
    async def delete_task(self, token: str, task_id: int) -> None: ...
    async def clear_completed(self, token: str) -> int: ...
