# src/tasksmart/tasks/server_store.py

"""
Authenticated server task store.

ServerTaskStore mirrors the guest store's shape; the durable side is reached
through a TaskGateway (HTTP API or in-process repository). The bearer token is
read from the session on every call; the core only attaches it.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import (
    AuthorizationError,
    RetryableStoreError,
    TaskNotFoundError,
    TaskValidationError,
)
from ..core.ports import TaskGateway
from ..core.session import SessionState
from .task_models import TaskDraft, TaskRecord, validate_changes, validate_draft

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 425, 429, 500, 502, 503, 504}


class ServerTaskStore:
    def __init__(self, session: SessionState, gateway: TaskGateway) -> None:
        self._session = session
        self._gateway = gateway

    def _token(self) -> str:
        token = self._session.token
        if not self._session.is_authenticated or not token:
            raise AuthorizationError("No verified account session; sign in to use the account store.")
        return token

    async def list(self) -> list[TaskRecord]:
        records = await self._gateway.list_tasks(self._token())
        return sorted(records, key=lambda r: (r.created_at, r.id))

    async def create(self, draft: TaskDraft) -> TaskRecord:
        draft = validate_draft(draft)
        return await self._gateway.create_task(self._token(), draft)

    async def update(self, task_id: int, changes: dict[str, Any]) -> TaskRecord | None:
        clean = validate_changes(changes)
        try:
            return await self._gateway.update_task(self._token(), task_id, clean)
        except TaskNotFoundError:
            return None

    async def complete(self, task_id: int, completed: bool) -> TaskRecord | None:
        token = self._token()
        try:
            return await self._gateway.complete_task(token, task_id, completed)
        except TaskNotFoundError:
            return None

    async def delete(self, task_id: int) -> bool:
        try:
            await self._gateway.delete_task(self._token(), task_id)
        except TaskNotFoundError:
            return False
        return True

    async def clear_completed(self) -> int:
        return await self._gateway.clear_completed(self._token())


def _changes_to_wire(changes: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, value in changes.items():
        key = "dueDate" if name == "due_date" else name
        out[key] = value.value if hasattr(value, "value") else value
    return out


class HttpTaskGateway:
    """
    TaskGateway over the REST task API (`/api/tasks`).

    Status mapping:
    - 404 -> TaskNotFoundError
    - 401/403 -> AuthorizationError
    - 400/422 -> TaskValidationError
    - 408/425/429/5xx, transport errors, timeouts -> RetryableStoreError
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        *,
        json: Any = None,
        task_id: int | None = None,
    ) -> Any:
        try:
            resp = await self._client.request(
                method,
                url,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            raise RetryableStoreError(f"Task service timed out ({method} {url}).") from e
        except httpx.TransportError as e:
            raise RetryableStoreError(f"Task service unreachable ({method} {url}): {e}") from e

        status = resp.status_code
        if status == 404:
            raise TaskNotFoundError(task_id if task_id is not None else -1)
        if status in (401, 403):
            raise AuthorizationError(f"Task service rejected the credential (HTTP {status}).")
        if status in (400, 422):
            raise TaskValidationError("request", _error_message(resp))
        if status in _RETRYABLE_STATUS or status >= 500:
            logger.info("Task service transient failure %s %s -> HTTP %s", method, url, status)
            raise RetryableStoreError(f"Task service error (HTTP {status}); try again.")
        if status >= 400:
            raise RuntimeError(f"Unexpected task service response HTTP {status}: {_error_message(resp)}")

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RetryableStoreError("Task service returned a non-JSON body.") from e

    @staticmethod
    def _record(data: Any) -> TaskRecord:
        try:
            return TaskRecord.from_wire(data)
        except TaskValidationError as e:
            raise RetryableStoreError(f"Task service returned a malformed task ({e}).") from e

    async def list_tasks(self, token: str) -> list[TaskRecord]:
        data = await self._request("GET", "/api/tasks", token)
        if not isinstance(data, list):
            raise RetryableStoreError("Task service returned a malformed task list.")
        return [self._record(item) for item in data]

    async def create_task(self, token: str, draft: TaskDraft) -> TaskRecord:
        data = await self._request("POST", "/api/tasks", token, json=draft.to_wire())
        return self._record(data)

    async def update_task(self, token: str, task_id: int, changes: dict[str, Any]) -> TaskRecord:
        data = await self._request(
            "PUT", f"/api/tasks/{int(task_id)}", token, json=_changes_to_wire(changes), task_id=task_id
        )
        return self._record(data)

    async def complete_task(self, token: str, task_id: int, completed: bool) -> TaskRecord:
        data = await self._request(
            "PATCH",
            f"/api/tasks/{int(task_id)}/complete",
            token,
            json={"completed": bool(completed)},
            task_id=task_id,
        )
        return self._record(data)

    async def delete_task(self, token: str, task_id: int) -> None:
        await self._request("DELETE", f"/api/tasks/{int(task_id)}", token, task_id=task_id)

    async def clear_completed(self, token: str) -> int:
        data = await self._request("DELETE", "/api/tasks/completed", token)
        if not isinstance(data, dict):
            return 0
        count = data.get("count", 0)
        return count if isinstance(count, int) and not isinstance(count, bool) else 0


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code}"
