# src/tasksmart/core/errors.py

"""
Error taxonomy shared by both task backends.

- TaskValidationError: bad input, rejected before it reaches any store.
- TaskNotFoundError: missing id, or an id owned by another principal
  (both look the same to the caller).
- AuthorizationError: no verified session, or the credential was rejected.
- RetryableStoreError: network/backend trouble; the caller may try again.

Partial migration failures are not errors; see tasks/migration.py.
"""

from __future__ import annotations


class TaskStoreError(Exception):
    """Base class for task store failures."""

    retryable: bool = False


class TaskValidationError(TaskStoreError, ValueError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class TaskNotFoundError(TaskStoreError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class AuthorizationError(TaskStoreError):
    pass


class RetryableStoreError(TaskStoreError):
    retryable = True


class MigrationInProgressError(RuntimeError):
    """Raised when a second account upgrade starts while one is still running."""
