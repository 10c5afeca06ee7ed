# src/tasksmart/tasks/task_models.py

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from ..core.errors import TaskValidationError

TITLE_MAX_LENGTH = 100
ELLIPSIS = "..."


class Category(StrEnum):
    PERSONAL = "Personal"
    WORK = "Work"
    IMPORTANT = "Important"

    @classmethod
    def parse(cls, raw: Any) -> Category | None:
        """Case-insensitive lookup; None for anything outside the set."""
        if isinstance(raw, cls):
            return raw
        s = str(raw or "").strip().lower()
        for member in cls:
            if member.value.lower() == s:
                return member
        return None


class Priority(StrEnum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def parse(cls, raw: Any) -> Priority | None:
        if isinstance(raw, cls):
            return raw
        s = str(raw or "").strip().lower()
        for member in cls:
            if member.value.lower() == s:
                return member
        return None


@dataclass(slots=True)
class TaskDraft:
    """A task without identity or timestamps (ingestion output, transfer unit)."""

    title: str
    category: Category = Category.PERSONAL
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    due_date: str | None = None
    notes: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "category": self.category.value,
            "priority": self.priority.value,
            "completed": self.completed,
            "dueDate": self.due_date,
            "notes": self.notes,
        }


@dataclass(slots=True)
class TaskRecord:
    id: int
    owner_key: str
    title: str
    category: Category
    priority: Priority
    completed: bool
    created_at: float
    updated_at: float
    due_date: str | None = None
    notes: str | None = None

    def to_draft(self) -> TaskDraft:
        return TaskDraft(
            title=self.title,
            category=self.category,
            priority=self.priority,
            completed=self.completed,
            due_date=self.due_date,
            notes=self.notes,
        )

    def with_changes(self, changes: Mapping[str, Any], *, now: float) -> TaskRecord:
        return replace(self, **dict(changes), updated_at=now)

    def to_wire(self) -> dict[str, Any]:
        out = self.to_draft().to_wire()
        out.update(
            id=self.id,
            userId=self.owner_key,
            createdAt=self.created_at,
            updatedAt=self.updated_at,
        )
        return out

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> TaskRecord:
        """
        Build a record from camelCase JSON (guest storage / HTTP API).

        Raises TaskValidationError for anything that would break record invariants.
        """
        if not isinstance(data, Mapping):
            raise TaskValidationError("task", "expected an object")
        try:
            task_id = int(data["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise TaskValidationError("id", "missing or not an integer") from e

        draft = validate_draft(
            {
                "title": data.get("title"),
                "category": data.get("category"),
                "priority": data.get("priority"),
                "completed": data.get("completed", False),
                "due_date": data.get("dueDate"),
                "notes": data.get("notes"),
            }
        )
        created_at = _as_timestamp(data.get("createdAt"))
        updated_at = _as_timestamp(data.get("updatedAt"), default=created_at)
        return cls(
            id=task_id,
            owner_key=str(data.get("userId") or ""),
            title=draft.title,
            category=draft.category,
            priority=draft.priority,
            completed=draft.completed,
            created_at=created_at,
            updated_at=updated_at,
            due_date=draft.due_date,
            notes=draft.notes,
        )


_EDITABLE_FIELDS = {f.name for f in fields(TaskDraft)}
_WIRE_ALIASES = {"dueDate": "due_date"}


def _as_timestamp(raw: Any, default: float = 0.0) -> float:
    """Epoch seconds from a number or an ISO-8601 string (the REST API sends ISO)."""
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, (int, float)):
        return float(raw)
    s = str(raw).strip()
    try:
        return float(s)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return default
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _optional_text(name: str, raw: Any) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise TaskValidationError(name, "must be text")
    s = raw.strip()
    return s or None


def normalize_title(title: str) -> str:
    """Collapse whitespace and strip trailing punctuation."""
    if not title:
        return ""
    title = re.sub(r"\s+", " ", title).strip()
    return re.sub(r"[.,;:]+$", "", title).strip()


def truncate(text: str, limit: int = TITLE_MAX_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(ELLIPSIS))].rstrip() + ELLIPSIS


def _validate_field(name: str, raw: Any) -> Any:
    if name == "title":
        if not isinstance(raw, str) or not raw.strip():
            raise TaskValidationError("title", "must be non-empty text")
        return raw.strip()
    if name == "category":
        cat = Category.parse(raw)
        if cat is None:
            allowed = ", ".join(c.value for c in Category)
            raise TaskValidationError("category", f"must be one of {allowed}")
        return cat
    if name == "priority":
        pri = Priority.parse(raw)
        if pri is None:
            allowed = ", ".join(p.value for p in Priority)
            raise TaskValidationError("priority", f"must be one of {allowed}")
        return pri
    if name == "completed":
        if not isinstance(raw, bool):
            raise TaskValidationError("completed", "must be a boolean")
        return raw
    return _optional_text(name, raw)


def validate_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate a partial update. Accepts snake_case or camelCase keys.

    Unknown fields are rejected (ids, owners and timestamps are never editable).
    """
    out: dict[str, Any] = {}
    for key, raw in changes.items():
        name = _WIRE_ALIASES.get(key, key)
        if name not in _EDITABLE_FIELDS:
            raise TaskValidationError(str(key), "is not an editable field")
        out[name] = _validate_field(name, raw)
    return out


def validate_draft(data: TaskDraft | Mapping[str, Any]) -> TaskDraft:
    """Validate a full draft; category/priority default to Personal/Medium when absent."""
    if isinstance(data, TaskDraft):
        data = {f: getattr(data, f) for f in _EDITABLE_FIELDS}

    merged: dict[str, Any] = {
        "category": Category.PERSONAL,
        "priority": Priority.MEDIUM,
        "completed": False,
    }
    merged.update({k: v for k, v in data.items() if v is not None or k in ("due_date", "dueDate", "notes")})
    if "title" not in merged:
        raise TaskValidationError("title", "is required")
    return TaskDraft(**validate_changes(merged))
