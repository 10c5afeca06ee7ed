# tests/test_task_models.py

from __future__ import annotations

import pytest

from tasksmart.core.errors import TaskValidationError
from tasksmart.tasks.task_models import (
    Category,
    Priority,
    TaskDraft,
    TaskRecord,
    normalize_title,
    truncate,
    validate_changes,
    validate_draft,
)


def test_enums_parse_case_insensitively_and_reject_unknown() -> None:
    assert Category.parse("work") is Category.WORK
    assert Priority.parse(" HIGH ") is Priority.HIGH
    assert Category.parse("Shopping") is None
    assert Priority.parse(None) is None


def test_validate_draft_defaults_and_rejections() -> None:
    draft = validate_draft({"title": "  Buy milk  "})
    assert draft == TaskDraft(title="Buy milk", category=Category.PERSONAL, priority=Priority.MEDIUM)

    with pytest.raises(TaskValidationError) as ei:
        validate_draft({"title": "   "})
    assert ei.value.field == "title"

    with pytest.raises(TaskValidationError) as ei:
        validate_draft({"title": "x", "category": "Errands"})
    assert ei.value.field == "category"


def test_validate_changes_rejects_non_editable_fields() -> None:
    assert validate_changes({"dueDate": "Tomorrow"}) == {"due_date": "Tomorrow"}
    with pytest.raises(TaskValidationError):
        validate_changes({"owner_key": "someone-else"})
    with pytest.raises(TaskValidationError):
        validate_changes({"completed": "yes"})


def test_title_helpers() -> None:
    assert normalize_title("  call   mom.  ") == "call mom"
    long = "a" * 150
    out = truncate(long, 100)
    assert len(out) == 100
    assert out.endswith("...")
    assert truncate("short", 100) == "short"


def test_record_wire_format_is_camel_case() -> None:
    rec = TaskRecord(
        id=-1,
        owner_key="Guest123456",
        title="Pay rent",
        category=Category.IMPORTANT,
        priority=Priority.HIGH,
        completed=False,
        created_at=10.0,
        updated_at=11.0,
        due_date="Friday",
    )
    wire = rec.to_wire()
    assert wire["userId"] == "Guest123456"
    assert wire["dueDate"] == "Friday"
    assert wire["category"] == "Important"
    assert TaskRecord.from_wire(wire) == rec


def test_from_wire_rejects_bad_payloads() -> None:
    with pytest.raises(TaskValidationError):
        TaskRecord.from_wire({"title": "no id"})
    with pytest.raises(TaskValidationError):
        TaskRecord.from_wire({"id": 1, "title": "x", "priority": "Urgent"})
    with pytest.raises(TaskValidationError):
        TaskRecord.from_wire(["not", "a", "dict"])  # type: ignore[arg-type]


def test_from_wire_accepts_epoch_and_iso_timestamps() -> None:
    base = {"id": 1, "title": "x", "category": "Work", "priority": "Low"}

    iso = TaskRecord.from_wire({**base, "createdAt": "2024-05-01T10:00:00.000Z", "updatedAt": "2024-05-01T12:00:00"})
    assert iso.created_at == 1714557600.0
    assert iso.updated_at == 1714557600.0 + 7200

    epoch = TaskRecord.from_wire({**base, "createdAt": 12.5, "updatedAt": "13"})
    assert (epoch.created_at, epoch.updated_at) == (12.5, 13.0)

    garbage = TaskRecord.from_wire({**base, "createdAt": "yesterday", "updatedAt": True})
    assert (garbage.created_at, garbage.updated_at) == (0.0, 0.0)
