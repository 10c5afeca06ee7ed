# tests/test_guest_store.py

from __future__ import annotations

import json

import pytest

from tasksmart.core.session import GUEST_ID_KEY, SessionState
from tasksmart.tasks.guest_store import GUEST_TASKS_KEY, GuestTaskStore
from tasksmart.tasks.task_models import Category, Priority, TaskDraft


@pytest.mark.asyncio
async def test_create_assigns_negative_unique_ids_owned_by_guest(
    guest_store: GuestTaskStore, session: SessionState
) -> None:
    guest_id = session.enter_guest_mode()

    a = await guest_store.create(TaskDraft(title="A"))
    b = await guest_store.create(TaskDraft(title="B", category=Category.WORK))

    assert a.id < 0 and b.id < 0
    assert a.id != b.id
    assert a.owner_key == guest_id == b.owner_key
    assert [t.title for t in await guest_store.list()] == ["A", "B"]


@pytest.mark.asyncio
async def test_ids_are_not_reused_after_delete(guest_store: GuestTaskStore) -> None:
    a = await guest_store.create(TaskDraft(title="A"))
    assert await guest_store.delete(a.id) is True
    b = await guest_store.create(TaskDraft(title="B"))
    assert b.id != a.id


@pytest.mark.asyncio
async def test_update_complete_and_missing_ids(guest_store: GuestTaskStore) -> None:
    t = await guest_store.create(TaskDraft(title="Write notes"))

    updated = await guest_store.update(t.id, {"priority": "High", "dueDate": "Tomorrow"})
    assert updated is not None
    assert updated.priority is Priority.HIGH
    assert updated.due_date == "Tomorrow"
    assert updated.created_at == t.created_at

    done = await guest_store.complete(t.id, True)
    assert done is not None and done.completed is True
    again = await guest_store.complete(t.id, True)
    assert again is not None and again.completed is True
    assert len(await guest_store.list()) == 1

    assert await guest_store.update(-999, {"title": "nope"}) is None
    assert await guest_store.delete(-999) is False


@pytest.mark.asyncio
async def test_clear_completed_keeps_open_tasks(guest_store: GuestTaskStore) -> None:
    a = await guest_store.create(TaskDraft(title="A"))
    await guest_store.create(TaskDraft(title="B"))
    await guest_store.complete(a.id, True)

    assert await guest_store.clear_completed() == 1
    assert [t.title for t in await guest_store.list()] == ["B"]


@pytest.mark.asyncio
async def test_unreadable_storage_reads_as_empty(kv, guest_store: GuestTaskStore) -> None:
    kv.set(GUEST_TASKS_KEY, b"{not json")
    assert await guest_store.list() == []

    # malformed items are skipped, valid ones survive
    kv.set(
        GUEST_TASKS_KEY,
        json.dumps(
            [
                {"id": -1, "title": "ok", "category": "Work", "priority": "Low", "createdAt": 1},
                {"id": -2, "title": "", "category": "Work"},
                {"title": "no id"},
            ]
        ).encode("utf-8"),
    )
    tasks = await guest_store.list()
    assert [t.title for t in tasks] == ["ok"]


@pytest.mark.asyncio
async def test_export_and_clear_all(kv, guest_store: GuestTaskStore, session: SessionState) -> None:
    session.enter_guest_mode()
    await guest_store.create(TaskDraft(title="A", notes="details"))

    drafts = await guest_store.export_for_transfer()
    assert drafts == [TaskDraft(title="A", notes="details")]

    stats = guest_store.stats()
    assert stats.task_count == 1
    assert stats.bytes_used > 0
    assert stats.human_size.endswith("bytes")

    await guest_store.clear_all(forget_identity=True)
    assert await guest_store.list() == []
    assert kv.get(GUEST_ID_KEY) is None
