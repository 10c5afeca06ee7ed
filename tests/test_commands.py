# tests/test_commands.py

from __future__ import annotations

import pytest

from tasksmart.cli.commands import CommandRegistry
from tasksmart.cli.commands import registry as default_registry
from tasksmart.connectors.console_connector import handle_line
from tasksmart.core.errors import RetryableStoreError
from tasksmart.core.session import SessionMode


@pytest.mark.asyncio
async def test_command_registry_routes_and_passes_emit(state) -> None:
    reg = CommandRegistry()
    notes: list[str] = []

    async def handler(state, args, emit):
        if emit is not None:
            emit("note")
        return "args=" + ",".join(args)

    reg.register("a", handler, "a", aliases=["alpha"])

    assert await reg.handle(state, "/a x y", emit=notes.append) == "args=x,y"
    assert await reg.handle(state, "/ALPHA") == "args="
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")


@pytest.mark.asyncio
async def test_store_errors_become_replies(state) -> None:
    reg = CommandRegistry()

    async def flaky(state, args, emit):
        raise RetryableStoreError("HTTP 503")

    reg.register("flaky", flaky, "flaky")
    reply = await reg.handle(state, "/flaky")
    assert reply is not None and "Try again" in reply


@pytest.mark.asyncio
async def test_console_flow_guest_then_register(state) -> None:
    assert "Not signed in" in await handle_line(state, "/list")

    assert "Guest mode on" in await handle_line(state, "/guest")
    assert "Added" in await handle_line(state, "buy milk tomorrow")
    assert "Added" in await handle_line(state, "/add urgent: finish the client report")

    listing = await handle_line(state, "/list work")
    assert "finish the client report" in listing
    assert "buy milk" not in listing

    stats = await handle_line(state, "/stats")
    assert "Guest tasks on device: 2" in stats

    reply = await handle_line(state, "/register alice")
    assert "Welcome, alice." in reply
    assert "2 tasks saved to your account." in reply
    assert state.session.mode is SessionMode.AUTHENTICATED

    listing = await handle_line(state, "/list")
    assert "buy milk" in listing and "client report" in listing


@pytest.mark.asyncio
async def test_console_task_commands(state) -> None:
    await handle_line(state, "/guest")
    await handle_line(state, "/add water plants")
    task = (await state.manager.list())[0]

    assert "Done" in await handle_line(state, f"/done {task.id}")
    assert "Reopened" in await handle_line(state, f"/undo #{task.id}")
    assert "No task" in await handle_line(state, "/done -999")
    assert "Usage" in await handle_line(state, "/rm")
    assert "Deleted" in await handle_line(state, f"/rm {task.id}")
    assert "Removed 0" in await handle_line(state, "/clear")


@pytest.mark.asyncio
async def test_login_logout_and_help(state) -> None:
    assert "Signed in as bob" in await handle_line(state, "/login bob")
    assert "signed in as bob" in await handle_line(state, "/status")
    assert "Signed out" in await handle_line(state, "/logout")
    assert state.session.mode is SessionMode.ANONYMOUS

    help_text = await default_registry.handle(state, "/help")
    assert help_text is not None and "/register" in help_text


@pytest.mark.asyncio
async def test_summarize_and_suggest_without_ai(state) -> None:
    summary = await handle_line(state, "/summarize " + "word " * 40)
    assert summary.startswith("Summary (truncated):")

    suggestions = await handle_line(state, "/suggest plan the offsite")
    assert "Follow up on: plan the offsite" in suggestions


@pytest.mark.asyncio
async def test_prefs_command_sets_guest_defaults(state) -> None:
    await handle_line(state, "/guest")
    assert "Default category: Personal" in await handle_line(state, "/prefs")

    reply = await handle_line(state, "/prefs category work")
    assert "Default category: Work" in reply
    assert "Unknown priority" in await handle_line(state, "/prefs priority urgent")
    assert "AI features: OFF" in await handle_line(state, "/prefs ai off")
    assert "Usage" in await handle_line(state, "/prefs color blue")

    added = await handle_line(state, "buy milk")
    assert "(Work, Medium)" in added


@pytest.mark.asyncio
async def test_register_reports_a_failed_refresh(state) -> None:
    await handle_line(state, "/guest")
    await handle_line(state, "/add water plants")
    state.gateway.fail_list = True

    reply = await handle_line(state, "/register ivy")

    assert "1 task saved to your account." in reply
    assert "could not be refreshed" in reply
