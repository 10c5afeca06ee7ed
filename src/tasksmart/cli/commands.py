# src/tasksmart/cli/commands.py

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Awaitable, Callable

from ..core.errors import (
    AuthorizationError,
    MigrationInProgressError,
    RetryableStoreError,
    TaskStoreError,
    TaskValidationError,
)
from ..core.session import SessionMode
from ..core.state import AppState
from ..tasks.migration import MigrationRecord
from ..tasks.task_models import Category, Priority, TaskRecord

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return await handler(state, args, emit)
        except TaskStoreError as e:
            return describe_store_error(e)
        except MigrationInProgressError as e:
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def describe_store_error(e: TaskStoreError) -> str:
    if isinstance(e, AuthorizationError):
        return f"Not signed in: {e}. Use /guest, /login or /register."
    if isinstance(e, TaskValidationError):
        return f"Invalid {e.field}: {e.message}"
    if isinstance(e, RetryableStoreError):
        return f"Task service unavailable ({e}). Try again in a moment."
    return f"Task operation failed: {e}"


def format_task(task: TaskRecord) -> str:
    mark = "x" if task.completed else " "
    line = f"[{mark}] #{task.id} {task.title} ({task.category}, {task.priority})"
    if task.due_date:
        line += f" due {task.due_date}"
    return line


def _parse_id(args: list[str]) -> int | None:
    if not args:
        return None
    try:
        return int(args[0].lstrip("#"))
    except ValueError:
        return None


def _emit(emit: CommandEmitter | None, text: str) -> None:
    if emit:
        with contextlib.suppress(Exception):
            emit(text)


def _describe_migration(record: MigrationRecord) -> str:
    lines = [record.summary()]
    for failure in record.failures:
        lines.append(f"  - {failure.title!r}: {failure.reason}")
    if record.refresh_error:
        lines.append(f"Task list could not be refreshed ({record.refresh_error}); use /list to reload.")
    return "\n".join(lines)


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help() + "\nAny other line is added as a new task."


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    who = {
        SessionMode.AUTHENTICATED: f"signed in as {session.principal}",
        SessionMode.GUEST: f"guest ({session.guest_id})",
        SessionMode.ANONYMOUS: "not signed in",
    }[session.mode]
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    ai = "ON" if getattr(state.settings, "ai_enabled", False) else "OFF"
    return (
        "Status:\n"
        f"  Session: {who}\n"
        f"  Backend: {session.backend_kind()}\n"
        f"  Server mode: {getattr(state.settings, 'server_mode', 'local')}\n"
        f"  AI: {ai} (models: {models or '-'})"
    )


async def cmd_guest(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    try:
        guest_id = state.session.enter_guest_mode()
    except RuntimeError as e:
        return str(e)
    await state.manager.refresh()
    return f"Guest mode on as {guest_id}. Tasks are stored on this device only."


def _account_token(state: AppState, args: list[str]) -> tuple[str, str] | str:
    """Resolve (token, principal) from args: local mode issues, http mode expects one."""
    if not args:
        return "Usage: /login <name> [token]"
    principal = args[0]
    if state.tokens is not None:
        return state.tokens.issue(principal), principal
    if len(args) < 2:
        return "This server needs a bearer token: /login <name> <token>"
    return args[1], principal


async def cmd_register(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /register <name> [token]          -> sign up and move guest tasks to the account
    /register <name> [token] --keep   -> sign up, leave guest tasks on this device
    """
    transfer = "--keep" not in args
    args = [a for a in args if a != "--keep"]
    resolved = _account_token(state, args)
    if isinstance(resolved, str):
        return resolved.replace("/login", "/register")
    token, principal = resolved

    pending = state.guest_store.stats().task_count if transfer else 0
    if pending:
        _emit(emit, f"Transferring {pending} guest task(s) to your account...")

    record = await state.upgrade.complete_registration(token, principal, transfer=transfer)
    logger.debug("Registration finished principal=%s transfer=%s", principal, transfer)

    head = f"Welcome, {principal}."
    if not transfer:
        return f"{head} Guest tasks were left on this device."
    return f"{head}\n{_describe_migration(record)}"


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    resolved = _account_token(state, args)
    if isinstance(resolved, str):
        return resolved
    token, principal = resolved
    state.session.sign_in(token, principal)
    tasks = await state.manager.refresh()
    return f"Signed in as {principal}. {len(tasks)} task(s) in your account."


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.session.is_authenticated:
        return "Not signed in."
    token = state.session.token
    state.session.sign_out()
    if state.tokens is not None and token:
        state.tokens.revoke(token)
    state.manager.cache.invalidate()
    return "Signed out. Use /guest to keep working on this device."


async def cmd_retry(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.session.is_authenticated:
        return "Sign in first, then /retry moves the remaining guest tasks."
    return _describe_migration(await state.upgrade.retry())


async def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /list               -> all tasks
    /list work          -> filter by category
    /list high          -> filter by priority
    """
    if args:
        value = args[0]
        if Category.parse(value) is not None:
            tasks = await state.manager.list_by_category(value)
        elif Priority.parse(value) is not None:
            tasks = await state.manager.list_by_priority(value)
        else:
            return "Usage: /list [personal|work|important|high|medium|low]"
    else:
        tasks = await state.manager.list()

    if not tasks:
        return "No tasks."
    return "\n".join(format_task(t) for t in tasks)


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    text = " ".join(args).strip()
    if not text:
        return "Usage: /add <task text>"
    return await add_task_text(state, text)


async def add_task_text(state: AppState, text: str) -> str:
    task = await state.manager.process(text)
    return f"Added {format_task(task)}"


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /done <id>"
    task = await state.manager.complete(task_id, True)
    return f"Done: {format_task(task)}" if task else f"No task #{task_id}."


async def cmd_undo(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /undo <id>"
    task = await state.manager.complete(task_id, False)
    return f"Reopened: {format_task(task)}" if task else f"No task #{task_id}."


async def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /rm <id>"
    deleted = await state.manager.delete(task_id)
    return f"Deleted task #{task_id}." if deleted else f"No task #{task_id}."


async def cmd_clear(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    removed = await state.manager.clear_completed()
    return f"Removed {removed} completed task(s)."


async def cmd_summarize(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    text = " ".join(args).strip()
    if not text:
        return "Usage: /summarize <text>"
    summary = await state.manager.summarize(text)
    out = f"Summary ({summary.source}): {summary.text}"
    if summary.note:
        out += f"\nNote: {summary.note}"
    return out


async def cmd_suggest(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    text = " ".join(args).strip()
    if not text:
        return "Usage: /suggest <task text>"
    drafts = await state.manager.suggest(text)
    if not drafts:
        return "No suggestions."
    lines = ["Suggestions:"]
    for i, d in enumerate(drafts, start=1):
        lines.append(f"{i}. {d.title} ({d.category}, {d.priority})")
    return "\n".join(lines)


async def cmd_prefs(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /prefs                      -> show guest preferences
    /prefs category work        -> default category for new guest tasks
    /prefs priority high        -> default priority for new guest tasks
    /prefs ai on|off            -> AI summaries and suggestions in guest mode
    """
    store = state.manager.guest_settings
    if store is None:
        return "Guest preferences are not available."

    if args:
        if len(args) != 2:
            return "Usage: /prefs [category <name> | priority <level> | ai on|off]"
        key, value = args[0].lower(), args[1]
        try:
            if key == "category":
                store.update(default_category=value)
            elif key == "priority":
                store.update(default_priority=value)
            elif key == "ai" and value.lower() in ("on", "off"):
                store.update(enable_ai_features=value.lower() == "on")
            else:
                return "Usage: /prefs [category <name> | priority <level> | ai on|off]"
        except ValueError as e:
            return str(e)

    prefs = store.get()
    return (
        "Guest preferences:\n"
        f"  Default category: {prefs.default_category}\n"
        f"  Default priority: {prefs.default_priority}\n"
        f"  AI features: {'ON' if prefs.enable_ai_features else 'OFF'}"
    )


async def cmd_stats(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    stats = state.guest_store.stats()
    lines = [
        "Storage:",
        f"  Guest tasks on device: {stats.task_count} ({stats.human_size})",
    ]
    if state.usage is not None:
        day_ago = time.time() - 24 * 3600
        owner = state.session.owner_key()
        lines.append(f"  AI requests (24h): {state.usage.count(owner, since=day_ago)}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session, backend and AI status.")
registry.register("guest", cmd_guest, help_text="Continue as guest (tasks stay on this device).")
registry.register(
    "register",
    cmd_register,
    help_text="Create an account: /register <name> [token] [--keep].",
)
registry.register("login", cmd_login, help_text="Sign in: /login <name> [token].")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register("retry", cmd_retry, help_text="Retry transferring guest tasks left behind.")
registry.register("list", cmd_list, help_text="List tasks: /list [category|priority].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task from free text: /add <text>.")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <id>.")
registry.register("undo", cmd_undo, help_text="Mark a task not completed: /undo <id>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["del"])
registry.register("clear", cmd_clear, help_text="Delete all completed tasks.")
registry.register("summarize", cmd_summarize, help_text="Summarize text: /summarize <text>.")
registry.register("suggest", cmd_suggest, help_text="Suggest related tasks: /suggest <text>.")
registry.register("prefs", cmd_prefs, help_text="Guest preferences: /prefs [category|priority|ai <value>].")
registry.register("stats", cmd_stats, help_text="Guest storage and AI usage stats.")
