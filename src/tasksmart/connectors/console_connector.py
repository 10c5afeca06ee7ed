# src/tasksmart/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import add_task_text, describe_store_error
from ..cli.commands import registry as command_registry
from ..core.errors import TaskStoreError
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def handle_line(state: AppState, line: str) -> str:
    """One console line -> one reply. Slash commands go to the registry, anything else is a new task."""

    def emit(text: str) -> None:
        # Immediate feedback for long operations (e.g. migration)
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        reply = await command_registry.handle(state, line, emit=emit)
        if reply is not None:
            return reply
        return await add_task_text(state, line)
    except TaskStoreError as e:
        return describe_store_error(e)
    except Exception:
        logger.exception("Console handler crashed.")
        return "Internal error while handling input."


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (session=%s).", state.session.mode)
    _print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> You: ")).strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        _print_ts(await handle_line(state, user_input))

    logger.info("Console connector finished.")
