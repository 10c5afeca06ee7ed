# src/tasksmart/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..llm.usage import UsageLedger
from ..tasks.account_repo import TokenRegistry
from ..tasks.guest_store import GuestTaskStore
from ..tasks.migration import AccountUpgrade
from ..tasks.task_manager import TaskManager
from .session import SessionState


@dataclass
class AppState:
    settings: Any
    session: SessionState
    manager: TaskManager
    upgrade: AccountUpgrade
    guest_store: GuestTaskStore

    # Present only when the account repository runs in-process (server_mode=local).
    tokens: TokenRegistry | None = None
    usage: UsageLedger | None = None
    gateway: Any = None
