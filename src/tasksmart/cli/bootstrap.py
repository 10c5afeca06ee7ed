# src/tasksmart/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState
  (device store, session, guest/server stores, ingestion, migration).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import LLMClient, TaskGateway
from ..core.session import SessionState
from ..core.state import AppState
from ..ingestion.pipeline import IngestionPipeline
from ..llm.assist import LLMTaskCategorizer, Summarizer, TaskSuggester
from ..llm.client import OpenRouterLLMClient, friendly_llm_error_message
from ..llm.usage import UsageLedger
from ..tasks.account_repo import AccountTaskRepository, LocalTaskGateway, TokenRegistry
from ..tasks.guest_settings import GuestSettingsStore
from ..tasks.guest_store import GuestTaskStore
from ..tasks.kv_store import SqliteKeyValueStore
from ..tasks.migration import AccountUpgrade, MigrationCoordinator
from ..tasks.server_store import HttpTaskGateway, ServerTaskStore
from ..tasks.task_manager import TaskManager

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.device_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.accounts_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.usage_db_path.parent.mkdir(parents=True, exist_ok=True)


def _build_llm(settings) -> LLMClient | None:
    if not settings.ai_enabled:
        logger.info("AI features disabled by settings.")
        return None
    try:
        return OpenRouterLLMClient(settings)
    except RuntimeError as e:
        # Local runs without an API key: heuristics and truncation only.
        logger.info("AI features unavailable: %s", friendly_llm_error_message(e))
        return None


def create_app(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    kv = SqliteKeyValueStore(settings.device_db_path)
    session = SessionState(kv)
    guest_store = GuestTaskStore(kv, session.identity)

    tokens: TokenRegistry | None = None
    gateway: TaskGateway
    if settings.server_mode == "http":
        gateway = HttpTaskGateway(settings.api_base_url, timeout_seconds=settings.server_timeout_seconds)
    else:
        tokens = TokenRegistry()
        gateway = LocalTaskGateway(AccountTaskRepository(settings.accounts_db_path), tokens)
    server_store = ServerTaskStore(session, gateway)

    llm = _build_llm(settings)
    usage = UsageLedger(settings.usage_db_path, owner=session.owner_key)
    pipeline = IngestionPipeline(
        LLMTaskCategorizer(llm, title_limit=settings.title_max_length) if llm is not None else None,
        usage=usage,
        ai_timeout_seconds=settings.ai_timeout_seconds,
        title_limit=settings.title_max_length,
    )

    manager = TaskManager(
        session,
        guest_store=guest_store,
        server_store=server_store,
        pipeline=pipeline,
        summarizer=Summarizer(llm, max_length=settings.summary_max_length),
        suggester=TaskSuggester(llm),
        ai_enabled=settings.ai_enabled,
        guest_settings=GuestSettingsStore(kv),
    )
    coordinator = MigrationCoordinator(session, guest_store, server_store)

    logger.info(
        "App ready (server_mode=%s ai=%s session=%s)",
        settings.server_mode,
        llm is not None,
        session.mode,
    )
    return AppState(
        settings=settings,
        session=session,
        manager=manager,
        upgrade=AccountUpgrade(session, coordinator, manager),
        guest_store=guest_store,
        tokens=tokens,
        usage=usage,
        gateway=gateway,
    )


async def shutdown_app(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    aclose = getattr(state.gateway, "aclose", None)
    if callable(aclose):
        try:
            await aclose()
        except Exception:
            logger.debug("Gateway close failed.", exc_info=True)
