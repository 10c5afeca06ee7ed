# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksmart.core.session import SessionState
from tasksmart.core.state import AppState
from tasksmart.ingestion.pipeline import IngestionPipeline
from tasksmart.tasks.account_repo import AccountTaskRepository, LocalTaskGateway, TokenRegistry
from tasksmart.tasks.guest_settings import GuestSettingsStore
from tasksmart.tasks.guest_store import GuestTaskStore
from tasksmart.tasks.migration import AccountUpgrade, MigrationCoordinator
from tasksmart.tasks.server_store import ServerTaskStore
from tasksmart.tasks.task_manager import TaskManager

from .fakes import FlakyGateway, MemoryKeyValueStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasksmart-test",
        server_mode="local",
        accounts_db_path=tmp_path / "accounts.sqlite3",
        ai_enabled=False,
        llm_models=[],
    )


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def session(kv: MemoryKeyValueStore) -> SessionState:
    return SessionState(kv)


@pytest.fixture()
def guest_store(kv: MemoryKeyValueStore, session: SessionState) -> GuestTaskStore:
    return GuestTaskStore(kv, session.identity)


@pytest.fixture()
def guest_settings(kv: MemoryKeyValueStore) -> GuestSettingsStore:
    return GuestSettingsStore(kv)


@pytest.fixture()
def tokens() -> TokenRegistry:
    return TokenRegistry()


@pytest.fixture()
def repository(settings: SimpleNamespace) -> AccountTaskRepository:
    return AccountTaskRepository(settings.accounts_db_path)


@pytest.fixture()
def gateway(repository: AccountTaskRepository, tokens: TokenRegistry) -> FlakyGateway:
    """Real in-process gateway; tests flip `fail_on_create` to inject failures."""
    return FlakyGateway(LocalTaskGateway(repository, tokens))


@pytest.fixture()
def server_store(session: SessionState, gateway: FlakyGateway) -> ServerTaskStore:
    return ServerTaskStore(session, gateway)


@pytest.fixture()
def manager(
    session: SessionState,
    guest_store: GuestTaskStore,
    server_store: ServerTaskStore,
    guest_settings: GuestSettingsStore,
) -> TaskManager:
    return TaskManager(
        session,
        guest_store=guest_store,
        server_store=server_store,
        pipeline=IngestionPipeline(),
        ai_enabled=False,
        guest_settings=guest_settings,
    )


@pytest.fixture()
def coordinator(
    session: SessionState,
    guest_store: GuestTaskStore,
    server_store: ServerTaskStore,
) -> MigrationCoordinator:
    return MigrationCoordinator(session, guest_store, server_store)


@pytest.fixture()
def upgrade(session: SessionState, coordinator: MigrationCoordinator, manager: TaskManager) -> AccountUpgrade:
    return AccountUpgrade(session, coordinator, manager)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    session: SessionState,
    manager: TaskManager,
    upgrade: AccountUpgrade,
    guest_store: GuestTaskStore,
    tokens: TokenRegistry,
    gateway: FlakyGateway,
) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: We keep the real SQLite account repository here because its
    correctness is part of what we want to test.
    """
    return AppState(
        settings=settings,
        session=session,
        manager=manager,
        upgrade=upgrade,
        guest_store=guest_store,
        tokens=tokens,
        gateway=gateway,
    )
