# tests/test_session.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasksmart.core.session import (
    GUEST_ID_KEY,
    BackendKind,
    SessionMode,
    SessionState,
    generate_guest_id,
)
from tasksmart.tasks.kv_store import SqliteKeyValueStore

from .fakes import MemoryKeyValueStore


def test_guest_id_format() -> None:
    gid = generate_guest_id()
    assert gid.startswith("Guest")
    assert len(gid) == len("Guest") + 6
    assert gid[5:].isdigit()


def test_modes_are_mutually_exclusive() -> None:
    session = SessionState(MemoryKeyValueStore())
    assert session.mode is SessionMode.ANONYMOUS

    guest_id = session.enter_guest_mode()
    assert session.is_guest and not session.is_authenticated
    assert session.backend_kind() is BackendKind.GUEST
    assert session.owner_key() == guest_id

    session.sign_in("tok", "alice")
    assert session.is_authenticated and not session.is_guest
    assert session.backend_kind() is BackendKind.SERVER
    assert session.owner_key() == "alice"
    # identity survives sign-in until migration clears it
    assert session.guest_id == guest_id

    with pytest.raises(RuntimeError):
        session.enter_guest_mode()


def test_guest_mode_and_identity_persist_across_restarts(tmp_path: Path) -> None:
    kv = SqliteKeyValueStore(tmp_path / "device.sqlite3")
    first = SessionState(kv)
    guest_id = first.enter_guest_mode()

    second = SessionState(SqliteKeyValueStore(tmp_path / "device.sqlite3"))
    assert second.is_guest
    assert second.guest_id == guest_id

    second.forget_guest_identity()
    assert kv.get(GUEST_ID_KEY) is None
    assert SessionState(kv).mode is SessionMode.ANONYMOUS


def test_sqlite_kv_store_roundtrip(tmp_path: Path) -> None:
    kv = SqliteKeyValueStore(tmp_path / "kv.sqlite3")
    assert kv.get("missing") is None
    kv.set("k", b"v1")
    kv.set("k", b"v2")
    assert kv.get("k") == b"v2"
    kv.remove("k")
    assert kv.get("k") is None
