# src/tasksmart/core/session.py

"""
Identity/session state.

One SessionState is created at process start and injected into the task manager
and the migration flow. It is only changed through its own methods.

Facts consumed by the core:
- is_authenticated: a verified account session exists (bearer token + principal)
- is_guest: guest mode is active
- guest_id: the on-device guest identity, if one was ever created

is_authenticated and is_guest are never both true.
"""

from __future__ import annotations

import logging
import secrets
from enum import StrEnum

from .ports import KeyValueStore

logger = logging.getLogger(__name__)

GUEST_ID_KEY = "tasksmart_guest_id"
GUEST_MODE_KEY = "tasksmart_guest_mode"


class SessionMode(StrEnum):
    ANONYMOUS = "anonymous"
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class BackendKind(StrEnum):
    GUEST = "guest"
    SERVER = "server"


def generate_guest_id() -> str:
    return f"Guest{100000 + secrets.randbelow(900000)}"


class GuestIdentity:
    """Locally generated, human-readable guest token persisted on-device."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    def get(self) -> str | None:
        raw = self._kv.get(GUEST_ID_KEY)
        if not raw:
            return None
        try:
            value = raw.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.warning("Stored guest id is not valid UTF-8; ignoring it.")
            return None
        return value or None

    def ensure(self) -> str:
        """Return the guest id, creating it on first use."""
        current = self.get()
        if current:
            return current
        new_id = generate_guest_id()
        self._kv.set(GUEST_ID_KEY, new_id.encode("utf-8"))
        logger.info("Created guest identity %s", new_id)
        return new_id

    def clear(self) -> None:
        self._kv.remove(GUEST_ID_KEY)


class SessionState:
    def __init__(self, kv: KeyValueStore, identity: GuestIdentity | None = None) -> None:
        self._kv = kv
        self._identity = identity or GuestIdentity(kv)
        self._token: str | None = None
        self._principal: str | None = None
        self._guest_active = kv.get(GUEST_MODE_KEY) == b"true"

    @property
    def identity(self) -> GuestIdentity:
        return self._identity

    @property
    def mode(self) -> SessionMode:
        if self._token is not None:
            return SessionMode.AUTHENTICATED
        if self._guest_active:
            return SessionMode.GUEST
        return SessionMode.ANONYMOUS

    @property
    def is_authenticated(self) -> bool:
        return self.mode is SessionMode.AUTHENTICATED

    @property
    def is_guest(self) -> bool:
        return self.mode is SessionMode.GUEST

    @property
    def guest_id(self) -> str | None:
        return self._identity.get()

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def principal(self) -> str | None:
        return self._principal

    def backend_kind(self) -> BackendKind:
        """Guest mode -> on-device store; everything else -> server (which enforces auth)."""
        if self.mode is SessionMode.GUEST:
            return BackendKind.GUEST
        return BackendKind.SERVER

    def owner_key(self) -> str | None:
        if self.is_authenticated:
            return self._principal
        if self.is_guest:
            return self.guest_id
        return None

    # ---- mutation API ----

    def enter_guest_mode(self) -> str:
        if self.is_authenticated:
            raise RuntimeError("Cannot enter guest mode while signed in; sign out first.")
        guest_id = self._identity.ensure()
        self._kv.set(GUEST_MODE_KEY, b"true")
        self._guest_active = True
        logger.info("Guest mode active guest_id=%s", guest_id)
        return guest_id

    def sign_in(self, token: str, principal: str) -> None:
        """
        Switch to an authenticated session.

        Guest data and the guest identity stay on-device until migration (or an
        explicit clear) removes them; only the guest-mode flag is dropped.
        """
        if not token or not principal:
            raise ValueError("token and principal are required")
        was_guest = self.is_guest
        self._token = token
        self._principal = principal
        self._guest_active = False
        self._kv.remove(GUEST_MODE_KEY)
        logger.info("Signed in principal=%s (was_guest=%s)", principal, was_guest)

    def sign_out(self) -> None:
        if self._principal:
            logger.info("Signed out principal=%s", self._principal)
        self._token = None
        self._principal = None

    def forget_guest_identity(self) -> None:
        self._identity.clear()
        self._kv.remove(GUEST_MODE_KEY)
        self._guest_active = False
        logger.info("Guest identity cleared.")
