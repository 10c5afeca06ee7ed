# src/tasksmart/tasks/migration.py

"""
Guest -> account migration.

MigrationCoordinator.migrate() runs once right after registration succeeds:
it reads the guest tasks through export_for_transfer(), writes them one by one
through the server store, and clears guest data only if every item made it.
A failed item never aborts the run; it is reported in the MigrationRecord and
guest data is kept so a later run can try again.

Known gap: there is no idempotency key, so re-running after a partial failure
creates the already-migrated items a second time.

AccountUpgrade is the registration flow around it: one upgrade in flight at a
time, and the authenticated list is only refreshed after migration finished.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..core.errors import AuthorizationError, MigrationInProgressError, RetryableStoreError
from ..core.session import SessionState
from .guest_store import GuestTaskStore
from .server_store import ServerTaskStore
from .task_manager import TaskManager

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MigrationFailure:
    index: int
    title: str
    reason: str


@dataclass(slots=True)
class MigrationRecord:
    attempted: int = 0
    succeeded: int = 0
    failures: list[MigrationFailure] = field(default_factory=list)
    guest_cleared: bool = False
    # set when the post-migration list refresh failed; the writes above still stand
    refresh_error: str | None = None

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def complete(self) -> bool:
        return self.succeeded == self.attempted

    def summary(self) -> str:
        if self.attempted == 0:
            return "No guest tasks to transfer."
        if self.complete:
            noun = "task" if self.succeeded == 1 else "tasks"
            return f"{self.succeeded} {noun} saved to your account."
        return (
            f"{self.succeeded} of {self.attempted} tasks transferred; "
            f"{self.failed} still need transferring. You can retry later."
        )


class MigrationCoordinator:
    """
    Drains the guest store into the server store.

    Assumes single-caller discipline (see AccountUpgrade); no internal locking.
    """

    def __init__(
        self,
        session: SessionState,
        guest_store: GuestTaskStore,
        server_store: ServerTaskStore,
    ) -> None:
        self._session = session
        self._guest = guest_store
        self._server = server_store

    async def migrate(self) -> MigrationRecord:
        if not self._session.is_authenticated:
            raise AuthorizationError("Migration needs a verified account session.")

        drafts = await self._guest.export_for_transfer()
        record = MigrationRecord(attempted=len(drafts))
        if not drafts:
            logger.info("Migration: no guest tasks for principal=%s", self._session.principal)
            return record

        for index, draft in enumerate(drafts):
            try:
                await self._server.create(draft)
            except Exception as e:
                reason = str(e) or e.__class__.__name__
                record.failures.append(MigrationFailure(index=index, title=draft.title, reason=reason))
                logger.warning("Migration: item %d (%r) failed: %s", index, draft.title, reason)
                continue
            record.succeeded += 1

        if record.complete:
            await self._guest.clear_all(forget_identity=True)
            self._session.forget_guest_identity()
            record.guest_cleared = True

        logger.info(
            "Migration finished principal=%s attempted=%d succeeded=%d guest_cleared=%s",
            self._session.principal,
            record.attempted,
            record.succeeded,
            record.guest_cleared,
        )
        return record


class AccountUpgrade:
    """Registration flow: sign in -> migrate -> refresh, one at a time."""

    def __init__(
        self,
        session: SessionState,
        coordinator: MigrationCoordinator,
        manager: TaskManager,
    ) -> None:
        self._session = session
        self._coordinator = coordinator
        self._manager = manager
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def _refresh_after(self, record: MigrationRecord) -> None:
        try:
            await self._manager.refresh()
        except RetryableStoreError as e:
            record.refresh_error = str(e) or e.__class__.__name__
            logger.warning("Task list refresh after migration failed: %s", record.refresh_error)

    async def complete_registration(
        self,
        token: str,
        principal: str,
        *,
        transfer: bool = True,
    ) -> MigrationRecord:
        """
        Call after the identity broker confirmed the registration.

        transfer=False keeps guest data on-device untouched.
        """
        if self._in_flight:
            raise MigrationInProgressError("An account upgrade is already running.")
        self._in_flight = True
        try:
            self._session.sign_in(token, principal)
            record = await self._coordinator.migrate() if transfer else MigrationRecord()
            await self._refresh_after(record)
            return record
        finally:
            self._in_flight = False

    async def retry(self) -> MigrationRecord:
        """Re-run migration for guest data left behind by a partial failure."""
        if self._in_flight:
            raise MigrationInProgressError("An account upgrade is already running.")
        self._in_flight = True
        try:
            record = await self._coordinator.migrate()
            await self._refresh_after(record)
            return record
        finally:
            self._in_flight = False
