"""Account store: a cache of loaded accounts backed by the database."""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from loginvault.domain.errors import StoreError
from loginvault.domain.schemas.account import Account, AccountSnapshot
from loginvault.storage import database
from loginvault.storage.models import AccountRecord, utc_now

logger = logging.getLogger(__name__)


class AccountStore:
    """Loaded accounts for connected players, plus their persistence.

    Accounts are loaded when a player joins and dropped when they quit.
    `lookup` only sees loaded accounts; it never touches the database.
    Saves for the same identity are serialized, and a snapshot older than
    one already written is skipped.

    Revisions keep counting across quit and rejoin, so a save still queued
    from an earlier session can never overwrite a later one.
    """

    def __init__(self) -> None:
        self._loaded: dict[str, Account] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._persisted_revision: dict[str, int] = {}
        self._last_revision: dict[str, int] = {}

    def lookup(self, identity: str) -> Account | None:
        """Return the loaded account for `identity`, if any."""
        return self._loaded.get(identity)

    async def load(self, identity: str) -> Account | None:
        """Read an account from the database into the cache.

        Returns the already-loaded account if there is one.
        """
        if identity in self._loaded:
            return self._loaded[identity]

        try:
            async with database.async_session() as db:
                result = await db.execute(
                    select(AccountRecord).where(AccountRecord.identity == identity)
                )
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load account {identity}: {e}") from e

        if record is None:
            return None

        account = Account(
            identity=record.identity,
            username=record.username,
            password_hash=record.password_hash,
            email=record.email,
            revision=self._last_revision.get(identity, 0),
        )
        self._loaded[identity] = account
        logger.info(f"Loaded account {identity} ({record.username})")
        return account

    def unload(self, identity: str) -> None:
        """Drop a cached account. Unsaved in-memory changes are discarded."""
        account = self._loaded.pop(identity, None)
        if account is None:
            return

        self._last_revision[identity] = account.revision
        lock = self._locks.get(identity)
        if lock is not None and not lock.locked():
            del self._locks[identity]
        logger.info(f"Unloaded account {identity}")

    async def save(self, snapshot: AccountSnapshot) -> None:
        """Write an account snapshot to the database.

        Raises:
            StoreError: If the database write fails.
        """
        lock = self._locks.setdefault(snapshot.identity, asyncio.Lock())
        async with lock:
            persisted = self._persisted_revision.get(snapshot.identity)
            if persisted is not None and snapshot.revision <= persisted:
                logger.debug(
                    f"Skipping stale save for {snapshot.identity} "
                    f"(revision {snapshot.revision} <= {persisted})"
                )
                return

            try:
                async with database.async_session() as db:
                    record = await db.get(AccountRecord, snapshot.identity)
                    if record is None:
                        record = AccountRecord(identity=snapshot.identity)
                    record.username = snapshot.username
                    record.password_hash = snapshot.password_hash
                    record.email = snapshot.email
                    record.updated_at = utc_now()
                    db.add(record)
                    await db.commit()
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to save account {snapshot.identity}: {e}") from e

            self._persisted_revision[snapshot.identity] = snapshot.revision
