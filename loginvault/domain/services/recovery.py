"""Self-service password recovery.

A player who is connected but cannot log in asks for a new password. After
the account checks pass, a temporary password is generated, mailed to the
address on file and installed as the account's credential.

Delivery and persistence run as two independent background jobs. The new
hash is assigned to the loaded account before either job runs, so the
rotation stands even if the mail never arrives.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from email.message import Message
from enum import Enum
from typing import Protocol

from loginvault.config import Settings
from loginvault.domain.errors import AbortReason, PreconditionError, StoreError
from loginvault.domain.schemas.account import Account, AccountSnapshot
from loginvault.domain.services.auth import generate_temp_password, hash_password
from loginvault.domain.services.delivery import deliver
from loginvault.domain.services.email import (
    TemplateVariables,
    compose_message,
    resolve_server_identifier,
)
from loginvault.domain.services.mail_session import MailSession, build_session
from loginvault.domain.services.tasks import TaskScheduler

logger = logging.getLogger(__name__)


class AccountLookup(Protocol):
    """The slice of the account store the workflow depends on."""

    def lookup(self, identity: str) -> Account | None:
        ...

    async def save(self, snapshot: AccountSnapshot) -> None:
        ...


class RecoveryState(str, Enum):
    VALIDATING = "validating"
    COMPOSING = "composing"
    DISPATCHING = "dispatching"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class Caller:
    """Who issued the command.

    `identity` is None for the server console and other non-player sources.
    `bound_address` is the (host, port) the server is listening on, if known.
    """

    identity: str | None
    bound_address: tuple[str, int] | None = None

    @property
    def is_player(self) -> bool:
        return self.identity is not None


@dataclass
class RecoveryResult:
    """Outcome reported back to the caller."""

    success: bool
    state: RecoveryState
    reason: AbortReason | None = None
    message: str | None = None


@dataclass
class RecoveryRequest:
    """Everything one recovery attempt produced before dispatch."""

    account: Account
    secret: str
    session: MailSession
    message: Message


class CredentialRecovery:
    """Runs forgot-password requests.

    Args:
        settings: Application settings; mail settings are read on every
            request so changes apply without a restart.
        store: Loaded-account lookup and persistence.
        scheduler: Where delivery and persistence jobs are submitted.
        hasher: Turns the temporary password into a stored hash.
        secret_factory: Produces temporary passwords.
    """

    def __init__(
        self,
        settings: Settings,
        store: AccountLookup,
        scheduler: TaskScheduler,
        hasher: Callable[[str], str] = hash_password,
        secret_factory: Callable[[], str] = generate_temp_password,
    ):
        self.settings = settings
        self.store = store
        self.scheduler = scheduler
        self.hasher = hasher
        self.secret_factory = secret_factory
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

    def request(self, caller: Caller) -> RecoveryResult:
        """Handle one forgot-password command.

        Returns as soon as both background jobs are submitted.
        """
        texts = self.settings.texts
        logger.debug(f"Recovery for {caller.identity}: {RecoveryState.VALIDATING.value}")
        try:
            account = self._validate(caller)
        except PreconditionError as e:
            logger.warning(f"Password recovery refused for {caller.identity}: {e.reason.value}")
            return RecoveryResult(
                success=False,
                state=RecoveryState.ABORTED,
                reason=e.reason,
                message=self._text_for(e.reason),
            )

        with self._in_flight_lock:
            if account.identity in self._in_flight:
                logger.warning(f"Password recovery already running for {account.identity}")
                return self._failed(texts.error_executing_command)
            self._in_flight.add(account.identity)

        try:
            logger.debug(f"Recovery for {account.identity}: {RecoveryState.COMPOSING.value}")
            request = self._compose(account, caller)
            logger.debug(f"Recovery for {account.identity}: {RecoveryState.DISPATCHING.value}")
            self._dispatch(request)
        except Exception:
            logger.exception(f"Error executing password recovery for {account.identity}")
            return self._failed(texts.error_executing_command)
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(account.identity)

        return RecoveryResult(
            success=True,
            state=RecoveryState.COMPLETED,
            message=texts.mail_sent,
        )

    def _validate(self, caller: Caller) -> Account:
        if not caller.is_player:
            raise PreconditionError(AbortReason.PLAYERS_ONLY)

        if not self.settings.mail.enabled:
            raise PreconditionError(AbortReason.FEATURE_DISABLED)

        account = self.store.lookup(caller.identity)
        if account is None:
            raise PreconditionError(AbortReason.ACCOUNT_NOT_LOADED)

        if account.logged_in:
            raise PreconditionError(AbortReason.ALREADY_LOGGED_IN)

        if account.email is None:
            raise PreconditionError(AbortReason.NO_CONTACT_ADDRESS)

        return account

    def _compose(self, account: Account, caller: Caller) -> RecoveryRequest:
        mail = self.settings.mail
        secret = self.secret_factory()
        session = build_session(mail)
        variables = TemplateVariables(
            player_name=account.username,
            server_identifier=resolve_server_identifier(
                caller.bound_address, mail.server_name_fallback
            ),
            temporary_secret=secret,
        )
        message = compose_message(account.email, account.username, variables, mail)
        return RecoveryRequest(account=account, secret=secret, session=session, message=message)

    def _dispatch(self, request: RecoveryRequest) -> None:
        account = request.account
        session, message = request.session, request.message

        async def send_mail() -> None:
            await deliver(session, message)

        self.scheduler.submit(f"recovery-mail:{account.identity}", send_mail)

        # Rotate in memory first; the saved snapshot reflects the new hash
        account.set_password_hash(self.hasher(request.secret))
        snapshot = account.snapshot()

        async def persist() -> None:
            await persist_snapshot(self.store, snapshot)

        self.scheduler.submit(f"recovery-save:{account.identity}", persist)
        logger.info(f"Rotated password for {account.identity}, mail and save scheduled")

    def _failed(self, message: str) -> RecoveryResult:
        return RecoveryResult(
            success=False,
            state=RecoveryState.ABORTED,
            reason=AbortReason.EXECUTION_ERROR,
            message=message,
        )

    def _text_for(self, reason: AbortReason) -> str:
        texts = self.settings.texts
        return {
            AbortReason.PLAYERS_ONLY: texts.players_only,
            AbortReason.FEATURE_DISABLED: texts.mail_not_enabled,
            AbortReason.ACCOUNT_NOT_LOADED: texts.account_not_loaded,
            AbortReason.ALREADY_LOGGED_IN: texts.already_logged_in,
            AbortReason.NO_CONTACT_ADDRESS: texts.no_contact_address,
            AbortReason.EXECUTION_ERROR: texts.error_executing_command,
        }[reason]


async def persist_snapshot(store: AccountLookup, snapshot: AccountSnapshot) -> None:
    """Persist an account snapshot, logging instead of raising on failure."""
    try:
        await store.save(snapshot)
    except StoreError:
        logger.exception(f"Failed to persist account {snapshot.identity}")
        return
    logger.info(f"Persisted account {snapshot.identity}")
