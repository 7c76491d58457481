"""Tests for the forgot-password workflow."""

import threading
from email.message import Message

import pytest

from loginvault.config import Settings
from loginvault.domain.errors import AbortReason, StoreError
from loginvault.domain.schemas.account import Account, AccountSnapshot
from loginvault.domain.services import delivery
from loginvault.domain.services.auth import hash_password, verify_password
from loginvault.domain.services.recovery import (
    Caller,
    CredentialRecovery,
    RecoveryState,
)
from loginvault.domain.services.tasks import RecordingScheduler

ORIGINAL_HASH = "stored-hash-of-old-password"


class FakeStore:
    """Loaded accounts in a dict; saves are recorded."""

    def __init__(self, *accounts: Account):
        self.accounts = {a.identity: a for a in accounts}
        self.saved: list[AccountSnapshot] = []
        self.lookups = 0
        self.fail_saves = False

    def lookup(self, identity: str) -> Account | None:
        self.lookups += 1
        return self.accounts.get(identity)

    async def save(self, snapshot: AccountSnapshot) -> None:
        if self.fail_saves:
            raise StoreError("database is gone")
        self.saved.append(snapshot)


def make_account(**overrides) -> Account:
    fields = {
        "identity": "P1",
        "username": "Steve",
        "password_hash": ORIGINAL_HASH,
        "email": "p1@example.com",
    }
    fields.update(overrides)
    return Account(**fields)


def fake_hasher(secret: str) -> str:
    return f"hashed:{secret}"


@pytest.fixture
def account() -> Account:
    return make_account()


@pytest.fixture
def fake_store(account: Account) -> FakeStore:
    return FakeStore(account)


@pytest.fixture
def recovery(settings: Settings, fake_store: FakeStore, scheduler: RecordingScheduler):
    return CredentialRecovery(
        settings,
        fake_store,
        scheduler,
        hasher=fake_hasher,
        secret_factory=lambda: "Tmp0Secret1Value",
    )


@pytest.fixture
def sent(monkeypatch) -> list[Message]:
    """Capture messages instead of talking SMTP."""
    messages: list[Message] = []

    def fake_send(self, message):
        messages.append(message)

    monkeypatch.setattr(delivery.MailSession, "send", fake_send)
    return messages


class TestPreconditions:
    """Each failed check aborts with its own reason and no side effects."""

    def test_console_caller_rejected(self, recovery, scheduler, fake_store):
        result = recovery.request(Caller(identity=None))

        assert not result.success
        assert result.state is RecoveryState.ABORTED
        assert result.reason is AbortReason.PLAYERS_ONLY
        assert scheduler.jobs == []
        assert fake_store.lookups == 0

    def test_disabled_feature_rejected_before_lookup(self, settings, fake_store, scheduler):
        settings.mail.enabled = False
        recovery = CredentialRecovery(settings, fake_store, scheduler)

        result = recovery.request(Caller(identity="P1"))

        assert result.reason is AbortReason.FEATURE_DISABLED
        assert result.message == settings.texts.mail_not_enabled
        assert fake_store.lookups == 0
        assert scheduler.jobs == []

    def test_account_not_loaded(self, recovery, scheduler):
        result = recovery.request(Caller(identity="nobody"))

        assert result.reason is AbortReason.ACCOUNT_NOT_LOADED
        assert scheduler.jobs == []

    def test_logged_in_account_rejected(self, recovery, scheduler, account):
        account.logged_in = True

        result = recovery.request(Caller(identity="P1"))

        assert result.reason is AbortReason.ALREADY_LOGGED_IN
        assert account.password_hash == ORIGINAL_HASH
        assert account.revision == 0
        assert scheduler.jobs == []

    def test_missing_contact_address_rejected(self, settings, scheduler):
        store = FakeStore(make_account(email=None))
        recovery = CredentialRecovery(settings, store, scheduler)

        result = recovery.request(Caller(identity="P1"))

        assert result.reason is AbortReason.NO_CONTACT_ADDRESS
        assert result.message == settings.texts.no_contact_address
        assert scheduler.jobs == []
        assert store.accounts["P1"].password_hash == ORIGINAL_HASH


class TestDispatch:
    """Successful requests rotate the credential and schedule two jobs."""

    def test_success_schedules_mail_then_save(self, recovery, scheduler, settings):
        result = recovery.request(Caller(identity="P1"))

        assert result.success
        assert result.state is RecoveryState.COMPLETED
        assert result.reason is None
        assert result.message == settings.texts.mail_sent
        assert scheduler.names == ["recovery-mail:P1", "recovery-save:P1"]

    def test_hash_rotated_before_jobs_run(self, recovery, scheduler, account):
        recovery.request(Caller(identity="P1"))

        # Nothing has run yet, the in-memory credential is already new
        assert account.password_hash == "hashed:Tmp0Secret1Value"
        assert account.revision == 1

    async def test_jobs_send_mail_and_save_snapshot(self, recovery, scheduler, fake_store, sent):
        recovery.request(Caller(identity="P1", bound_address=("10.0.0.5", 25565)))
        await scheduler.run_all()

        assert len(sent) == 1
        assert "p1@example.com" in sent[0]["To"]
        html = sent[0].get_payload()[1].get_payload(decode=True).decode()
        assert "Tmp0Secret1Value" in html
        assert "10.0.0.5" in html

        assert len(fake_store.saved) == 1
        assert fake_store.saved[0].password_hash == "hashed:Tmp0Secret1Value"
        assert fake_store.saved[0].revision == 1

    async def test_failed_delivery_keeps_new_credential(
        self, recovery, scheduler, fake_store, account, monkeypatch, caplog
    ):
        def broken_send(self, message):
            raise ConnectionRefusedError("smtp down")

        monkeypatch.setattr(delivery.MailSession, "send", broken_send)

        result = recovery.request(Caller(identity="P1"))
        await scheduler.run_all()

        assert result.success
        assert account.password_hash != ORIGINAL_HASH
        assert fake_store.saved[0].password_hash == account.password_hash
        assert "Failed to send recovery mail" in caplog.text

    async def test_failed_save_is_logged_not_raised(
        self, recovery, scheduler, fake_store, account, sent, caplog
    ):
        fake_store.fail_saves = True

        recovery.request(Caller(identity="P1"))
        await scheduler.run_all()

        assert len(sent) == 1
        assert account.password_hash == "hashed:Tmp0Secret1Value"
        assert "Failed to persist account P1" in caplog.text

    def test_real_hasher_produces_verifiable_hash(self, settings, fake_store, scheduler, account):
        recovery = CredentialRecovery(
            settings, fake_store, scheduler, secret_factory=lambda: "Tmp0Secret1Value"
        )

        recovery.request(Caller(identity="P1"))

        assert verify_password("Tmp0Secret1Value", account.password_hash)

    async def test_snapshot_is_independent_of_later_mutation(
        self, recovery, scheduler, fake_store, account, sent
    ):
        recovery.request(Caller(identity="P1"))
        account.set_password_hash(hash_password("changed-again"))
        await scheduler.run_all()

        # The queued save carries the rotation's hash, not the later one
        assert fake_store.saved[0].password_hash == "hashed:Tmp0Secret1Value"
        assert fake_store.saved[0].revision == 1
        assert account.revision == 2


class TestCompositionFailures:
    """Errors while composing leave the old credential in place."""

    def test_missing_smtp_host(self, settings, fake_store, scheduler, account):
        settings.mail.host = ""
        recovery = CredentialRecovery(settings, fake_store, scheduler)

        result = recovery.request(Caller(identity="P1"))

        assert not result.success
        assert result.reason is AbortReason.EXECUTION_ERROR
        assert result.message == settings.texts.error_executing_command
        assert account.password_hash == ORIGINAL_HASH
        assert scheduler.jobs == []

    def test_bad_sender_address(self, settings, fake_store, scheduler, account, caplog):
        settings.mail.account = "not-an-address"
        recovery = CredentialRecovery(settings, fake_store, scheduler)

        result = recovery.request(Caller(identity="P1"))

        assert result.reason is AbortReason.EXECUTION_ERROR
        assert account.password_hash == ORIGINAL_HASH
        assert scheduler.jobs == []
        assert "Error executing password recovery for P1" in caplog.text

    def test_identity_released_after_failure(self, settings, fake_store, scheduler):
        settings.mail.host = ""
        recovery = CredentialRecovery(settings, fake_store, scheduler)
        recovery.request(Caller(identity="P1"))

        settings.mail.host = "smtp.example.com"
        result = recovery.request(Caller(identity="P1"))

        assert result.success


class TestRepeatedRequests:
    def test_second_request_rotates_again(self, settings, fake_store, scheduler, account):
        secrets = iter(["FirstSecret00001", "SecondSecret0002"])
        recovery = CredentialRecovery(
            settings, fake_store, scheduler,
            hasher=fake_hasher, secret_factory=lambda: next(secrets),
        )

        recovery.request(Caller(identity="P1"))
        recovery.request(Caller(identity="P1"))

        assert account.password_hash == "hashed:SecondSecret0002"
        assert account.revision == 2
        assert len(scheduler.jobs) == 4

    def test_concurrent_request_for_same_identity_rejected(
        self, settings, fake_store, scheduler, account
    ):
        composing = threading.Event()
        release = threading.Event()

        def blocking_secret() -> str:
            composing.set()
            assert release.wait(timeout=5)
            return "Tmp0Secret1Value"

        recovery = CredentialRecovery(
            settings, fake_store, scheduler,
            hasher=fake_hasher, secret_factory=blocking_secret,
        )
        results = []
        first = threading.Thread(
            target=lambda: results.append(recovery.request(Caller(identity="P1")))
        )
        first.start()
        assert composing.wait(timeout=5)

        second = recovery.request(Caller(identity="P1"))
        release.set()
        first.join(timeout=5)

        assert not second.success
        assert second.reason is AbortReason.EXECUTION_ERROR
        assert second.message == settings.texts.error_executing_command
        assert len(results) == 1 and results[0].success
        assert account.revision == 1
        assert scheduler.names == ["recovery-mail:P1", "recovery-save:P1"]
