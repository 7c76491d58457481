"""Pytest configuration and fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from loginvault.api.main import create_app
from loginvault.config import MailSettings, Settings
from loginvault.domain.services.recovery import CredentialRecovery
from loginvault.domain.services.tasks import RecordingScheduler
from loginvault.storage import database
from loginvault.storage.accounts import AccountStore
from loginvault.storage.models import AccountRecord

# Use a test-specific database
TEST_DATABASE_URL = "sqlite+aiosqlite:///./data/test_loginvault.db"

# Create test engine and session factory
test_engine = database.make_engine(TEST_DATABASE_URL)
test_async_session = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="session", autouse=True)
async def setup_test_database():
    """Set up test database before all tests and clean up after."""
    # Import models to ensure they're registered
    from loginvault.storage import models  # noqa: F401

    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)

    # Override the production database with test database
    database.async_session = test_async_session
    database.engine = test_engine

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@pytest.fixture
async def db_session():
    """Async database session for tests."""
    async with test_async_session() as session:
        yield session
        await session.execute(delete(AccountRecord))
        await session.commit()


@pytest.fixture
def mail_settings() -> MailSettings:
    """Mail settings that pass validation without touching the network."""
    return MailSettings(
        enabled=True,
        host="smtp.example.com",
        port=465,
        account="noreply@example.com",
        password="smtp-secret",
        sender_name="Example Server",
    )


@pytest.fixture
def settings(mail_settings: MailSettings) -> Settings:
    return Settings(mail=mail_settings)


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def app(settings: Settings, scheduler: RecordingScheduler):
    """Application with mail enabled and background jobs recorded, not run."""
    app = create_app(settings)
    app.state.scheduler = scheduler
    app.state.recovery = CredentialRecovery(settings, app.state.store, scheduler)
    return app


@pytest.fixture
def store(app) -> AccountStore:
    return app.state.store


@pytest.fixture
async def client(app):
    """Async test client for FastAPI app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac
