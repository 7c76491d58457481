"""loginvault - FastAPI Application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from loginvault.api.routes import auth, health, players
from loginvault.config import Settings, configure_logging
from loginvault.domain.services.recovery import CredentialRecovery
from loginvault.domain.services.tasks import AsyncTaskPool
from loginvault.storage.accounts import AccountStore
from loginvault.storage.database import init_db

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application around one settings object."""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        # Startup
        configure_logging(settings.log_level)
        await init_db()
        if not settings.mail.enabled:
            logger.info("Mail recovery is disabled")
        yield
        # Shutdown: let pending mail and saves finish
        await app.state.scheduler.drain()

    app = FastAPI(
        title="loginvault",
        description="Player account login and self-service password recovery",
        version="0.1.0",
        lifespan=lifespan,
    )

    store = AccountStore()
    scheduler = AsyncTaskPool()
    app.state.settings = settings
    app.state.store = store
    app.state.scheduler = scheduler
    app.state.recovery = CredentialRecovery(settings, store, scheduler)

    app.include_router(health.router, tags=["health"])
    app.include_router(players.router)
    app.include_router(auth.router)
    return app


app = create_app()
