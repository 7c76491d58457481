"""Shared FastAPI dependencies.

Central location for dependency injection functions. Long-lived services
are created in the app lifespan and kept on `app.state`.
"""

from fastapi import Depends, HTTPException, Request, status

from loginvault.config import Settings
from loginvault.domain.schemas.account import Account
from loginvault.domain.services.recovery import Caller, CredentialRecovery
from loginvault.domain.services.tasks import TaskScheduler
from loginvault.storage.accounts import AccountStore

__all__ = [
    "PLAYER_HEADER",
    "get_settings",
    "get_store",
    "get_scheduler",
    "get_recovery",
    "get_caller",
    "require_player_account",
]

# Set by the game server gateway when it forwards a player's command
PLAYER_HEADER = "X-Player-Id"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> AccountStore:
    return request.app.state.store


def get_scheduler(request: Request) -> TaskScheduler:
    return request.app.state.scheduler


def get_recovery(request: Request) -> CredentialRecovery:
    return request.app.state.recovery


def get_caller(request: Request) -> Caller:
    """Describe who issued the request.

    Requests without the player header come from the console or other
    tooling and have no identity.
    """
    identity = request.headers.get(PLAYER_HEADER) or None
    return Caller(identity=identity, bound_address=request.scope.get("server"))


async def require_player_account(
    caller: Caller = Depends(get_caller),
    settings: Settings = Depends(get_settings),
    store: AccountStore = Depends(get_store),
) -> Account:
    """Require a player caller whose account is loaded.

    Raises 403 for non-player callers, 404 if the account is not loaded.
    """
    if not caller.is_player:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=settings.texts.players_only,
        )

    account = store.lookup(caller.identity)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=settings.texts.account_not_loaded,
        )

    return account
