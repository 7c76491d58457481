"""Player connection endpoints called by the game server gateway."""

from fastapi import APIRouter, Depends, HTTPException, status

from loginvault.api.dependencies import get_store
from loginvault.domain.errors import StoreError
from loginvault.domain.schemas.user import AccountRead
from loginvault.storage.accounts import AccountStore

router = APIRouter(prefix="/players", tags=["players"])


@router.post("/{identity}/join", response_model=AccountRead)
async def player_join(
    identity: str,
    store: AccountStore = Depends(get_store),
) -> AccountRead:
    """Load the joining player's account.

    Returns 404 if the player has no account, 503 if the database is
    unavailable.
    """
    try:
        account = await store.load(identity)
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Account storage unavailable",
        ) from e

    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found",
        )

    return AccountRead(
        identity=account.identity,
        username=account.username,
        has_email=account.email is not None,
        logged_in=account.logged_in,
    )


@router.post("/{identity}/quit", status_code=status.HTTP_204_NO_CONTENT)
async def player_quit(
    identity: str,
    store: AccountStore = Depends(get_store),
):
    """Drop the leaving player's account from memory."""
    store.unload(identity)
    return None  # 204 No Content
