"""Authentication endpoints for connected players."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from loginvault.api.dependencies import (
    get_caller,
    get_recovery,
    get_scheduler,
    get_store,
    require_player_account,
)
from loginvault.domain.errors import AbortReason
from loginvault.domain.schemas.account import Account
from loginvault.domain.schemas.auth import CommandResponse, LoginRequest, PasswordChangeRequest
from loginvault.domain.services.auth import hash_password, verify_password
from loginvault.domain.services.recovery import Caller, CredentialRecovery, persist_snapshot
from loginvault.domain.services.tasks import TaskScheduler
from loginvault.storage.accounts import AccountStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

ABORT_STATUS = {
    AbortReason.PLAYERS_ONLY: status.HTTP_403_FORBIDDEN,
    AbortReason.FEATURE_DISABLED: status.HTTP_403_FORBIDDEN,
    AbortReason.ACCOUNT_NOT_LOADED: status.HTTP_404_NOT_FOUND,
    AbortReason.ALREADY_LOGGED_IN: status.HTTP_409_CONFLICT,
    AbortReason.NO_CONTACT_ADDRESS: status.HTTP_400_BAD_REQUEST,
    AbortReason.EXECUTION_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post("/login", response_model=CommandResponse)
async def login(
    login_data: LoginRequest,
    account: Account = Depends(require_player_account),
) -> CommandResponse:
    """Log the connected player in.

    - Returns 409 if already logged in
    - Returns 401 if the password is wrong
    """
    if account.logged_in:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already logged in",
        )

    if not verify_password(login_data.password, account.password_hash):
        logger.warning(f"Failed login for {account.identity}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Wrong password",
        )

    account.logged_in = True
    return CommandResponse(message="Logged in")


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(account: Account = Depends(require_player_account)):
    """End the player's authenticated session.

    Returns 204 on success, 401 if not logged in.
    """
    if not account.logged_in:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not logged in",
        )

    account.logged_in = False
    return None  # 204 No Content


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    password_data: PasswordChangeRequest,
    account: Account = Depends(require_player_account),
    store: AccountStore = Depends(get_store),
    scheduler: TaskScheduler = Depends(get_scheduler),
):
    """Change password for the logged-in player.

    Validates the current password, rotates the hash in memory and saves
    it in the background.
    """
    if not account.logged_in:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not logged in",
        )

    if not verify_password(password_data.current_password, account.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    account.set_password_hash(hash_password(password_data.new_password))
    snapshot = account.snapshot()

    async def persist() -> None:
        await persist_snapshot(store, snapshot)

    scheduler.submit(f"password-change-save:{account.identity}", persist)
    return None  # 204 No Content


@router.post(
    "/forgot-password",
    response_model=CommandResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def forgot_password(
    caller: Caller = Depends(get_caller),
    recovery: CredentialRecovery = Depends(get_recovery),
) -> CommandResponse:
    """Mail a new temporary password to the player's address on file.

    Returns 202 once the mail and the credential save are scheduled; the
    mail itself may still fail afterwards.
    """
    result = recovery.request(caller)
    if not result.success:
        raise HTTPException(
            status_code=ABORT_STATUS[result.reason],
            detail=result.message,
        )

    return CommandResponse(message=result.message)
