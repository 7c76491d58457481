"""Pydantic schemas for domain objects and API request/response models."""

from .account import Account, AccountSnapshot
from .auth import CommandResponse, LoginRequest, PasswordChangeRequest
from .user import AccountRead

__all__ = [
    "Account",
    "AccountSnapshot",
    "AccountRead",
    "LoginRequest",
    "PasswordChangeRequest",
    "CommandResponse",
]
