"""Authentication schemas for request/response models."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Login request for the connected player."""

    password: str = Field(min_length=1)


class PasswordChangeRequest(BaseModel):
    """Request to change password."""

    current_password: str
    new_password: str = Field(min_length=8)


class CommandResponse(BaseModel):
    """Plain message returned to the player after a command."""

    message: str
