"""Account-related Pydantic schemas for API."""

from pydantic import BaseModel


class AccountRead(BaseModel):
    """Schema for reading account data (excludes password hash)."""

    identity: str
    username: str
    has_email: bool
    logged_in: bool
