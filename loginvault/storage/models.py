"""Database models for loginvault.

Uses SQLModel for unified Pydantic + SQLAlchemy models.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccountRecord(SQLModel, table=True):
    """Persisted player account.

    Session state (logged in or not) is not stored here.
    """

    __tablename__ = "accounts"

    identity: str = Field(primary_key=True, max_length=64)  # player UUID
    username: str = Field(index=True, max_length=32)
    password_hash: str = Field(max_length=255)
    email: str | None = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
