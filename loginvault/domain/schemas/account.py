"""In-memory account models used by the session and recovery services."""

from pydantic import BaseModel, EmailStr, Field


class AccountSnapshot(BaseModel):
    """Immutable copy of an account handed to background persistence."""

    model_config = {"frozen": True}

    identity: str
    username: str
    password_hash: str
    email: EmailStr | None = None
    revision: int = 0


class Account(BaseModel):
    """A loaded player account.

    Lives in the account store's cache while the player is connected.
    `logged_in` is session state only and is never written to the database.
    """

    model_config = {"validate_assignment": True}

    identity: str
    username: str
    password_hash: str = Field(min_length=1)
    email: EmailStr | None = None
    logged_in: bool = False
    revision: int = 0

    def set_password_hash(self, password_hash: str) -> None:
        """Replace the credential hash and bump the in-memory revision."""
        self.password_hash = password_hash
        self.revision += 1

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            identity=self.identity,
            username=self.username,
            password_hash=self.password_hash,
            email=self.email,
            revision=self.revision,
        )
