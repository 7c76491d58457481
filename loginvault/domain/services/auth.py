"""Credential hashing and temporary password generation."""

import secrets
import string

from pwdlib import PasswordHash
from pwdlib.hashers.bcrypt import BcryptHasher

# Password hashing using bcrypt via pwdlib
pwd_context = PasswordHash((BcryptHasher(),))

TEMP_PASSWORD_LENGTH = 16
TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def generate_temp_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    """Generate a secure temporary password.

    With 62 symbols and 16 characters there are about 2^95 outcomes, so a
    draw matching the account's current password is not checked for.

    Args:
        length: Password length (default 16)

    Returns:
        Random alphanumeric password
    """
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))
