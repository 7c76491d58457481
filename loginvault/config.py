"""Runtime configuration for loginvault.

Settings are plain pydantic models built once from the environment and
passed explicitly to the services that need them.
"""

import logging
import os
from enum import Enum

from pydantic import BaseModel, Field


class SecurityPolicy(str, Enum):
    """How the SMTP connection is secured. Neither policy allows plaintext."""

    IMPLICIT_TLS = "implicit_tls"  # SMTPS, TLS from the first byte
    STARTTLS = "starttls"  # upgrade required, fails if not offered


DEFAULT_SUBJECT_TEMPLATE = "Your new password"
DEFAULT_BODY_TEMPLATE = (
    "<html><body>"
    "<p>Hello <b>{{ player_name }}</b>,</p>"
    "<p>Your new password on {{ server_identifier }} is "
    "<code>{{ temporary_secret }}</code></p>"
    "<p>Please log in and change it immediately.</p>"
    "</body></html>"
)


class MailSettings(BaseModel):
    """Outgoing mail configuration used by password recovery."""

    enabled: bool = False
    host: str = ""
    port: int = 465
    account: str = ""  # sender address, also the SMTP login
    password: str = ""
    sender_name: str | None = None
    security: SecurityPolicy = SecurityPolicy.IMPLICIT_TLS
    transport: str | None = None  # dotted path of an smtplib-compatible client class
    timeout: float = Field(default=30.0, gt=0)

    subject_template: str = DEFAULT_SUBJECT_TEMPLATE
    body_template: str = DEFAULT_BODY_TEMPLATE
    server_name_fallback: str = "Minecraft Server"


class RecoveryTexts(BaseModel):
    """Caller-facing messages for each way the forgot-password command can end."""

    players_only: str = "Only players can use this command"
    mail_not_enabled: str = "Password recovery by email is not enabled on this server"
    already_logged_in: str = "You are already logged in"
    account_not_loaded: str = "Your account is not loaded yet, please try again"
    no_contact_address: str = "You have no email address on file"
    error_executing_command: str = "Error executing the command, see the server log"
    mail_sent: str = "A new password has been sent to your email address"


class Settings(BaseModel):
    """Top-level application settings."""

    mail: MailSettings = Field(default_factory=MailSettings)
    texts: RecoveryTexts = Field(default_factory=RecoveryTexts)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Unset variables fall back to the model defaults.
        """
        env = os.environ
        mail = MailSettings(
            enabled=env.get("MAIL_ENABLED", "false").lower() in ("1", "true", "yes"),
            host=env.get("SMTP_HOST", ""),
            port=int(env.get("SMTP_PORT", "465")),
            account=env.get("SMTP_USER", ""),
            password=env.get("SMTP_PASSWORD", ""),
            sender_name=env.get("EMAIL_SENDER_NAME") or None,
            security=SecurityPolicy(env.get("SMTP_SECURITY", SecurityPolicy.IMPLICIT_TLS.value)),
            transport=env.get("SMTP_TRANSPORT") or None,
            timeout=float(env.get("SMTP_TIMEOUT", "30")),
        )
        return cls(mail=mail, log_level=env.get("LOG_LEVEL", "INFO"))


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler for the service process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
