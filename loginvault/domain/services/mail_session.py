"""SMTP session construction for outgoing recovery mail."""

import importlib
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import Message

from loginvault.config import MailSettings, SecurityPolicy
from loginvault.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TRANSPORTS = {
    SecurityPolicy.IMPLICIT_TLS: smtplib.SMTP_SSL,
    SecurityPolicy.STARTTLS: smtplib.SMTP,
}


@dataclass(frozen=True)
class MailSession:
    """Connection settings for one SMTP server.

    Holds no open connection; every `send` opens, authenticates, sends one
    message and closes.
    """

    host: str
    port: int
    username: str
    password: str
    security: SecurityPolicy
    ssl_context: ssl.SSLContext
    transport: type
    timeout: float

    def send(self, message: Message) -> None:
        """Transmit one message. Blocking; run it off the event loop."""
        if self.security is SecurityPolicy.IMPLICIT_TLS:
            client = self.transport(
                self.host, self.port, context=self.ssl_context, timeout=self.timeout
            )
        else:
            client = self.transport(self.host, self.port, timeout=self.timeout)

        with client as smtp:
            if self.security is SecurityPolicy.STARTTLS:
                # Raises SMTPNotSupportedError when the server does not offer it
                smtp.starttls(context=self.ssl_context)
            smtp.login(self.username, self.password)
            smtp.send_message(message)


def _tls_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    return context


def _resolve_transport(settings: MailSettings) -> type:
    """Return the SMTP client class, honouring an explicit override.

    An override that cannot be imported is logged and the standard
    smtplib class is used instead.
    """
    default = DEFAULT_TRANSPORTS[settings.security]
    if not settings.transport:
        return default

    module_name, _, class_name = settings.transport.rpartition(".")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, class_name)
    except (ImportError, AttributeError, ValueError):
        logger.exception(f"Failed to load SMTP transport {settings.transport!r}, using {default.__name__}")
        return default


def build_session(settings: MailSettings) -> MailSession:
    """Build a mail session from settings.

    Raises:
        ConfigurationError: If host, port, sender account or password is
            missing or invalid.
    """
    if not settings.host:
        raise ConfigurationError("SMTP host is not configured")
    if not 0 < settings.port < 65536:
        raise ConfigurationError(f"Invalid SMTP port: {settings.port}")
    if not settings.account:
        raise ConfigurationError("SMTP sender account is not configured")
    if not settings.password:
        raise ConfigurationError("SMTP password is not configured")

    return MailSession(
        host=settings.host,
        port=settings.port,
        username=settings.account,
        password=settings.password,
        security=settings.security,
        ssl_context=_tls_context(),
        transport=_resolve_transport(settings),
        timeout=settings.timeout,
    )
