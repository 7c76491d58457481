"""Background delivery of composed recovery mail."""

import asyncio
import logging
import smtplib
from email.message import Message

from loginvault.domain.errors import DeliveryError
from loginvault.domain.services.mail_session import MailSession

logger = logging.getLogger(__name__)


async def _send(session: MailSession, message: Message) -> None:
    try:
        await asyncio.to_thread(session.send, message)
    except (smtplib.SMTPException, OSError) as e:
        # ssl.SSLError and socket timeouts are OSErrors
        raise DeliveryError(f"{session.host}:{session.port}: {e}") from e


async def deliver(session: MailSession, message: Message) -> None:
    """Send one message over `session` on a worker thread.

    Failures are logged here and go no further: nothing waits on this job
    and it is not retried.
    """
    recipient = message.get("To", "<unknown>")
    try:
        await _send(session, message)
    except DeliveryError:
        logger.exception(f"Failed to send recovery mail to {recipient}")
        return

    logger.info(f"Recovery mail sent to {recipient}")
