"""Email composition for password recovery messages."""

import html
import re
from dataclasses import asdict, dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate

from email_validator import EmailNotValidError, validate_email
from jinja2 import Environment, StrictUndefined, TemplateError

from loginvault.config import MailSettings
from loginvault.domain.errors import CompositionError

# A tag, plus any tags following it separated only by whitespace
MARKUP_RUN = re.compile(r"<[^>]*>(\s*<[^>]*>)*", re.DOTALL)

_html_env = Environment(autoescape=True, undefined=StrictUndefined)
_text_env = Environment(autoescape=False, undefined=StrictUndefined)


@dataclass(frozen=True)
class TemplateVariables:
    """Values substituted into the subject and body templates."""

    player_name: str
    server_identifier: str
    temporary_secret: str


def resolve_server_identifier(bound_address: tuple[str, int] | None, fallback: str) -> str:
    """Name the server by the host it is bound to, or by a fixed fallback."""
    if bound_address and bound_address[0]:
        return bound_address[0]
    return fallback


def html_to_text(markup: str) -> str:
    """Derive a plain-text body from HTML by collapsing tags to spaces."""
    text = MARKUP_RUN.sub(" ", markup)
    return html.unescape(text).strip()


def _checked_address(address: str, role: str) -> str:
    try:
        return validate_email(address, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise CompositionError(f"Invalid {role} address {address!r}: {e}") from e


def compose_message(
    recipient_address: str,
    recipient_name: str,
    variables: TemplateVariables,
    settings: MailSettings,
) -> MIMEMultipart:
    """Build the recovery email.

    The HTML body is rendered from `settings.body_template`; the plain-text
    alternative is derived from it rather than rendered separately.

    Raises:
        CompositionError: If the sender or recipient address is malformed or
            a template cannot be rendered.
    """
    sender = _checked_address(settings.account, "sender")
    recipient = _checked_address(recipient_address, "recipient")

    context = asdict(variables)
    try:
        subject = _text_env.from_string(settings.subject_template).render(context)
        html_body = _html_env.from_string(settings.body_template).render(context)
    except TemplateError as e:
        raise CompositionError(f"Failed to render recovery mail template: {e}") from e

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject.strip()
    msg["From"] = formataddr((settings.sender_name, sender))
    msg["To"] = formataddr((recipient_name, recipient))
    msg["Date"] = formatdate(localtime=True)

    msg.attach(MIMEText(html_to_text(html_body), "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg
