"""
Outbound mail transports.

The relay hands a fully built OutboundMessage to a MailTransport. The SMTP
implementation uses aiosmtplib; the in-memory implementation records
messages for tests and local runs.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import List, Optional

import aiosmtplib

from .config import SmtpSettings
from .errors import DeliveryError
from .models import Attachment
from .util import scrub_secret


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundMessage:
    sender: str
    to: str
    subject: str
    text: str
    html: str
    cc: Optional[str] = None
    attachment: Optional[Attachment] = None


def build_email(message: OutboundMessage) -> EmailMessage:
    """
    Build a MIME message with a plain-text part, an HTML alternative and
    the optional attachment.
    """
    msg = EmailMessage()
    msg["From"] = message.sender
    msg["To"] = message.to
    if message.cc:
        msg["Cc"] = message.cc
    msg["Subject"] = message.subject
    msg["Message-ID"] = make_msgid()
    msg.set_content(message.text)
    msg.add_alternative(message.html, subtype="html")

    if message.attachment is not None:
        maintype, _, subtype = message.attachment.content_type.partition("/")
        msg.add_attachment(
            message.attachment.content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=message.attachment.filename,
        )
    return msg


def format_sender(name: str, address: str) -> str:
    """Fixed service identity, e.g. ``"Class Lawsuits" <relay@example.org>``."""
    return formataddr((name, address))


class MailTransport(ABC):
    """Abstract interface for delivering relay messages."""

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """
        Deliver a message.

        Raises:
            DeliveryError: If the transport could not deliver
        """
        pass


class SmtpTransport(MailTransport):
    """
    SMTP delivery via aiosmtplib.

    A connection is opened per message and bounded by the configured
    timeout. Implicit TLS is used when ``secure`` is set; otherwise
    STARTTLS is negotiated when the server offers it.
    """

    def __init__(self, settings: SmtpSettings):
        self._settings = settings

    async def send(self, message: OutboundMessage) -> None:
        settings = self._settings
        try:
            email = build_email(message)
        except ValueError as e:
            logger.error("Could not build message for %s: %s", message.to, e)
            raise DeliveryError(f"message rejected: {e}") from e
        try:
            await aiosmtplib.send(
                email,
                hostname=settings.host,
                port=settings.port,
                username=settings.user or None,
                password=settings.password or None,
                use_tls=settings.secure,
                start_tls=False if settings.secure else None,
                timeout=settings.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            cause = scrub_secret(str(e) or type(e).__name__, settings.password)
            logger.error("SMTP delivery via %s:%s failed: %s", settings.host, settings.port, cause)
            raise DeliveryError(cause) from e


class InMemoryTransport(MailTransport):
    """
    In-memory transport for development/testing.

    Set ``fail_with`` to make every send raise DeliveryError with that cause.
    """

    def __init__(self, fail_with: Optional[str] = None):
        self.sent: List[OutboundMessage] = []
        self.fail_with = fail_with

    async def send(self, message: OutboundMessage) -> None:
        if self.fail_with:
            raise DeliveryError(self.fail_with)
        self.sent.append(message)

    def clear(self) -> None:
        self.sent.clear()
