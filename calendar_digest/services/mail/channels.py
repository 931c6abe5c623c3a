"""
Outbound mail channels.

A channel delivers one OutboundMessage or raises. The digest uses the Gmail API
as its primary channel and plain SMTP as the fallback and admin channel.
"""

import asyncio
import smtplib
import ssl
from email.mime.text import MIMEText
from typing import Protocol

from calendar_digest.features.daily_summary.domain.models import OutboundMessage
from calendar_digest.infrastructure.observability.logging import get_logger
from calendar_digest.services.gmail.google_client import (
    GoogleGmailError,
    GoogleGmailService,
    google_gmail_service,
)

logger = get_logger(__name__)

SMTP_TIMEOUT = 30  # seconds


class MailChannelError(Exception):
    """Raised when a channel cannot deliver a message."""

    def __init__(self, message: str, channel: str | None = None):
        super().__init__(message)
        self.channel = channel


class MailChannel(Protocol):
    name: str

    async def send(self, message: OutboundMessage) -> None: ...


class GmailChannel:
    """Primary channel: Gmail API send."""

    name = "gmail"

    def __init__(
        self,
        access_token: str | None,
        sender: str | None = None,
        service: GoogleGmailService | None = None,
    ):
        self._access_token = access_token
        self._sender = sender
        self._service = service or google_gmail_service

    async def send(self, message: OutboundMessage) -> None:
        if not self._access_token:
            raise MailChannelError("Gmail channel has no access token configured", self.name)
        try:
            await self._service.send_message(
                self._access_token,
                to=message.to,
                subject=message.subject,
                body=message.body,
                html_body=message.html_body,
                sender=self._sender,
            )
        except GoogleGmailError as e:
            raise MailChannelError(str(e), self.name) from e


class SmtpChannel:
    """Fallback channel: SMTP with STARTTLS, plain-text body only."""

    name = "smtp"

    def __init__(
        self,
        host: str | None,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_tls: bool = True,
    ):
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender or username
        self._use_tls = use_tls

    def _build_message(self, message: OutboundMessage) -> MIMEText:
        msg = MIMEText(message.body, "plain", "utf-8")
        msg["Subject"] = message.subject
        msg["To"] = message.to
        if self._sender:
            msg["From"] = self._sender
        return msg

    def _send_blocking(self, msg: MIMEText, to: str) -> None:
        """Blocking SMTP session; run through asyncio.to_thread."""
        with smtplib.SMTP(self._host, self._port, timeout=SMTP_TIMEOUT) as server:
            if self._use_tls:
                server.starttls(context=ssl.create_default_context())
            if self._username and self._password:
                server.login(self._username, self._password)
            server.sendmail(self._sender or "", [to], msg.as_string())

    async def send(self, message: OutboundMessage) -> None:
        if not self._host:
            raise MailChannelError("SMTP channel has no host configured", self.name)

        msg = self._build_message(message)
        try:
            await asyncio.to_thread(self._send_blocking, msg, message.to)
        except TimeoutError as e:
            raise MailChannelError(f"SMTP timeout: {e}", self.name) from e
        except (smtplib.SMTPAuthenticationError, smtplib.SMTPRecipientsRefused) as e:
            raise MailChannelError(f"SMTP delivery refused: {e}", self.name) from e
        except smtplib.SMTPResponseException as e:
            # 4xx replies are transient per RFC 5321, 5xx are permanent
            if 400 <= e.smtp_code < 500:
                raise MailChannelError(f"SMTP temporary failure: {e}", self.name) from e
            raise MailChannelError(f"SMTP delivery refused: {e}", self.name) from e
        except (smtplib.SMTPException, OSError) as e:
            raise MailChannelError(f"SMTP network error: {e}", self.name) from e

        logger.info("Message sent via SMTP", to=message.to, subject=message.subject)
