"""
Email delivery over SMTP.

SmtpMailer is the email-delivery collaborator used by the notification
composer and by the /send-email route. It validates the request, builds a
text + HTML message (with the payment QR attached when present) and hands
it to the SMTP server.

Failure mapping:
    - Missing to/subject/message      -> ValidationError
    - Malformed recipient             -> InvalidRecipient
    - Missing credentials             -> NotificationNotConfigured
    - SMTP or socket error            -> NotificationFailed
"""

from __future__ import annotations

import logging
import mimetypes
import re
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from pathlib import Path
from typing import Optional

import bleach

from .exceptions import (
    InvalidRecipient,
    NotificationFailed,
    NotificationNotConfigured,
    ValidationError,
)


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(address: str) -> bool:
    """Loose syntactic check: something@something.tld, no whitespace."""
    return bool(address) and EMAIL_PATTERN.match(address) is not None


def text_to_html(message: str) -> str:
    """Render a plain-text message as a single HTML paragraph."""
    cleaned = bleach.clean(message, tags=[], strip=True)
    return f"<p>{cleaned.replace(chr(10), '<br>')}</p>"


class SmtpMailer:
    """Sends single messages through an SMTP-over-SSL server."""

    def __init__(
        self,
        username: str,
        password: str,
        host: str = "smtp.gmail.com",
        port: int = 465,
        timeout_seconds: float = 30.0,
        attachment_path: Optional[Path | str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._username = username
        self._password = password
        self._host = host
        self._port = port
        self._timeout = timeout_seconds
        self._attachment_path = Path(attachment_path) if attachment_path else None
        self._logger = logger or logging.getLogger("print_queue.core.mailer")

    @property
    def is_configured(self) -> bool:
        return bool(self._username and self._password)

    def build_message(self, to: str, subject: str, message: str) -> EmailMessage:
        """Build the MIME message without sending it."""
        email = EmailMessage()
        email["From"] = self._username
        email["To"] = to
        email["Subject"] = subject
        email["Message-ID"] = make_msgid()
        email.set_content(message)
        email.add_alternative(text_to_html(message), subtype="html")

        if self._attachment_path and self._attachment_path.exists():
            content_type, _ = mimetypes.guess_type(self._attachment_path.name)
            maintype, subtype = (content_type or "application/octet-stream").split("/", 1)
            email.add_attachment(
                self._attachment_path.read_bytes(),
                maintype=maintype,
                subtype=subtype,
                filename=self._attachment_path.name,
            )
        return email

    def send(self, to: str, subject: str, message: str) -> str:
        """
        Send one message.

        Args:
            to: Recipient address
            subject: Subject line
            message: Plain-text body

        Returns:
            The Message-ID header of the sent message

        Raises:
            ValidationError, InvalidRecipient, NotificationNotConfigured,
            NotificationFailed
        """
        to = (to or "").strip()
        if not to or not subject or not message:
            raise ValidationError("Missing required fields: to, subject, message")

        if not is_valid_email(to):
            raise InvalidRecipient(to)

        if not self.is_configured:
            self._logger.error("Email credentials not configured")
            raise NotificationNotConfigured()

        try:
            email = self.build_message(to, subject, message)
            with smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout) as smtp:
                smtp.login(self._username, self._password)
                smtp.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            self._logger.error(f"Email error: {e}")
            raise NotificationFailed(str(e), recipient=to) from e

        message_id = email["Message-ID"]
        self._logger.info(f"Email sent successfully: {message_id}")
        return message_id
