"""SMTP mail relay.

One SmtpMailer is constructed per process by the application factory and
passed to the operations that send email.
"""
from __future__ import annotations
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from internquest.core.errors import ErrorKind, ServiceError

logger = logging.getLogger(__name__)

DEFAULT_FROM_ADDRESS = "no-reply@internquest.local"
SMTP_TIMEOUT = 15


class SmtpMailer:
    """Send HTML email through an authenticated SMTP relay."""

    def __init__(
        self,
        host: Optional[str],
        port: Optional[int],
        user: Optional[str],
        password: Optional[str],
        from_address: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.user = user
        self._password = password
        self.from_address = from_address or DEFAULT_FROM_ADDRESS

    @property
    def configured(self) -> bool:
        return bool(self.host and self.port and self.user and self._password)

    def send(self, to: str, subject: str, html: str) -> None:
        """Send an HTML email.

        Raises:
            ServiceError: INVALID_ARGUMENT for missing fields,
                FAILED_PRECONDITION if the relay is not configured
            smtplib.SMTPException: On delivery failure
        """
        if not to or not isinstance(to, str):
            raise ServiceError(ErrorKind.INVALID_ARGUMENT, "Email 'to' is required.")
        if not subject or not isinstance(subject, str):
            raise ServiceError(ErrorKind.INVALID_ARGUMENT, "Email 'subject' is required.")
        if not html or not isinstance(html, str):
            raise ServiceError(ErrorKind.INVALID_ARGUMENT, "Email 'html' is required.")
        if not self.configured:
            raise ServiceError(
                ErrorKind.FAILED_PRECONDITION,
                "Email service is not configured (missing SMTP_HOST/SMTP_PORT/SMTP_USER/SMTP_PASSWORD).",
            )

        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(html, subtype="html")

        # Port 465 is implicit TLS; anything else negotiates STARTTLS
        if int(self.port) == 465:
            with smtplib.SMTP_SSL(self.host, int(self.port), timeout=SMTP_TIMEOUT) as server:
                server.login(self.user, self._password)
                server.send_message(message)
        else:
            with smtplib.SMTP(self.host, int(self.port), timeout=SMTP_TIMEOUT) as server:
                server.starttls()
                server.login(self.user, self._password)
                server.send_message(message)
        # Never log recipient body: it carries one-time links
        logger.info("Email sent: subject=%r", subject)
