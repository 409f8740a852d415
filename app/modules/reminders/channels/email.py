"""Email channel delivering through an SMTP relay."""

import re
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Callable, Optional

from infrastructure.configuration.integrations import ChannelSettings
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, classify_smtp_error
from modules.reminders.channels.base import NotificationChannel
from modules.reminders.clock import Clock
from modules.reminders.models import Channel, EmailContent, OutboundMessage

logger = get_module_logger()

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class EmailChannel(NotificationChannel):
    """Sends EmailContent as a plain text message with an optional HTML part.

    A new SMTP connection is opened per message; ``smtp_factory`` is
    ``smtplib.SMTP`` in production and a fake in tests.
    """

    channel = Channel.EMAIL

    def __init__(
        self,
        settings: ChannelSettings,
        timeout_seconds: float = 10.0,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
        clock: Optional[Clock] = None,
    ):
        super().__init__(clock)
        self._settings = settings
        self._timeout = timeout_seconds
        self._smtp_factory = smtp_factory

    def resolve_recipient(self, recipient: str) -> OperationResult:
        address = (recipient or "").strip()
        if not EMAIL_PATTERN.match(address):
            return OperationResult.permanent_error(
                f"Invalid email address: {address!r}", error_code="INVALID_ADDRESS"
            )
        return OperationResult.success(data={"address": address})

    def build_message(self, message: OutboundMessage, address: str) -> EmailMessage:
        content = message.content
        if not isinstance(content, EmailContent):
            raise TypeError(f"email channel cannot send {type(content).__name__}")

        email = EmailMessage()
        email["From"] = self._settings.EMAIL_SENDER
        email["To"] = address
        email["Subject"] = content.subject
        email["Message-ID"] = make_msgid(idstring=message.occurrence_id[:32])
        email.set_content(content.body)
        if content.html_body:
            email.add_alternative(content.html_body, subtype="html")
        return email

    def _deliver(self, message: OutboundMessage, address: str) -> OperationResult:
        try:
            email = self.build_message(message, address)
        except TypeError as e:
            return OperationResult.permanent_error(str(e), error_code="MALFORMED_CONTENT")

        settings = self._settings
        try:
            with self._smtp_factory(
                settings.SMTP_HOST, settings.SMTP_PORT, timeout=self._timeout
            ) as smtp:
                if settings.SMTP_USE_TLS:
                    smtp.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                smtp.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            return classify_smtp_error(e)

        return OperationResult.success(
            data={"message_id": email["Message-ID"]}, message="email sent"
        )

    def health_check(self) -> OperationResult:
        settings = self._settings
        try:
            with self._smtp_factory(
                settings.SMTP_HOST, settings.SMTP_PORT, timeout=self._timeout
            ) as smtp:
                smtp.noop()
        except (smtplib.SMTPException, OSError) as e:
            logger.error("smtp_health_check_failed", error=str(e))
            return classify_smtp_error(e)
        return OperationResult.success(message="SMTP relay reachable")
