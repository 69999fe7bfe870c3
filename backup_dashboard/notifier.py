"""Escalation notifiers for audit events flagged as important."""

from abc import ABC, abstractmethod
from email.message import EmailMessage

import aiosmtplib
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from ._utils import logger
from .config import NotifierConfig
from .exceptions import NotificationError


class BaseNotifier(ABC):
    """Accepts a text message for out-of-band delivery."""

    @abstractmethod
    async def notify(self, message: str) -> None:
        """Deliver message.

        Raises:
            NotificationError: If delivery failed
        """


class EmailNotifier(BaseNotifier):
    """Send escalations as plain-text email over SMTP."""

    def __init__(self, config: NotifierConfig):
        if not config.enabled:
            raise ValueError("EmailNotifier requires EMAIL_USER, EMAIL_PASS and NOTIFY_EMAIL")
        self.config = config

    def _build_message(self, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.config.username
        message["To"] = self.config.recipient
        message["Subject"] = self.config.subject
        message.set_content(text)
        return message

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception_type((aiosmtplib.SMTPException, OSError)),
        reraise=True,
    )
    async def _send(self, message: EmailMessage) -> None:
        use_tls = self.config.smtp_port == 465
        await aiosmtplib.send(
            message,
            hostname=self.config.smtp_host,
            port=self.config.smtp_port,
            username=self.config.username,
            password=self.config.password,
            use_tls=use_tls,
            start_tls=not use_tls,
        )

    async def notify(self, message: str) -> None:
        try:
            await self._send(self._build_message(message))
        except (aiosmtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Email delivery to {self.config.recipient} failed: {e}") from e

        logger.debug(f"Escalation email sent to {self.config.recipient}")


def create_notifier(config: NotifierConfig):
    """Return an EmailNotifier when email is configured, otherwise None."""
    if config.enabled:
        return EmailNotifier(config)
    logger.info("Email notifications not configured - escalations are only logged")
    return None
