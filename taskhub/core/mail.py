"""
Outbound mail — OTP delivery over SMTP.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage

from fastapi.concurrency import run_in_threadpool

from taskhub.core.config import settings
from taskhub.core.exceptions import MailDeliveryError

logger = logging.getLogger(__name__)


def mask_email(email: str, keep: int = 3) -> str:
    """``alice@example.com`` -> ``ali****@example.com``."""
    local, _, domain = email.partition("@")
    return f"{local[:keep]}****@{domain}"


class Mailer(ABC):
    """Send a plain-text message to one address; raise MailDeliveryError on failure."""

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        ...


class SmtpMailer(Mailer):
    def __init__(
        self,
        host: str,
        port: int,
        *,
        username: str | None = None,
        password: str | None = None,
        sender: str,
        use_tls: bool = True,
        timeout: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as s:
            if self.use_tls:
                s.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                s.login(self.username, self.password)
            s.send_message(msg)

    async def send(self, to: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(body)

        try:
            await run_in_threadpool(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail to %s via %s:%s failed: %r", mask_email(to), self.host, self.port, exc)
            raise MailDeliveryError() from exc
        logger.info("Mail '%s' sent to %s", subject, mask_email(to))


_mailer = SmtpMailer(
    settings.SMTP_HOST,
    settings.SMTP_PORT,
    username=settings.SMTP_USER,
    password=settings.SMTP_PASSWORD,
    sender=settings.MAIL_FROM,
    use_tls=settings.SMTP_USE_TLS,
    timeout=settings.SMTP_TIMEOUT,
)


def get_mailer() -> Mailer:
    """FastAPI dependency — the process-wide mailer."""
    return _mailer
