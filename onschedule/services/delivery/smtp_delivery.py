"""Fallback email delivery over SMTP.

Only recipients the primary provider refuses are routed here, with a
locally compiled rendering of the reminder.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

import structlog

from onschedule.core.config import settings
from onschedule.core.errors import ProviderConfigurationError
from onschedule.services.delivery.results import NotificationResult

logger = structlog.get_logger()


class SMTPDeliveryService:
    """Sends emails through an SMTP relay."""

    provider = "smtp"

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool | None = None,
        from_email: str | None = None,
        batch_size: int | None = None,
        timeout: float | None = None,
    ):
        """Initialize SMTP settings.

        Raises:
            ProviderConfigurationError: no SMTP host configured
        """
        self.host = host or settings.smtp_host
        if not self.host:
            raise ProviderConfigurationError("SMTP host is required (SMTP_HOST)")

        self.port = port or settings.smtp_port
        self.username = username if username is not None else settings.smtp_username
        self.password = password if password is not None else settings.smtp_password
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls
        self.from_email = from_email or settings.smtp_from_email
        self.batch_size = batch_size or settings.email_batch_size
        self.timeout = timeout if timeout is not None else settings.provider_request_timeout
        logger.info("SMTP fallback initialized", host=self.host, port=self.port)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        text: str,
        html: str | None = None,
    ) -> NotificationResult:
        """Send one email. Failures are returned, not raised."""
        message = self._build_message(to_email, subject, text, html)
        try:
            await asyncio.to_thread(self._send_sync, message)
        except Exception as e:
            logger.error("SMTP delivery failed", to_email=to_email, error=str(e))
            return NotificationResult(
                recipient=to_email,
                channel="email",
                provider=self.provider,
                success=False,
                error=str(e),
            )

        logger.info("Email sent via SMTP fallback", to_email=to_email)
        return NotificationResult(
            recipient=to_email,
            channel="email",
            provider=self.provider,
            success=True,
            message_id=message["Message-ID"],
        )

    async def send_bulk(
        self,
        recipients: list[str],
        subject: str,
        text: str,
        html: str | None = None,
    ) -> list[NotificationResult]:
        """Send the same message to each recipient, batch by batch."""
        results: list[NotificationResult] = []
        for start in range(0, len(recipients), self.batch_size):
            batch = recipients[start:start + self.batch_size]
            results.extend(
                await asyncio.gather(
                    *(self.send_email(to_email, subject, text, html) for to_email in batch)
                )
            )
        return results

    def _build_message(
        self,
        to_email: str,
        subject: str,
        text: str,
        html: str | None,
    ) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.from_email
        message["To"] = to_email
        message["Message-ID"] = make_msgid(domain=self.from_email.split("@")[-1])
        message.attach(MIMEText(text, "plain", "utf-8"))
        if html:
            message.attach(MIMEText(html, "html", "utf-8"))
        return message

    def _send_sync(self, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)
