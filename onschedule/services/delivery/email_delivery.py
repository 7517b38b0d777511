"""Email delivery service using SendGrid API."""

import asyncio
from typing import Any, Callable

import structlog
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from onschedule.core.config import settings
from onschedule.core.errors import ProviderConfigurationError, ProviderError
from onschedule.services.delivery.results import NotificationResult
from onschedule.services.delivery.retry_manager import NotificationRetryManager

logger = structlog.get_logger()

# Phrases SendGrid uses when refusing a sender or recipient outright
REJECTION_MARKERS = (
    "unauthorized",
    "unverified",
    "not verified",
    "verified sender identity",
    "forbidden",
)


def is_rejection(error: BaseException) -> bool:
    """Check if a send error means the provider refused the message as unauthorized/unverified.

    These errors will not succeed on retry and are handed to the fallback provider.
    """
    if isinstance(error, ProviderError) and error.rejected:
        return True

    status_code = getattr(error, "status_code", None)
    if status_code in (401, 403):
        return True

    body = getattr(error, "body", None)
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    text = f"{error} {body or ''}".lower()
    return any(marker in text for marker in REJECTION_MARKERS)


class EmailDeliveryService:
    """Sends reminder emails via SendGrid API, one message per recipient."""

    provider = "sendgrid"

    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
        batch_size: int | None = None,
        max_attempts: int | None = None,
        retry_base_delay: float | None = None,
        timeout: float | None = None,
    ):
        """Initialize SendGrid client.

        Raises:
            ProviderConfigurationError: no API key configured
        """
        api_key = api_key if api_key is not None else settings.sendgrid_api_key
        if not api_key:
            raise ProviderConfigurationError("SendGrid API key is required (SENDGRID_API_KEY)")

        self.client = SendGridAPIClient(api_key)
        self.from_email = from_email or settings.sendgrid_from_email
        self.from_name = from_name or settings.sendgrid_from_name
        self.batch_size = batch_size or settings.email_batch_size
        self.timeout = timeout if timeout is not None else settings.provider_request_timeout
        self.retry_manager = NotificationRetryManager(
            max_tries=max_attempts or settings.email_max_attempts,
            base_delay=(
                retry_base_delay if retry_base_delay is not None else settings.email_retry_base_delay
            ),
            giveup=is_rejection,
        )
        logger.info("SendGrid client initialized", from_email=self.from_email)

    async def send_template_email(
        self,
        to_email: str,
        template_id: str,
        template_data: dict[str, Any],
    ) -> NotificationResult:
        """Send a dynamic-template email to one recipient.

        Args:
            to_email: Recipient email address
            template_id: SendGrid dynamic template ID
            template_data: Variables substituted by SendGrid

        Returns:
            Delivery outcome; failures are returned, not raised
        """
        message = Mail(from_email=(self.from_email, self.from_name), to_emails=to_email)
        message.template_id = template_id
        message.dynamic_template_data = template_data
        return await self._deliver(to_email, message)

    async def send_plain_email(
        self,
        to_email: str,
        subject: str,
        text: str,
        html: str | None = None,
    ) -> NotificationResult:
        """Send a plain-text (optionally HTML) email to one recipient."""
        message = Mail(
            from_email=(self.from_email, self.from_name),
            to_emails=to_email,
            subject=subject,
            plain_text_content=text,
            html_content=html,
        )
        return await self._deliver(to_email, message)

    async def send_bulk_template(
        self,
        recipients: list[str],
        template_id: str,
        template_data: dict[str, Any],
    ) -> list[NotificationResult]:
        """Send the same template and data to each recipient separately."""
        return await self._send_bulk(
            recipients,
            lambda to_email: self.send_template_email(to_email, template_id, template_data),
        )

    async def send_bulk_plain_text(
        self,
        recipients: list[str],
        subject: str,
        text: str,
        html: str | None = None,
    ) -> list[NotificationResult]:
        """Send the same plain-text message to each recipient separately."""
        return await self._send_bulk(
            recipients,
            lambda to_email: self.send_plain_email(to_email, subject, text, html),
        )

    async def _send_bulk(
        self,
        recipients: list[str],
        send_one: Callable[[str], Any],
    ) -> list[NotificationResult]:
        """Send concurrently within a batch; batches run one after another."""
        results: list[NotificationResult] = []

        for start in range(0, len(recipients), self.batch_size):
            batch = recipients[start:start + self.batch_size]
            outcomes = await asyncio.gather(
                *(send_one(to_email) for to_email in batch),
                return_exceptions=True,
            )
            for to_email, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    outcome = self._failure(to_email, outcome)
                results.append(outcome)

        success = sum(1 for r in results if r.success)
        logger.info(
            "Bulk emails processed",
            provider=self.provider,
            total=len(recipients),
            success=success,
            failed=len(results) - success,
        )
        return results

    async def _deliver(self, to_email: str, message: Mail) -> NotificationResult:
        try:
            response = await self.retry_manager.execute_with_retry(self._send_once, to_email, message)
        except Exception as e:
            return self._failure(to_email, e)

        # Extract message ID from response headers
        message_id = None
        if hasattr(response, "headers") and "X-Message-Id" in response.headers:
            message_id = response.headers["X-Message-Id"]

        logger.info(
            "Email sent successfully",
            to_email=to_email,
            message_id=message_id,
            status_code=response.status_code,
        )
        return NotificationResult(
            recipient=to_email,
            channel="email",
            provider=self.provider,
            success=True,
            message_id=message_id,
        )

    async def _send_once(self, to_email: str, message: Mail):
        # SendGrid client is synchronous, run it in a thread
        response = await asyncio.wait_for(
            asyncio.to_thread(self.client.send, message),
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise ProviderError(
                f"SendGrid returned status {response.status_code}",
                recipient=to_email,
                status_code=response.status_code,
                rejected=response.status_code in (401, 403),
            )
        return response

    def _failure(self, to_email: str, error: BaseException) -> NotificationResult:
        rejected = is_rejection(error)
        logger.error(
            "Email delivery failed",
            to_email=to_email,
            rejected=rejected,
            error=str(error) or type(error).__name__,
        )
        return NotificationResult(
            recipient=to_email,
            channel="email",
            provider=self.provider,
            success=False,
            error=str(error) or type(error).__name__,
            rejected=rejected,
        )
