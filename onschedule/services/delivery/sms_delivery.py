"""SMS delivery service using Twilio API."""

import asyncio
import re

import structlog
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client

from onschedule.core.config import settings
from onschedule.core.errors import ProviderConfigurationError
from onschedule.services.delivery.results import NotificationResult

logger = structlog.get_logger()


def mask_phone(phone: str) -> str:
    """Hide all but the last four digits of a phone number for logging."""
    if len(phone) <= 4:
        return "****"
    return f"{'*' * (len(phone) - 4)}{phone[-4:]}"


class SMSDeliveryService:
    """Sends reminder SMS via Twilio API."""

    provider = "twilio"

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        send_delay: float | None = None,
        timeout: float | None = None,
    ):
        """Initialize Twilio client.

        Raises:
            ProviderConfigurationError: credentials or sender number missing
        """
        account_sid = account_sid or settings.twilio_account_sid
        auth_token = auth_token or settings.twilio_auth_token
        self.from_number = from_number or settings.twilio_from_number
        if not (account_sid and auth_token and self.from_number):
            raise ProviderConfigurationError(
                "Twilio credentials are required "
                "(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER)"
            )

        # Use async HTTP client for non-blocking operation
        http_client = AsyncTwilioHttpClient(
            timeout=timeout if timeout is not None else settings.provider_request_timeout,
        )
        self.client = Client(account_sid, auth_token, http_client=http_client)
        self.send_delay = send_delay if send_delay is not None else settings.sms_send_delay
        logger.info("Twilio client initialized", from_number=self.from_number)

    async def send_sms(self, to_phone: str, body: str) -> NotificationResult:
        """Send one SMS. Failures are returned, not raised.

        Args:
            to_phone: Recipient phone number (will be normalized to E.164)
            body: Message text

        Returns:
            Delivery outcome with the Twilio message SID on success
        """
        normalized_phone = self._normalize_phone(to_phone)
        try:
            message = await self.client.messages.create_async(
                body=body,
                from_=self.from_number,
                to=normalized_phone,
            )
        except Exception as e:
            logger.error(
                "SMS delivery failed",
                to_phone=mask_phone(normalized_phone),
                error=str(e),
            )
            return NotificationResult(
                recipient=to_phone,
                channel="sms",
                provider=self.provider,
                success=False,
                error=str(e),
            )

        logger.info(
            "SMS sent successfully",
            to_phone=mask_phone(normalized_phone),
            message_sid=message.sid,
            status=message.status,
        )
        return NotificationResult(
            recipient=to_phone,
            channel="sms",
            provider=self.provider,
            success=True,
            message_id=message.sid,
        )

    async def send_bulk_sms(self, recipients: list[str], body: str) -> list[NotificationResult]:
        """Send the same SMS to each recipient one at a time.

        A fixed pause separates consecutive sends to stay under the
        provider's rate limit.
        """
        results: list[NotificationResult] = []
        for index, to_phone in enumerate(recipients):
            if index and self.send_delay > 0:
                await asyncio.sleep(self.send_delay)
            results.append(await self.send_sms(to_phone, body))

        success = sum(1 for r in results if r.success)
        logger.info(
            "Bulk SMS processed",
            total=len(recipients),
            success=success,
            failed=len(results) - success,
        )
        return results

    def _normalize_phone(self, phone: str) -> str:
        """Normalize phone number to E.164 format.

        Removes spaces, dashes, parentheses. If doesn't start with '+',
        assumes North American number and prepends '+1'.
        """
        cleaned = re.sub(r"[\s\-\(\)\.]", "", phone)
        if not cleaned.startswith("+"):
            cleaned = f"+1{cleaned}"
        return cleaned
