"""Reminder dispatch for a single inspection occurrence.

Loads the inspection with its client, asset and inspector contacts, picks
the reminder bound to its due date and sends it by email or SMS. Email goes
through the primary provider first; recipients it refuses as
unauthorized/unverified are re-sent through the fallback provider with a
locally rendered message.
"""

import uuid
from datetime import date

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onschedule.core.config import settings
from onschedule.core.metrics import notifications_total
from onschedule.models.inspection import Inspection
from onschedule.models.reminder import Reminder
from onschedule.services.delivery.email_delivery import EmailDeliveryService
from onschedule.services.delivery.rendering import (
    RenderedEmail,
    render_reminder_email,
    text_to_html,
)
from onschedule.services.delivery.results import BatchSummary, NotificationResult
from onschedule.services.delivery.sms_delivery import SMSDeliveryService
from onschedule.services.delivery.smtp_delivery import SMTPDeliveryService
from onschedule.services.repository import InspectionRepository

logger = structlog.get_logger()

DATE_FORMAT = "%d %b %Y"


def format_date(value: date | None) -> str:
    return value.strftime(DATE_FORMAT) if value else "N/A"


def unique_contacts(values) -> list[str]:
    """Non-empty values with duplicates removed (case-insensitive), first-seen order."""
    seen: set[str] = set()
    contacts: list[str] = []
    for value in values:
        value = (value or "").strip()
        if not value or value.lower() in seen:
            continue
        seen.add(value.lower())
        contacts.append(value)
    return contacts


def email_recipients(inspection: Inspection) -> list[str]:
    """Client email plus each assigned inspector's email."""
    return unique_contacts(
        [inspection.client.email if inspection.client else None]
        + [i.employee.email for i in inspection.inspectors if i.employee]
    )


def sms_recipients(inspection: Inspection) -> list[str]:
    """Client phone plus each assigned inspector's phone."""
    return unique_contacts(
        [inspection.client.phone if inspection.client else None]
        + [i.employee.phone for i in inspection.inspectors if i.employee]
    )


def inspection_location(inspection: Inspection) -> str:
    if inspection.asset and inspection.asset.location:
        return inspection.asset.location
    return inspection.location or "N/A"


def build_template_variables(inspection: Inspection) -> dict[str, str]:
    """Variables shared by the hosted template and the local fallback rendering."""
    inspector_names = [
        i.employee.display_name for i in inspection.inspectors if i.employee
    ]
    return {
        "companyName": inspection.client.company if inspection.client else "N/A",
        "clientName": (inspection.client.name or "") if inspection.client else "",
        "inspectionDate": format_date(inspection.due_date),
        "assetName": inspection.asset.label if inspection.asset else "N/A",
        "location": inspection_location(inspection),
        "inspectorNames": ", ".join(inspector_names) or "N/A",
        "inspectionType": inspection.inspection_type.value,
    }


def build_manual_email_text(message: str, variables: dict[str, str]) -> str:
    """Plain-text email body wrapping an operator-written message."""
    return (
        "Inspection Reminder\n\n"
        f"{message.strip()}\n\n"
        "Details:\n"
        f"- Date: {variables['inspectionDate']}\n"
        f"- Asset: {variables['assetName']}\n"
        f"- Location: {variables['location']}\n"
        f"- Client: {variables['companyName']}\n\n"
        "Thank you."
    )


def build_sms_body(reminder: Reminder, variables: dict[str, str]) -> str:
    """SMS text for a reminder.

    A manual message is sent verbatim, except that short ones get the date
    and asset appended. Without a manual message a fixed summary is used.
    """
    if reminder.has_manual_message:
        message = reminder.manual_message.strip()
        if len(message) < settings.sms_short_message_threshold:
            message += (
                f"\n\nDate: {variables['inspectionDate']}"
                f"\nAsset: {variables['assetName']}"
            )
        return message

    return (
        "Reminder: Inspection scheduled\n"
        f"Date: {variables['inspectionDate']}\n"
        f"Asset: {variables['assetName']}\n"
        f"Location: {variables['location']}\n"
        f"Client: {variables['companyName']}"
    )


class NotificationService:
    """Sends reminder emails and SMS for inspections."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_service: EmailDeliveryService | None = None,
        sms_service: SMSDeliveryService | None = None,
        fallback_email_service: SMTPDeliveryService | None = None,
    ):
        self.session_factory = session_factory
        self.email_service = email_service
        self.sms_service = sms_service
        self.fallback_email_service = fallback_email_service

    async def dispatch(self, inspection_id: uuid.UUID, channel: str) -> BatchSummary | None:
        """Send the reminder for one channel ("email" or "sms")."""
        if channel == "email":
            return await self.send_reminder_email(inspection_id)
        if channel == "sms":
            return await self.send_sms_reminder(inspection_id)
        raise ValueError(f"Unknown notification channel: {channel}")

    async def _load(self, inspection_id: uuid.UUID) -> tuple[Inspection, Reminder] | None:
        async with self.session_factory() as db:
            repo = InspectionRepository(db)
            inspection = await repo.get_inspection_with_contacts(inspection_id)
            if inspection is None or inspection.due_date is None:
                logger.warning("Inspection not found for reminder", inspection_id=str(inspection_id))
                return None

            reminder = await repo.find_latest_reminder(
                inspection.client_id,
                inspection.asset_id,
                inspection.due_date,
            )
            if reminder is None:
                logger.warning(
                    "No reminder bound to inspection",
                    inspection_id=str(inspection_id),
                    due_date=inspection.due_date.isoformat(),
                )
                return None

            return inspection, reminder

    async def send_reminder_email(self, inspection_id: uuid.UUID) -> BatchSummary | None:
        """Email the reminder to the client and every assigned inspector.

        Returns:
            Summary with one result per recipient, or None if nothing was sent
        """
        if self.email_service is None:
            logger.warning("Email provider not configured, skipping reminder", inspection_id=str(inspection_id))
            return None

        loaded = await self._load(inspection_id)
        if loaded is None:
            return None
        inspection, reminder = loaded

        recipients = email_recipients(inspection)
        if not recipients:
            logger.info("No email recipients for inspection", inspection_id=str(inspection_id))
            return None

        variables = build_template_variables(inspection)

        if reminder.has_manual_message:
            text = build_manual_email_text(reminder.manual_message, variables)
            rendered = RenderedEmail(
                subject=f"Inspection Reminder - {variables['companyName']}",
                text=text,
                html=text_to_html(text),
            )
            results = await self.email_service.send_bulk_plain_text(
                recipients, rendered.subject, rendered.text, rendered.html
            )
        else:
            template = reminder.email_template
            if template is None or not template.provider_template_id:
                logger.warning(
                    "Email template has no provider template id, skipping reminder",
                    inspection_id=str(inspection_id),
                    email_template_id=str(reminder.email_template_id),
                )
                return None

            rendered = render_reminder_email(variables, subject=template.subject, body_html=template.body)
            results = await self.email_service.send_bulk_template(
                recipients, template.provider_template_id, variables
            )

        results, fallback_count = await self._apply_fallback(results, rendered)
        summary = BatchSummary(channel="email", results=results, fallback_count=fallback_count)
        self._record(summary, inspection_id)
        return summary

    async def _apply_fallback(
        self,
        results: list[NotificationResult],
        rendered: RenderedEmail,
    ) -> tuple[list[NotificationResult], int]:
        """Re-send rejected recipients through the fallback provider.

        Each rejected primary outcome is replaced by its fallback outcome in
        place, so the list still holds exactly one result per recipient.
        """
        rejected = [r.recipient for r in results if not r.success and r.rejected]
        if not rejected:
            return results, 0

        if self.fallback_email_service is None:
            logger.warning("Recipients rejected and no fallback provider configured", count=len(rejected))
            return results, 0

        logger.info("Retrying rejected recipients via fallback provider", count=len(rejected))
        fallback_results = await self.fallback_email_service.send_bulk(
            rejected, rendered.subject, rendered.text, rendered.html
        )
        by_recipient = {r.recipient: r for r in fallback_results}

        merged = [
            by_recipient.get(r.recipient, r) if (not r.success and r.rejected) else r
            for r in results
        ]
        return merged, len(by_recipient)

    async def send_sms_reminder(self, inspection_id: uuid.UUID) -> BatchSummary | None:
        """Text the reminder to the client and every assigned inspector.

        Returns:
            Summary with one result per phone number, or None if nothing was sent
        """
        if self.sms_service is None:
            logger.warning("SMS provider not configured, skipping reminder", inspection_id=str(inspection_id))
            return None

        loaded = await self._load(inspection_id)
        if loaded is None:
            return None
        inspection, reminder = loaded

        recipients = sms_recipients(inspection)
        if not recipients:
            logger.info("No SMS recipients for inspection", inspection_id=str(inspection_id))
            return None

        body = build_sms_body(reminder, build_template_variables(inspection))
        results = await self.sms_service.send_bulk_sms(recipients, body)

        summary = BatchSummary(channel="sms", results=results)
        self._record(summary, inspection_id)
        return summary

    def _record(self, summary: BatchSummary, inspection_id: uuid.UUID) -> None:
        for result in summary.results:
            notifications_total.labels(
                channel=result.channel,
                provider=result.provider,
                outcome="success" if result.success else "failed",
            ).inc()

        logger.info(
            "Reminder dispatched",
            inspection_id=str(inspection_id),
            channel=summary.channel,
            total=summary.total,
            success=summary.success,
            failed=summary.failed,
            fallback=summary.fallback_count,
        )
