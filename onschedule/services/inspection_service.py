"""Inspection & reminder binding.

Creates a dated inspection occurrence, binds its reminder configuration and
registers the one-shot reminder jobs for it.
"""

import functools
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onschedule.core.config import settings
from onschedule.core.errors import ConflictError, NotFoundError, ValidationError
from onschedule.models.inspection import Inspection, InspectionType
from onschedule.models.reminder import NotificationMethod, ReminderType
from onschedule.services.job_scheduler import JobScheduler
from onschedule.services.notification_config import (
    ManualMessage,
    NotificationConfig,
    TemplateMessage,
)
from onschedule.services.notification_service import NotificationService
from onschedule.services.recurrence import lead_days, reminder_type_for
from onschedule.services.repository import InspectionRepository, unique_ids

logger = structlog.get_logger()


def reminder_job_id(offset_days: int, inspection_id: uuid.UUID, channel: str) -> str:
    return f"reminder_{offset_days}d_before_{inspection_id}_{channel}"


def reminder_fire_time(due_date: date, offset_days: int) -> datetime:
    """Local send hour on the day ``offset_days`` before ``due_date``."""
    return datetime.combine(
        due_date - timedelta(days=offset_days),
        time(hour=settings.reminder_send_hour),
        tzinfo=ZoneInfo(settings.timezone),
    )


class InspectionService:
    """Binds new inspection occurrences to their reminders and jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scheduler: JobScheduler,
        dispatcher: NotificationService,
    ):
        self.session_factory = session_factory
        self.scheduler = scheduler
        self.dispatcher = dispatcher

    async def bind(
        self,
        client_id: uuid.UUID,
        asset_id: uuid.UUID,
        inspection_type: InspectionType,
        due_date: date | None,
        location: str | None = None,
        notes: str | None = None,
        inspector_ids: Iterable[uuid.UUID] = (),
        notification: NotificationConfig | None = None,
        now: datetime | None = None,
    ) -> Inspection:
        """Create a scheduled inspection and, when inspectors are assigned, its reminder.

        The inspection, its inspector assignments, the reminder and the
        reminder's assignments are committed together. Reminder jobs are
        registered after the commit; a failure there is logged and leaves
        the stored rows in place.

        Args:
            client_id: Owning client
            asset_id: Inspected asset
            inspection_type: Recurrence or one-off kind
            due_date: Date the inspection is due
            location: Optional on-site location
            notes: Optional notes
            inspector_ids: Employees assigned to the occurrence
            notification: Reminder settings; template email by default
            now: Reference time for skipping past fire times

        Returns:
            The created inspection

        Raises:
            ValidationError: missing due date, missing template id or short manual message
            ConflictError: a live inspection already exists for the same key
            NotFoundError: unknown client, asset, employee or template
        """
        if due_date is None:
            raise ValidationError("dueDate is required")

        inspector_ids = unique_ids(inspector_ids)
        config = notification or NotificationConfig()
        reminder_type = config.reminder_type or reminder_type_for(inspection_type)

        async with self.session_factory() as db:
            repo = InspectionRepository(db)
            await self._validate_references(repo, client_id, asset_id, inspector_ids)

            existing = await repo.find_existing(client_id, asset_id, inspection_type, due_date)
            if existing is not None:
                raise ConflictError(
                    f"Inspection already exists for asset {asset_id} "
                    f"({inspection_type.value}) on {due_date.isoformat()}"
                )

            if inspector_ids:
                config.validate()
                await self._validate_templates(repo, config)

            try:
                inspection = await repo.create_inspection(
                    client_id=client_id,
                    asset_id=asset_id,
                    inspection_type=inspection_type,
                    due_date=due_date,
                    location=location,
                    notes=notes,
                    inspector_ids=inspector_ids,
                )

                reminder = None
                if inspector_ids:
                    reminder = await repo.create_reminder(
                        client_id=client_id,
                        asset_id=asset_id,
                        reminder_type=reminder_type,
                        reminder_date=due_date,
                        notification_method=config.method,
                        message_source=config.message.source,
                        email_template_id=getattr(config.message, "email_template_id", None),
                        sms_template_id=getattr(config.message, "sms_template_id", None),
                        manual_message=(
                            config.message.text.strip()
                            if isinstance(config.message, ManualMessage)
                            else None
                        ),
                        additional_notes=f"Auto-generated reminder for Inspection #{inspection.id}",
                        inspector_ids=inspector_ids,
                    )

                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise ConflictError(
                    f"Inspection already exists for asset {asset_id} "
                    f"({inspection_type.value}) on {due_date.isoformat()}"
                ) from e

        logger.info(
            "Inspection scheduled",
            inspection_id=str(inspection.id),
            asset_id=str(asset_id),
            inspection_type=inspection_type.value,
            due_date=due_date.isoformat(),
            inspectors=len(inspector_ids),
            reminder_id=str(reminder.id) if reminder else None,
        )

        if reminder is not None:
            try:
                self.schedule_reminder_jobs(
                    inspection.id,
                    due_date,
                    reminder_type,
                    config.method,
                    now=now,
                )
            except Exception as e:
                logger.error(
                    "Failed to register reminder jobs",
                    inspection_id=str(inspection.id),
                    error=str(e),
                )

        return inspection

    async def _validate_references(
        self,
        repo: InspectionRepository,
        client_id: uuid.UUID,
        asset_id: uuid.UUID,
        inspector_ids: list[uuid.UUID],
    ) -> None:
        if await repo.get_client(client_id) is None:
            raise NotFoundError("Client", client_id)

        asset = await repo.get_asset(asset_id)
        if asset is None:
            raise NotFoundError("Asset", asset_id)
        if asset.client_id != client_id:
            raise ValidationError(f"Asset {asset_id} does not belong to client {client_id}")

        if inspector_ids:
            found = {employee.id for employee in await repo.get_employees(inspector_ids)}
            missing = [i for i in inspector_ids if i not in found]
            if missing:
                raise NotFoundError("Employee", missing[0])

    async def _validate_templates(self, repo: InspectionRepository, config: NotificationConfig) -> None:
        if not isinstance(config.message, TemplateMessage):
            return

        message = config.message
        if message.email_template_id is not None:
            if await repo.get_email_template(message.email_template_id) is None:
                raise NotFoundError("Email template", message.email_template_id)
        if message.sms_template_id is not None:
            if await repo.get_sms_template(message.sms_template_id) is None:
                raise NotFoundError("SMS template", message.sms_template_id)

    def schedule_reminder_jobs(
        self,
        inspection_id: uuid.UUID,
        due_date: date,
        reminder_type: ReminderType,
        method: NotificationMethod,
        now: datetime | None = None,
    ) -> tuple[list[str], list[str]]:
        """Register reminder jobs for each channel of ``method``.

        Jobs fire at the lead time derived from ``reminder_type`` and on the
        due date itself. Fire times not strictly after ``now`` are skipped.

        Returns:
            (registered job ids, skipped job ids)
        """
        now = now or datetime.now(timezone.utc)
        offsets = sorted({lead_days(reminder_type), 0}, reverse=True)

        registered: list[str] = []
        skipped: list[str] = []
        for channel in method.channels:
            for offset in offsets:
                job_id = reminder_job_id(offset, inspection_id, channel)
                fire_at = reminder_fire_time(due_date, offset)
                if fire_at <= now:
                    skipped.append(job_id)
                    continue

                self.scheduler.schedule_job(
                    job_id,
                    fire_at,
                    functools.partial(self.dispatcher.dispatch, inspection_id, channel),
                )
                registered.append(job_id)

        if skipped:
            logger.info(
                "Skipped reminder jobs with past fire times",
                inspection_id=str(inspection_id),
                job_ids=skipped,
            )
        return registered, skipped
