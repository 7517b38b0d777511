"""Rebuild the in-memory job registry after a restart."""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onschedule.core.config import settings
from onschedule.models.reminder import NotificationMethod, ReminderType
from onschedule.services.inspection_service import InspectionService
from onschedule.services.repository import InspectionRepository

logger = structlog.get_logger()


@dataclass
class LoadSummary:
    reminders: int = 0
    registered: int = 0
    dropped: int = 0        # fire time passed while the process was down
    orphaned: int = 0       # no live inspection for the reminder's date


class ReminderLoader:
    """Re-registers reminder jobs for every reminder dated today or later.

    Jobs whose fire time passed during downtime are not caught up; they are
    counted and logged as missed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        binder: InspectionService,
    ):
        self.session_factory = session_factory
        self.binder = binder

    async def load_scheduled_reminders(self, now: datetime | None = None) -> LoadSummary:
        now = now or datetime.now(timezone.utc)
        today = now.astimezone(ZoneInfo(settings.timezone)).date()

        # Reminders arrive oldest first, so the latest one for a key wins, as in dispatch
        pending: dict[uuid.UUID, tuple[date, ReminderType, NotificationMethod]] = {}
        summary = LoadSummary()

        async with self.session_factory() as db:
            repo = InspectionRepository(db)
            reminders = await repo.find_pending_reminders(today)
            summary.reminders = len(reminders)

            for reminder in reminders:
                inspections = await repo.find_inspections_for_reminder(reminder)
                if not inspections:
                    summary.orphaned += 1
                    logger.warning(
                        "Reminder has no live inspection",
                        reminder_id=str(reminder.id),
                        reminder_date=reminder.reminder_date.isoformat(),
                    )
                    continue
                for inspection in inspections:
                    pending[inspection.id] = (
                        reminder.reminder_date,
                        reminder.reminder_type,
                        reminder.notification_method,
                    )

        for inspection_id, (due_date, reminder_type, method) in pending.items():
            registered, skipped = self.binder.schedule_reminder_jobs(
                inspection_id, due_date, reminder_type, method, now=now
            )
            summary.registered += len(registered)
            summary.dropped += len(skipped)

        if summary.dropped:
            logger.warning(
                "Reminder jobs missed while the scheduler was down",
                dropped=summary.dropped,
            )
        logger.info(
            "Scheduled reminders loaded",
            reminders=summary.reminders,
            registered=summary.registered,
            dropped=summary.dropped,
            orphaned=summary.orphaned,
        )
        return summary
