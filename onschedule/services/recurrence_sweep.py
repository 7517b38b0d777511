"""Daily sweep that advances overdue recurring inspections.

Each overdue recurring inspection gets its successor occurrence created
through the binder, inheriting the inspectors and the reminder settings of
the current occurrence. The original record is left untouched.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onschedule.core.config import settings
from onschedule.core.errors import ConflictError
from onschedule.core.metrics import sweep_items_total
from onschedule.models.inspection import InspectionType
from onschedule.services.inspection_service import InspectionService
from onschedule.services.notification_config import NotificationConfig
from onschedule.services.recurrence import next_due_date
from onschedule.services.repository import InspectionRepository

logger = structlog.get_logger()


@dataclass(frozen=True)
class OverdueInspection:
    """Snapshot of an overdue occurrence, detached from the session that read it."""

    inspection_id: uuid.UUID
    client_id: uuid.UUID
    asset_id: uuid.UUID
    inspection_type: InspectionType
    due_date: date
    location: str | None
    notes: str | None
    inspector_ids: tuple[uuid.UUID, ...]


@dataclass
class SweepSummary:
    processed: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0
    created_ids: list[uuid.UUID] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class RecurrenceSweepService:
    """Creates the next occurrence of every overdue recurring inspection."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        binder: InspectionService,
    ):
        self.session_factory = session_factory
        self.binder = binder
        self._task: asyncio.Task | None = None

    async def run_once(self, now: datetime | None = None) -> SweepSummary:
        """Advance every overdue recurring inspection by one step.

        A failure on one item is logged and counted; the sweep continues
        with the next one.
        """
        tz = ZoneInfo(settings.timezone)
        now = now or datetime.now(tz)
        today = now.astimezone(tz).date()

        async with self.session_factory() as db:
            repo = InspectionRepository(db)
            overdue = [
                OverdueInspection(
                    inspection_id=inspection.id,
                    client_id=inspection.client_id,
                    asset_id=inspection.asset_id,
                    inspection_type=inspection.inspection_type,
                    due_date=inspection.due_date,
                    location=inspection.location,
                    notes=inspection.notes,
                    inspector_ids=tuple(inspection.inspector_ids),
                )
                for inspection in await repo.find_overdue_recurring(today)
            ]

        logger.info("Recurrence sweep started", today=today.isoformat(), overdue=len(overdue))

        summary = SweepSummary()
        for item in overdue:
            summary.processed += 1
            target = next_due_date(item.due_date, item.inspection_type)
            try:
                created_id = await self._advance(item, target, now)
            except Exception as e:
                summary.failed += 1
                sweep_items_total.labels(result="failed").inc()
                logger.error(
                    "Failed to advance recurring inspection",
                    inspection_id=str(item.inspection_id),
                    asset_id=str(item.asset_id),
                    target_date=target.isoformat(),
                    error=str(e),
                )
                continue

            if created_id is None:
                summary.skipped += 1
                sweep_items_total.labels(result="skipped").inc()
            else:
                summary.created += 1
                summary.created_ids.append(created_id)
                sweep_items_total.labels(result="created").inc()

        logger.info("Recurrence sweep completed", **summary.to_dict())
        return summary

    async def _advance(
        self,
        item: OverdueInspection,
        target: date,
        now: datetime,
    ) -> uuid.UUID | None:
        """Create the successor occurrence. Returns None when it already exists."""
        if target <= item.due_date:
            return None

        async with self.session_factory() as db:
            repo = InspectionRepository(db)
            existing = await repo.find_existing(
                item.client_id, item.asset_id, item.inspection_type, target
            )
            if existing is not None:
                logger.debug(
                    "Next occurrence already exists",
                    asset_id=str(item.asset_id),
                    target_date=target.isoformat(),
                )
                return None

            reminder = await repo.find_latest_reminder(item.client_id, item.asset_id, item.due_date)
            notification = NotificationConfig.from_reminder(reminder) if reminder else None

        try:
            inspection = await self.binder.bind(
                client_id=item.client_id,
                asset_id=item.asset_id,
                inspection_type=item.inspection_type,
                due_date=target,
                location=item.location,
                notes=item.notes,
                inspector_ids=item.inspector_ids,
                notification=notification,
                now=now,
            )
        except ConflictError:
            # Created concurrently since the guard above ran
            return None

        logger.info(
            "Next occurrence created",
            previous_id=str(item.inspection_id),
            inspection_id=str(inspection.id),
            asset_id=str(item.asset_id),
            due_date=target.isoformat(),
        )
        return inspection.id

    # ==================== Daily loop ====================

    def seconds_until_next_run(self, now: datetime | None = None) -> float:
        tz = ZoneInfo(settings.timezone)
        now = now.astimezone(tz) if now else datetime.now(tz)
        next_run = datetime.combine(now.date(), time(hour=settings.sweep_hour), tzinfo=tz)
        if next_run <= now:
            next_run += timedelta(days=1)
        return (next_run - now).total_seconds()

    async def _loop(self) -> None:
        while True:
            delay = self.seconds_until_next_run()
            logger.info("Next recurrence sweep scheduled", in_seconds=round(delay))
            await asyncio.sleep(delay)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Recurrence sweep failed", error=str(e))

    def start(self) -> None:
        """Start the background daily sweep."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop(), name="recurrence-sweep")
        logger.info("Recurrence sweep scheduler started", hour=settings.sweep_hour, timezone=settings.timezone)

    async def stop(self) -> None:
        """Stop the background daily sweep."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Recurrence sweep scheduler stopped")
