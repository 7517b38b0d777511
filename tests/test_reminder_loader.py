"""Tests for rebuilding reminder jobs on startup."""

import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from onschedule.models import (
    Asset,
    Client,
    Inspection,
    InspectionStatus,
    InspectionType,
    MessageSource,
    NotificationMethod,
    Reminder,
    ReminderType,
)
from onschedule.services.inspection_service import InspectionService, reminder_job_id
from onschedule.services.job_scheduler import JobScheduler
from onschedule.services.reminder_loader import ReminderLoader

NOW = datetime(2031, 6, 20, 12, 0, tzinfo=timezone.utc)


async def add_occurrence(
    db: AsyncSession,
    client: Client,
    asset: Asset,
    due_date: date,
    reminder_type: ReminderType,
    method: NotificationMethod = NotificationMethod.EMAIL,
    with_inspection: bool = True,
    inspection_type: InspectionType = InspectionType.MONTHLY,
) -> Inspection | None:
    inspection = None
    if with_inspection:
        inspection = Inspection(
            id=uuid.uuid4(),
            client_id=client.id,
            asset_id=asset.id,
            inspection_type=inspection_type,
            due_date=due_date,
            status=InspectionStatus.SCHEDULED,
        )
        db.add(inspection)
    db.add(Reminder(
        id=uuid.uuid4(),
        client_id=client.id,
        asset_id=asset.id,
        reminder_type=reminder_type,
        reminder_date=due_date,
        notification_method=method,
        message_source=MessageSource.MANUAL,
        manual_message="Please clear the bay.",
    ))
    await db.commit()
    return inspection


@pytest.mark.asyncio
async def test_reload_registers_future_jobs_and_drops_missed(
    session_factory,
    binder: InspectionService,
    scheduler: JobScheduler,
    db_session: AsyncSession,
    test_client_org: Client,
    test_asset: Asset,
):
    upcoming = await add_occurrence(
        db_session, test_client_org, test_asset, date(2031, 6, 30), ReminderType.DAYS_15_BEFORE
    )
    both = await add_occurrence(
        db_session, test_client_org, test_asset, date(2031, 7, 31), ReminderType.MONTHLY,
        method=NotificationMethod.BOTH,
    )
    # Already past: not reloaded at all
    await add_occurrence(db_session, test_client_org, test_asset, date(2031, 5, 31), ReminderType.MONTHLY)
    # Inspection gone
    await add_occurrence(
        db_session, test_client_org, test_asset, date(2031, 8, 31), ReminderType.MONTHLY,
        with_inspection=False,
    )

    summary = await ReminderLoader(session_factory, binder).load_scheduled_reminders(now=NOW)

    assert summary.reminders == 3
    assert summary.orphaned == 1
    assert summary.dropped == 1
    assert summary.registered == 3
    assert scheduler.pending_job_ids() == sorted([
        reminder_job_id(0, upcoming.id, "email"),
        reminder_job_id(0, both.id, "email"),
        reminder_job_id(0, both.id, "sms"),
    ])


@pytest.mark.asyncio
async def test_reload_with_nothing_pending(session_factory, binder: InspectionService, scheduler: JobScheduler):
    summary = await ReminderLoader(session_factory, binder).load_scheduled_reminders(now=NOW)

    assert summary.reminders == 0
    assert summary.registered == 0
    assert len(scheduler) == 0


@pytest.mark.asyncio
async def test_reload_covers_every_inspection_sharing_a_due_date(
    session_factory,
    binder: InspectionService,
    scheduler: JobScheduler,
    db_session: AsyncSession,
    test_client_org: Client,
    test_asset: Asset,
):
    due = date(2031, 6, 30)
    monthly = await add_occurrence(
        db_session, test_client_org, test_asset, due, ReminderType.MONTHLY,
        inspection_type=InspectionType.MONTHLY,
    )
    annual = await add_occurrence(
        db_session, test_client_org, test_asset, due, ReminderType.ANNUAL,
        inspection_type=InspectionType.ANNUAL,
    )

    summary = await ReminderLoader(session_factory, binder).load_scheduled_reminders(now=NOW)

    assert summary.reminders == 2
    assert summary.orphaned == 0
    assert summary.registered == 2
    assert scheduler.pending_job_ids() == sorted([
        reminder_job_id(0, monthly.id, "email"),
        reminder_job_id(0, annual.id, "email"),
    ])
