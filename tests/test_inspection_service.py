"""Tests for binding inspections to reminders and reminder jobs."""

import asyncio
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from onschedule.core.errors import ConflictError, NotFoundError, ValidationError
from onschedule.models import (
    Asset,
    Client,
    EmailTemplate,
    Employee,
    Inspection,
    InspectionStatus,
    InspectionType,
    MessageSource,
    NotificationMethod,
    Reminder,
    ReminderType,
    SMSTemplate,
)
from onschedule.services.inspection_service import (
    InspectionService,
    reminder_fire_time,
    reminder_job_id,
)
from onschedule.services.job_scheduler import JobScheduler
from onschedule.services.notification_config import (
    ManualMessage,
    NotificationConfig,
    TemplateMessage,
)

# Far enough ahead that every registered timer stays pending during the test
DUE = date(2031, 6, 30)
BIND_TIME = datetime(2031, 6, 1, 12, 0, tzinfo=timezone.utc)


async def load_inspections(session_factory, asset_id: uuid.UUID) -> list[Inspection]:
    async with session_factory() as db:
        result = await db.execute(
            select(Inspection)
            .where(Inspection.asset_id == asset_id)
            .options(selectinload(Inspection.inspectors))
        )
        return list(result.scalars().all())


async def load_reminders(session_factory, asset_id: uuid.UUID) -> list[Reminder]:
    async with session_factory() as db:
        result = await db.execute(
            select(Reminder)
            .where(Reminder.asset_id == asset_id)
            .options(selectinload(Reminder.inspectors))
        )
        return list(result.scalars().all())


# ===========================
# Validation
# ===========================

@pytest.mark.asyncio
async def test_bind_requires_due_date(binder: InspectionService, test_client_org: Client, test_asset: Asset):
    with pytest.raises(ValidationError, match="dueDate is required"):
        await binder.bind(test_client_org.id, test_asset.id, InspectionType.MONTHLY, None)


@pytest.mark.asyncio
async def test_bind_without_inspectors_creates_no_reminder(
    binder: InspectionService,
    session_factory,
    scheduler: JobScheduler,
    test_client_org: Client,
    test_asset: Asset,
):
    inspection = await binder.bind(
        test_client_org.id,
        test_asset.id,
        InspectionType.ANNUAL,
        DUE,
        location="Bay 4",
        now=BIND_TIME,
    )

    assert inspection.status is InspectionStatus.SCHEDULED
    assert inspection.due_date == DUE
    assert await load_reminders(session_factory, test_asset.id) == []
    assert len(scheduler) == 0


@pytest.mark.asyncio
async def test_manual_message_of_nine_characters_fails(
    binder: InspectionService,
    session_factory,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
):
    with pytest.raises(ValidationError):
        await binder.bind(
            test_client_org.id,
            test_asset.id,
            InspectionType.MONTHLY,
            DUE,
            inspector_ids=[test_inspectors[0].id],
            notification=NotificationConfig(message=ManualMessage(text="123456789")),
            now=BIND_TIME,
        )

    # Validation happens before anything is written
    assert await load_inspections(session_factory, test_asset.id) == []


@pytest.mark.asyncio
async def test_manual_message_of_ten_characters_succeeds(
    binder: InspectionService,
    session_factory,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
):
    inspection = await binder.bind(
        test_client_org.id,
        test_asset.id,
        InspectionType.MONTHLY,
        DUE,
        inspector_ids=[test_inspectors[0].id],
        notification=NotificationConfig(message=ManualMessage(text="1234567890")),
        now=BIND_TIME,
    )

    reminders = await load_reminders(session_factory, test_asset.id)
    assert len(reminders) == 1
    reminder = reminders[0]
    assert reminder.message_source is MessageSource.MANUAL
    assert reminder.manual_message == "1234567890"
    assert reminder.email_template_id is None
    assert reminder.reminder_date == inspection.due_date
    assert reminder.reminder_type is ReminderType.MONTHLY
    assert reminder.additional_notes == f"Auto-generated reminder for Inspection #{inspection.id}"


@pytest.mark.asyncio
async def test_template_email_without_template_fails(
    binder: InspectionService,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
):
    with pytest.raises(ValidationError, match="emailTemplateId required"):
        await binder.bind(
            test_client_org.id,
            test_asset.id,
            InspectionType.MONTHLY,
            DUE,
            inspector_ids=[test_inspectors[0].id],
            notification=NotificationConfig(method=NotificationMethod.EMAIL),
            now=BIND_TIME,
        )


@pytest.mark.asyncio
async def test_template_email_with_template_succeeds(
    binder: InspectionService,
    session_factory,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
    test_email_template: EmailTemplate,
):
    await binder.bind(
        test_client_org.id,
        test_asset.id,
        InspectionType.MONTHLY,
        DUE,
        inspector_ids=[e.id for e in test_inspectors],
        notification=NotificationConfig(
            method=NotificationMethod.EMAIL,
            message=TemplateMessage(email_template_id=test_email_template.id),
        ),
        now=BIND_TIME,
    )

    reminders = await load_reminders(session_factory, test_asset.id)
    assert len(reminders) == 1
    assert reminders[0].email_template_id == test_email_template.id
    assert reminders[0].message_source is MessageSource.TEMPLATE
    assert {r.employee_id for r in reminders[0].inspectors} == {e.id for e in test_inspectors}


@pytest.mark.asyncio
async def test_template_sms_without_template_fails(
    binder: InspectionService,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
    test_email_template: EmailTemplate,
):
    with pytest.raises(ValidationError, match="smsTemplateId required"):
        await binder.bind(
            test_client_org.id,
            test_asset.id,
            InspectionType.MONTHLY,
            DUE,
            inspector_ids=[test_inspectors[0].id],
            notification=NotificationConfig(
                method=NotificationMethod.BOTH,
                message=TemplateMessage(email_template_id=test_email_template.id),
            ),
            now=BIND_TIME,
        )


@pytest.mark.asyncio
async def test_unknown_template_not_found(
    binder: InspectionService,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
):
    with pytest.raises(NotFoundError):
        await binder.bind(
            test_client_org.id,
            test_asset.id,
            InspectionType.MONTHLY,
            DUE,
            inspector_ids=[test_inspectors[0].id],
            notification=NotificationConfig(
                message=TemplateMessage(email_template_id=uuid.uuid4()),
            ),
            now=BIND_TIME,
        )


@pytest.mark.asyncio
async def test_unknown_references_not_found(
    binder: InspectionService,
    test_client_org: Client,
    test_asset: Asset,
):
    with pytest.raises(NotFoundError):
        await binder.bind(uuid.uuid4(), test_asset.id, InspectionType.MONTHLY, DUE)

    with pytest.raises(NotFoundError):
        await binder.bind(test_client_org.id, uuid.uuid4(), InspectionType.MONTHLY, DUE)

    with pytest.raises(NotFoundError):
        await binder.bind(
            test_client_org.id,
            test_asset.id,
            InspectionType.MONTHLY,
            DUE,
            inspector_ids=[uuid.uuid4()],
            notification=NotificationConfig(message=ManualMessage(text="Long enough message")),
        )


@pytest.mark.asyncio
async def test_bind_twice_conflicts(
    binder: InspectionService,
    session_factory,
    test_client_org: Client,
    test_asset: Asset,
):
    await binder.bind(test_client_org.id, test_asset.id, InspectionType.QUARTERLY, DUE)

    with pytest.raises(ConflictError):
        await binder.bind(test_client_org.id, test_asset.id, InspectionType.QUARTERLY, DUE)

    assert len(await load_inspections(session_factory, test_asset.id)) == 1


@pytest.mark.asyncio
async def test_same_date_different_type_is_not_a_conflict(
    binder: InspectionService,
    session_factory,
    test_client_org: Client,
    test_asset: Asset,
):
    await binder.bind(test_client_org.id, test_asset.id, InspectionType.QUARTERLY, DUE)
    await binder.bind(test_client_org.id, test_asset.id, InspectionType.SAFETY, DUE)

    assert len(await load_inspections(session_factory, test_asset.id)) == 2


@pytest.mark.asyncio
async def test_duplicate_inspector_ids_are_tolerated(
    binder: InspectionService,
    session_factory,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
):
    inspector = test_inspectors[0]
    await binder.bind(
        test_client_org.id,
        test_asset.id,
        InspectionType.MONTHLY,
        DUE,
        inspector_ids=[inspector.id, inspector.id],
        notification=NotificationConfig(message=ManualMessage(text="Long enough message")),
        now=BIND_TIME,
    )

    inspections = await load_inspections(session_factory, test_asset.id)
    assert inspections[0].inspector_ids == [inspector.id]


# ===========================
# Reminder jobs
# ===========================

@pytest.mark.asyncio
async def test_fifteen_days_before_registers_two_jobs(
    binder: InspectionService,
    scheduler: JobScheduler,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
):
    inspection = await binder.bind(
        test_client_org.id,
        test_asset.id,
        InspectionType.MONTHLY,
        DUE,
        inspector_ids=[test_inspectors[0].id],
        notification=NotificationConfig(
            message=ManualMessage(text="Please clear the bay."),
            reminder_type=ReminderType.DAYS_15_BEFORE,
        ),
        now=BIND_TIME,
    )

    lead_job = reminder_job_id(15, inspection.id, "email")
    due_job = reminder_job_id(0, inspection.id, "email")
    assert scheduler.pending_job_ids() == sorted([lead_job, due_job])

    lead_fire = scheduler.get_job(lead_job).fire_at
    assert lead_fire == reminder_fire_time(date(2031, 6, 15), 0)
    assert (lead_fire.hour, lead_fire.minute) == (9, 0)
    assert scheduler.get_job(due_job).fire_at == reminder_fire_time(DUE, 0)


@pytest.mark.asyncio
async def test_stale_lead_time_is_skipped(
    binder: InspectionService,
    scheduler: JobScheduler,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
):
    inspection = await binder.bind(
        test_client_org.id,
        test_asset.id,
        InspectionType.MONTHLY,
        DUE,
        inspector_ids=[test_inspectors[0].id],
        notification=NotificationConfig(
            message=ManualMessage(text="Please clear the bay."),
            reminder_type=ReminderType.DAYS_15_BEFORE,
        ),
        now=datetime(2031, 6, 20, 8, 0, tzinfo=timezone.utc),
    )

    assert scheduler.pending_job_ids() == [reminder_job_id(0, inspection.id, "email")]


@pytest.mark.asyncio
async def test_both_channels_without_lead_time(
    binder: InspectionService,
    scheduler: JobScheduler,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
    test_email_template: EmailTemplate,
    test_sms_template: SMSTemplate,
):
    inspection = await binder.bind(
        test_client_org.id,
        test_asset.id,
        InspectionType.WEEKLY,
        DUE,
        inspector_ids=[test_inspectors[0].id],
        notification=NotificationConfig(
            method=NotificationMethod.BOTH,
            message=TemplateMessage(
                email_template_id=test_email_template.id,
                sms_template_id=test_sms_template.id,
            ),
        ),
        now=BIND_TIME,
    )

    # Lead time 0 collapses onto the due-date job, one per channel
    assert scheduler.pending_job_ids() == sorted([
        reminder_job_id(0, inspection.id, "email"),
        reminder_job_id(0, inspection.id, "sms"),
    ])


@pytest.mark.asyncio
async def test_job_registration_failure_keeps_inspection(
    session_factory,
    mock_dispatcher,
    test_client_org: Client,
    test_asset: Asset,
    test_inspectors: list[Employee],
):
    class BrokenScheduler(JobScheduler):
        def schedule_job(self, job_id, fire_at, callback):
            raise RuntimeError("registry unavailable")

    binder = InspectionService(session_factory, BrokenScheduler(), mock_dispatcher)
    inspection = await binder.bind(
        test_client_org.id,
        test_asset.id,
        InspectionType.MONTHLY,
        DUE,
        inspector_ids=[test_inspectors[0].id],
        notification=NotificationConfig(message=ManualMessage(text="Please clear the bay.")),
        now=BIND_TIME,
    )

    inspections = await load_inspections(session_factory, test_asset.id)
    assert [i.id for i in inspections] == [inspection.id]
    assert len(await load_reminders(session_factory, test_asset.id)) == 1


@pytest.mark.asyncio
async def test_fired_job_dispatches_channel(
    binder: InspectionService,
    scheduler: JobScheduler,
    mock_dispatcher,
):
    """Jobs call the dispatcher with the inspection id and their channel."""
    inspection_id = uuid.uuid4()
    registered, skipped = binder.schedule_reminder_jobs(
        inspection_id,
        DUE,
        ReminderType.DAYS_2_BEFORE,
        NotificationMethod.SMS,
        now=BIND_TIME,
    )
    assert registered == [
        reminder_job_id(2, inspection_id, "sms"),
        reminder_job_id(0, inspection_id, "sms"),
    ]
    assert skipped == []

    # Pull the lead-time job forward and let it fire
    job = scheduler.get_job(registered[0])
    scheduler.schedule_job(
        job.id,
        datetime.now(timezone.utc) + timedelta(milliseconds=20),
        job.callback,
    )
    await asyncio.sleep(0.1)
    await scheduler.wait_for_running()

    mock_dispatcher.dispatch.assert_awaited_once_with(inspection_id, "sms")
