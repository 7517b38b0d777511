"""Persistence operations the scheduling core depends on.

Everything the binder, sweep, dispatcher and reload step read or write goes
through this class, so the rest of the core never builds queries itself.
Methods flush but never commit; the calling service owns the transaction.
"""

import uuid
from datetime import date
from typing import Iterable

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from onschedule.models.directory import Client, Employee, Asset
from onschedule.models.inspection import (
    Inspection,
    InspectionInspector,
    InspectionStatus,
    InspectionType,
)
from onschedule.models.reminder import (
    MessageSource,
    NotificationMethod,
    Reminder,
    ReminderInspector,
    ReminderType,
)
from onschedule.models.template import EmailTemplate, SMSTemplate
from onschedule.services.recurrence import RECURRING_TYPES


def unique_ids(ids: Iterable[uuid.UUID]) -> list[uuid.UUID]:
    """Drop duplicate ids, keeping first-seen order."""
    return list(dict.fromkeys(ids))


class InspectionRepository:
    """Queries and writes for inspections, reminders and their lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Lookups ====================

    async def get_client(self, client_id: uuid.UUID) -> Client | None:
        result = await self.db.execute(
            select(Client).where(Client.id == client_id, Client.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    async def get_asset(self, asset_id: uuid.UUID) -> Asset | None:
        result = await self.db.execute(
            select(Asset).where(Asset.id == asset_id, Asset.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    async def get_employees(self, employee_ids: Iterable[uuid.UUID]) -> list[Employee]:
        ids = unique_ids(employee_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(Employee).where(Employee.id.in_(ids), Employee.deleted_at.is_(None))
        )
        return list(result.scalars().all())

    async def get_email_template(self, template_id: uuid.UUID) -> EmailTemplate | None:
        result = await self.db.execute(
            select(EmailTemplate).where(
                EmailTemplate.id == template_id,
                EmailTemplate.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_sms_template(self, template_id: uuid.UUID) -> SMSTemplate | None:
        result = await self.db.execute(
            select(SMSTemplate).where(
                SMSTemplate.id == template_id,
                SMSTemplate.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    # ==================== Inspections ====================

    async def find_overdue_recurring(self, today: date) -> list[Inspection]:
        """Live recurring inspections due strictly before ``today``, with inspectors."""
        result = await self.db.execute(
            select(Inspection)
            .where(
                and_(
                    Inspection.deleted_at.is_(None),
                    Inspection.inspection_type.in_(RECURRING_TYPES),
                    Inspection.due_date.is_not(None),
                    Inspection.due_date < today,
                )
            )
            .options(selectinload(Inspection.inspectors))
            .order_by(Inspection.due_date, Inspection.created_at)
        )
        return list(result.scalars().all())

    async def find_existing(
        self,
        client_id: uuid.UUID,
        asset_id: uuid.UUID,
        inspection_type: InspectionType,
        due_date: date,
    ) -> Inspection | None:
        """Live inspection with the same (client, asset, type, due date) key."""
        result = await self.db.execute(
            select(Inspection)
            .where(
                Inspection.client_id == client_id,
                Inspection.asset_id == asset_id,
                Inspection.inspection_type == inspection_type,
                Inspection.due_date == due_date,
                Inspection.deleted_at.is_(None),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_inspection(
        self,
        client_id: uuid.UUID,
        asset_id: uuid.UUID,
        inspection_type: InspectionType,
        due_date: date,
        location: str | None = None,
        notes: str | None = None,
        inspector_ids: Iterable[uuid.UUID] = (),
    ) -> Inspection:
        """Insert a scheduled inspection together with its inspector assignments."""
        inspection = Inspection(
            id=uuid.uuid4(),
            client_id=client_id,
            asset_id=asset_id,
            inspection_type=inspection_type,
            due_date=due_date,
            status=InspectionStatus.SCHEDULED,
            location=location,
            notes=notes,
        )
        self.db.add(inspection)
        await self.db.flush()

        await self.assign_inspectors(inspection.id, inspector_ids)
        return inspection

    async def assign_inspectors(
        self,
        inspection_id: uuid.UUID,
        employee_ids: Iterable[uuid.UUID],
    ) -> int:
        """Bulk-insert assignments, skipping ones that already exist.

        Returns:
            Number of rows inserted
        """
        ids = unique_ids(employee_ids)
        if not ids:
            return 0

        result = await self.db.execute(
            select(InspectionInspector.employee_id).where(
                InspectionInspector.inspection_id == inspection_id,
                InspectionInspector.employee_id.in_(ids),
            )
        )
        existing = set(result.scalars().all())

        new_rows = [
            InspectionInspector(id=uuid.uuid4(), inspection_id=inspection_id, employee_id=employee_id)
            for employee_id in ids
            if employee_id not in existing
        ]
        self.db.add_all(new_rows)
        await self.db.flush()
        return len(new_rows)

    async def get_inspection_with_contacts(self, inspection_id: uuid.UUID) -> Inspection | None:
        """Inspection with client, asset and inspector employees loaded."""
        result = await self.db.execute(
            select(Inspection)
            .where(Inspection.id == inspection_id, Inspection.deleted_at.is_(None))
            .options(
                selectinload(Inspection.client),
                selectinload(Inspection.asset),
                selectinload(Inspection.inspectors).selectinload(InspectionInspector.employee),
            )
        )
        return result.scalar_one_or_none()

    async def find_inspections_for_reminder(self, reminder: Reminder) -> list[Inspection]:
        """Live inspections whose due date the reminder was generated for."""
        result = await self.db.execute(
            select(Inspection)
            .where(
                Inspection.client_id == reminder.client_id,
                Inspection.asset_id == reminder.asset_id,
                Inspection.due_date == reminder.reminder_date,
                Inspection.deleted_at.is_(None),
            )
            .order_by(Inspection.created_at)
        )
        return list(result.scalars().all())

    # ==================== Reminders ====================

    async def create_reminder(
        self,
        client_id: uuid.UUID,
        asset_id: uuid.UUID,
        reminder_type: ReminderType,
        reminder_date: date,
        notification_method: NotificationMethod,
        message_source: MessageSource,
        email_template_id: uuid.UUID | None = None,
        sms_template_id: uuid.UUID | None = None,
        manual_message: str | None = None,
        additional_notes: str | None = None,
        inspector_ids: Iterable[uuid.UUID] = (),
    ) -> Reminder:
        """Insert a reminder together with its inspector assignments."""
        reminder = Reminder(
            id=uuid.uuid4(),
            client_id=client_id,
            asset_id=asset_id,
            reminder_type=reminder_type,
            reminder_date=reminder_date,
            notification_method=notification_method,
            message_source=message_source,
            email_template_id=email_template_id,
            sms_template_id=sms_template_id,
            manual_message=manual_message,
            additional_notes=additional_notes,
        )
        self.db.add(reminder)
        await self.db.flush()

        self.db.add_all([
            ReminderInspector(id=uuid.uuid4(), reminder_id=reminder.id, employee_id=employee_id)
            for employee_id in unique_ids(inspector_ids)
        ])
        await self.db.flush()
        return reminder

    async def find_latest_reminder(
        self,
        client_id: uuid.UUID,
        asset_id: uuid.UUID,
        reminder_date: date,
    ) -> Reminder | None:
        """Most recently created live reminder for a (client, asset, date)."""
        result = await self.db.execute(
            select(Reminder)
            .where(
                Reminder.client_id == client_id,
                Reminder.asset_id == asset_id,
                Reminder.reminder_date == reminder_date,
                Reminder.deleted_at.is_(None),
            )
            .options(
                selectinload(Reminder.email_template),
                selectinload(Reminder.sms_template),
            )
            .order_by(Reminder.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_pending_reminders(self, today: date) -> list[Reminder]:
        """Live reminders dated today or later."""
        result = await self.db.execute(
            select(Reminder)
            .where(
                Reminder.reminder_date >= today,
                Reminder.deleted_at.is_(None),
            )
            .order_by(Reminder.reminder_date, Reminder.created_at)
        )
        return list(result.scalars().all())
