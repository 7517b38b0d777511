"""Reminder model binding notification settings to an inspection due date."""

import uuid
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import String, Text, Date, ForeignKey, Index, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from onschedule.models.base import Base, TimestampMixin, SoftDeleteMixin

if TYPE_CHECKING:
    from onschedule.models.directory import Employee
    from onschedule.models.template import EmailTemplate, SMSTemplate


class ReminderType(str, Enum):
    """Reminder cadence, or how many days ahead of the due date to notify."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUAL = "annual"
    ONE_TIME = "one_time"
    DAYS_2_BEFORE = "days_2_before"
    DAYS_15_BEFORE = "days_15_before"
    DAYS_30_BEFORE = "days_30_before"


class NotificationMethod(str, Enum):
    """Channels a reminder is delivered through."""

    EMAIL = "email"
    SMS = "sms"
    BOTH = "both"

    @property
    def includes_email(self) -> bool:
        return self in (NotificationMethod.EMAIL, NotificationMethod.BOTH)

    @property
    def includes_sms(self) -> bool:
        return self in (NotificationMethod.SMS, NotificationMethod.BOTH)

    @property
    def channels(self) -> list[str]:
        channels = []
        if self.includes_email:
            channels.append("email")
        if self.includes_sms:
            channels.append("sms")
        return channels


class MessageSource(str, Enum):
    """Where the reminder content comes from."""

    TEMPLATE = "template"
    MANUAL = "manual"


class ReminderStatus(str, Enum):
    SCHEDULED = "scheduled"
    SENT = "sent"
    CANCELLED = "cancelled"


class Reminder(Base, TimestampMixin, SoftDeleteMixin):
    """Notification configuration for one inspection occurrence.

    ``reminder_date`` always equals the due date of the inspection the
    reminder was generated for; that equality is how dispatch finds it.
    """

    __tablename__ = "reminders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reminder_type: Mapped[ReminderType] = mapped_column(
        SQLEnum(ReminderType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    reminder_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notification_method: Mapped[NotificationMethod] = mapped_column(
        SQLEnum(NotificationMethod, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    message_source: Mapped[MessageSource] = mapped_column(
        SQLEnum(MessageSource, values_callable=lambda x: [e.value for e in x]),
        default=MessageSource.TEMPLATE,
        nullable=False,
    )

    # Template mode
    email_template_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("email_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    sms_template_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sms_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Manual mode
    manual_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    additional_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ReminderStatus] = mapped_column(
        SQLEnum(ReminderStatus, values_callable=lambda x: [e.value for e in x]),
        default=ReminderStatus.SCHEDULED,
        nullable=False,
    )

    # Relationships
    email_template: Mapped["EmailTemplate | None"] = relationship("EmailTemplate")
    sms_template: Mapped["SMSTemplate | None"] = relationship("SMSTemplate")
    inspectors: Mapped[list["ReminderInspector"]] = relationship(
        "ReminderInspector",
        back_populates="reminder",
        cascade="all, delete-orphan",
    )

    @property
    def has_manual_message(self) -> bool:
        return bool(self.manual_message and self.manual_message.strip())

    def __repr__(self) -> str:
        return (
            f"<Reminder(id={self.id}, asset_id={self.asset_id}, "
            f"reminder_date={self.reminder_date}, method={self.notification_method})>"
        )


class ReminderInspector(Base):
    """Assignment of an employee to a reminder."""

    __tablename__ = "reminder_inspectors"
    __table_args__ = (
        UniqueConstraint("reminder_id", "employee_id", name="uq_reminder_inspector"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    reminder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("reminders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    reminder: Mapped["Reminder"] = relationship("Reminder", back_populates="inspectors")
    employee: Mapped["Employee"] = relationship("Employee")


# Dispatch and the sweep look reminders up by (client, asset, reminder_date)
Index(
    "ix_reminders_client_asset_date",
    Reminder.client_id,
    Reminder.asset_id,
    Reminder.reminder_date,
)
