"""OnSchedule Database Models."""

from onschedule.models.base import Base, TimestampMixin, SoftDeleteMixin
from onschedule.models.directory import Client, Employee, Asset
from onschedule.models.template import EmailTemplate, SMSTemplate
from onschedule.models.inspection import (
    Inspection,
    InspectionInspector,
    InspectionType,
    InspectionStatus,
)
from onschedule.models.reminder import (
    Reminder,
    ReminderInspector,
    ReminderType,
    ReminderStatus,
    NotificationMethod,
    MessageSource,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "Client",
    "Employee",
    "Asset",
    "EmailTemplate",
    "SMSTemplate",
    "Inspection",
    "InspectionInspector",
    "InspectionType",
    "InspectionStatus",
    "Reminder",
    "ReminderInspector",
    "ReminderType",
    "ReminderStatus",
    "NotificationMethod",
    "MessageSource",
]
