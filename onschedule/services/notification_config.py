"""Notification settings attached to a new inspection occurrence.

The content of a reminder is either template-driven or manual. The two
modes are separate types so each carries only the fields it uses, and
validation can match on the type instead of a flag plus optional fields.
"""

import uuid
from dataclasses import dataclass

from onschedule.core.config import settings
from onschedule.core.errors import ValidationError
from onschedule.models.reminder import (
    MessageSource,
    NotificationMethod,
    Reminder,
    ReminderType,
)
from onschedule.services.recurrence import LEAD_TIME_TYPES


@dataclass(frozen=True)
class TemplateMessage:
    """Content comes from stored email/SMS templates."""

    email_template_id: uuid.UUID | None = None
    sms_template_id: uuid.UUID | None = None

    source = MessageSource.TEMPLATE


@dataclass(frozen=True)
class ManualMessage:
    """Content is an operator-written message."""

    text: str

    source = MessageSource.MANUAL


ReminderMessage = TemplateMessage | ManualMessage


@dataclass(frozen=True)
class NotificationConfig:
    """How and through which channels an occurrence is announced.

    ``reminder_type`` overrides the reminder type derived from the
    inspection kind; use it to request a lead-time reminder such as
    ``days_15_before``.
    """

    method: NotificationMethod = NotificationMethod.EMAIL
    message: ReminderMessage = TemplateMessage()
    reminder_type: ReminderType | None = None

    @classmethod
    def from_reminder(cls, reminder: Reminder) -> "NotificationConfig":
        """Carry an existing reminder's settings forward to the next occurrence."""
        if reminder.has_manual_message:
            message: ReminderMessage = ManualMessage(text=reminder.manual_message or "")
        else:
            message = TemplateMessage(
                email_template_id=reminder.email_template_id,
                sms_template_id=reminder.sms_template_id,
            )

        # Recurrence-derived reminder types are recomputed for the new occurrence
        rtype = reminder.reminder_type if reminder.reminder_type in LEAD_TIME_TYPES else None
        return cls(
            method=reminder.notification_method,
            message=message,
            reminder_type=rtype,
        )

    def validate(self) -> None:
        """Check the mode-specific requirements.

        Raises:
            ValidationError: a template id required by the method is missing,
                or a manual message is too short
        """
        if isinstance(self.message, ManualMessage):
            min_length = settings.manual_message_min_length
            if len(self.message.text.strip()) < min_length:
                raise ValidationError(
                    f"manual message required (at least {min_length} characters)"
                )
            return

        if self.method.includes_email and self.message.email_template_id is None:
            raise ValidationError("emailTemplateId required")
        if self.method.includes_sms and self.message.sms_template_id is None:
            raise ValidationError("smsTemplateId required")
