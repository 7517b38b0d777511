"""OnSchedule Services Module."""

from onschedule.services.inspection_service import InspectionService
from onschedule.services.job_scheduler import JobScheduler, ScheduledJob
from onschedule.services.notification_config import (
    ManualMessage,
    NotificationConfig,
    TemplateMessage,
)
from onschedule.services.notification_service import NotificationService
from onschedule.services.recurrence_sweep import RecurrenceSweepService, SweepSummary
from onschedule.services.reminder_loader import LoadSummary, ReminderLoader
from onschedule.services.repository import InspectionRepository
