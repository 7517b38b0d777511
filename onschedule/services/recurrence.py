"""Due-date arithmetic for recurring inspections.

Month-based kinds add calendar months. When the day of month does not exist
in the target month the result is clamped to that month's last day, always
computed from the date being advanced: a series starting on Jan 31 goes
Jan 31 -> Feb 29 (leap year) -> Mar 29 -> Apr 29.
"""

import calendar
from datetime import date, timedelta

from onschedule.models.inspection import InspectionType
from onschedule.models.reminder import ReminderType

# Recurrence kind -> (days, months) step
RECURRENCE_STEPS: dict[InspectionType, tuple[int, int]] = {
    InspectionType.WEEKLY: (7, 0),
    InspectionType.MONTHLY: (0, 1),
    InspectionType.QUARTERLY: (0, 3),
    InspectionType.SEMI_ANNUAL: (0, 6),
    InspectionType.ANNUAL: (0, 12),
}

RECURRING_TYPES: tuple[InspectionType, ...] = tuple(RECURRENCE_STEPS)

# Lead-time reminder types -> days before the due date
LEAD_DAYS: dict[ReminderType, int] = {
    ReminderType.DAYS_2_BEFORE: 2,
    ReminderType.DAYS_15_BEFORE: 15,
    ReminderType.DAYS_30_BEFORE: 30,
}

LEAD_TIME_TYPES: frozenset[ReminderType] = frozenset(LEAD_DAYS)


def is_recurring(inspection_type: InspectionType) -> bool:
    """Check if an inspection type implies a next occurrence."""
    return inspection_type in RECURRENCE_STEPS


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def next_due_date(current: date, inspection_type: InspectionType) -> date:
    """Compute the next occurrence after ``current``.

    Non-recurring kinds return ``current`` unchanged, meaning there is no
    further occurrence.
    """
    step = RECURRENCE_STEPS.get(inspection_type)
    if step is None:
        return current

    days, months = step
    if months:
        return add_months(current, months)
    return current + timedelta(days=days)


def reminder_type_for(inspection_type: InspectionType) -> ReminderType:
    """Map an inspection kind to the reminder type generated for it."""
    if is_recurring(inspection_type):
        return ReminderType(inspection_type.value)
    return ReminderType.ONE_TIME


def lead_days(reminder_type: ReminderType) -> int:
    """Days before the due date a reminder fires; 0 means on the due date."""
    return LEAD_DAYS.get(reminder_type, 0)
