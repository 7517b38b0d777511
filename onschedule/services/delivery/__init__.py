"""Notification delivery providers."""

from onschedule.services.delivery.email_delivery import EmailDeliveryService, is_rejection
from onschedule.services.delivery.results import BatchSummary, NotificationResult
from onschedule.services.delivery.sms_delivery import SMSDeliveryService
from onschedule.services.delivery.smtp_delivery import SMTPDeliveryService

__all__ = [
    "BatchSummary",
    "EmailDeliveryService",
    "NotificationResult",
    "SMSDeliveryService",
    "SMTPDeliveryService",
    "is_rejection",
]
