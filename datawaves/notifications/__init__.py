from datawaves.notifications.dispatch import (
    NotificationCenter,
    NotificationReport,
    NotificationResult,
    NotificationTask,
)
from datawaves.notifications.email_dispatcher import EmailDispatcher
from datawaves.notifications.sms_dispatcher import SmsDispatcher

__all__ = [
    "NotificationCenter",
    "NotificationReport",
    "NotificationResult",
    "NotificationTask",
    "EmailDispatcher",
    "SmsDispatcher",
]
