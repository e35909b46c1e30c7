"""SQLAlchemy models package."""
from receipt_reminders.models.preference import UserPreference
from receipt_reminders.models.receipt import Receipt
from receipt_reminders.models.scheduled_notification import ScheduledNotification
from receipt_reminders.models.notification_history import NotificationHistory

__all__ = [
    "UserPreference",
    "Receipt",
    "ScheduledNotification",
    "NotificationHistory",
]
