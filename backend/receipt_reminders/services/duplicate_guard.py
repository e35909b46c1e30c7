"""Same-day duplicate suppression backed by the notification ledger."""
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from receipt_reminders.models.notification_history import NotificationHistory
from receipt_reminders.services.schedule_calculator import start_of_day


def day_window(day: date) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` window covering one UTC calendar day."""
    start = start_of_day(day)
    return start, start + timedelta(days=1)


def has_already_notified(
    db: Session,
    receipt_id: str | None,
    channel: str,
    window_start: datetime,
    window_end: datetime,
    recipient: str | None = None,
) -> bool:
    """True if the ledger holds a successful send for this receipt and channel in the window.

    With ``recipient`` the check is narrowed to sends to that address, so two
    people reminded about one receipt do not suppress each other.

    This is a check, not a lock: two overlapping runs can both pass it. The
    partial unique index on the ledger rejects the second write.
    """
    if receipt_id is None:
        return False
    query = db.query(NotificationHistory.id).filter(
        NotificationHistory.receipt_id == receipt_id,
        NotificationHistory.notification_type == channel,
        NotificationHistory.status == "sent",
        NotificationHistory.sent_at >= window_start.isoformat(),
        NotificationHistory.sent_at < window_end.isoformat(),
    )
    if recipient is not None:
        query = query.filter(NotificationHistory.recipient == recipient)
    return query.first() is not None
