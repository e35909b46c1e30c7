"""Notification audit ledger model."""
import uuid

from sqlalchemy import Column, Index, String, Text, text

from receipt_reminders.database import Base, utcnow_iso


class NotificationHistory(Base):
    """Append-only record of every attempted notification and its outcome."""

    __tablename__ = "notification_history"
    __table_args__ = (
        Index("ix_notification_history_receipt_sent", "receipt_id", "notification_type", "sent_at"),
        Index("ix_notification_history_user", "user_id", "sent_at"),
        # At most one successful send per receipt, channel, recipient and UTC day
        Index(
            "uq_notification_history_daily_sent",
            "receipt_id", "notification_type", "recipient", "sent_day",
            unique=True,
            sqlite_where=text("status = 'sent'"),
            postgresql_where=text("status = 'sent'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False)
    receipt_id = Column(String(36))
    scheduled_notification_id = Column(String(36))

    notification_type = Column(String(10), nullable=False)  # email, sms
    recipient = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False)  # sent, failed
    content = Column(Text, nullable=False, default="{}")  # JSON

    sent_at = Column(String(26), nullable=False, default=utcnow_iso)
    sent_day = Column(String(10), nullable=False)  # YYYY-MM-DD of sent_at
