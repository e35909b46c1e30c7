"""Scheduled notification model."""
import uuid

from sqlalchemy import Column, Index, Integer, String, Text, UniqueConstraint

from receipt_reminders.database import Base, utcnow_iso


class ScheduledNotification(Base):
    """A reminder planned for one channel at one send time.

    Rows are never deleted. Status moves once, from ``scheduled`` to either
    ``sent`` or ``failed``.
    """

    __tablename__ = "scheduled_notifications"
    __table_args__ = (
        UniqueConstraint(
            "receipt_id", "channel", "lead_time_days", "due_date",
            name="uq_scheduled_notification",
        ),
        Index("ix_scheduled_notifications_due", "status", "scheduled_send_at"),
        Index("ix_scheduled_notifications_user", "user_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False)
    receipt_id = Column(String(36))  # Null for ad-hoc schedules

    channel = Column(String(10), nullable=False)  # email, sms
    recipient = Column(String(255), nullable=False, default="")

    due_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    lead_time_days = Column(Integer, nullable=False)
    scheduled_send_at = Column(String(26), nullable=False)

    status = Column(String(20), nullable=False, default="scheduled")  # scheduled, sent, failed
    content = Column(Text, nullable=False, default="{}")  # JSON message payload
    sent_at = Column(String(26))
    error_message = Column(Text)

    created_at = Column(String(26), default=utcnow_iso)
    updated_at = Column(String(26), default=utcnow_iso, onupdate=utcnow_iso)
