"""Reminder preference model."""
from sqlalchemy import Column, String, Text

from receipt_reminders.database import Base, utcnow_iso


class UserPreference(Base):
    """A user's reminder configuration (one row per user)."""

    __tablename__ = "user_preferences"

    user_id = Column(String(36), primary_key=True)
    lead_times = Column(Text, nullable=False, default="[]")  # JSON array of days-before
    channels = Column(Text, nullable=False, default="[]")  # JSON array: email, sms
    email_address = Column(String(255))
    phone_number = Column(String(32))
    created_at = Column(String(26), default=utcnow_iso)
    updated_at = Column(String(26), default=utcnow_iso, onupdate=utcnow_iso)
