"""Receipt model (owned by the receipt-management subsystem; read-only here)."""
import uuid

from sqlalchemy import Column, Float, Index, String, Text

from receipt_reminders.database import Base, utcnow_iso


class Receipt(Base):
    """A receipt carrying a due date and payment status."""

    __tablename__ = "receipts"
    __table_args__ = (
        Index("ix_receipts_user_due", "user_id", "due_date"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)

    # Descriptive fields, used only as message content
    vendor = Column(String(255), nullable=False)
    amount = Column(Float, nullable=False, default=0.0)
    category = Column(String(100))
    date = Column(String(10))  # YYYY-MM-DD purchase date
    notes = Column(Text)
    image_url = Column(String(1024))

    due_date = Column(String(10))  # YYYY-MM-DD
    payment_status = Column(String(20), nullable=False, default="pending")  # pending, paid, overdue

    created_at = Column(String(26), default=utcnow_iso)
    updated_at = Column(String(26), default=utcnow_iso, onupdate=utcnow_iso)
