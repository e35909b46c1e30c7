"""Due-item matching: which unpaid receipts fall due on a given day.

Matching is exact-day everywhere: a receipt matches a target date only when
its due date equals that date. Catch-up is covered by scanning every target
date between today and the furthest lead time, not by a wider range query.
"""
from datetime import date, timedelta

from sqlalchemy.orm import Session

from receipt_reminders.models.receipt import Receipt

PAID = "paid"


def candidate_due_dates(today: date, lead_times) -> list[date]:
    """Every due date a run needs to look at for a user, in ascending order."""
    if not lead_times:
        return []
    horizon = max(lead_times)
    return [today + timedelta(days=offset) for offset in range(horizon + 1)]


def find_due_obligations(db: Session, user_id: str, target_date: date) -> list[Receipt]:
    """Unpaid receipts owned by ``user_id`` whose due date is ``target_date``."""
    return (
        db.query(Receipt)
        .filter(
            Receipt.user_id == user_id,
            Receipt.due_date == target_date.isoformat(),
            Receipt.payment_status != PAID,
        )
        .order_by(Receipt.due_date, Receipt.id)
        .all()
    )


def find_next_upcoming_obligation(db: Session, user_id: str, today: date) -> Receipt | None:
    """The earliest unpaid receipt due today or later."""
    return (
        db.query(Receipt)
        .filter(
            Receipt.user_id == user_id,
            Receipt.due_date.isnot(None),
            Receipt.due_date >= today.isoformat(),
            Receipt.payment_status != PAID,
        )
        .order_by(Receipt.due_date, Receipt.id)
        .first()
    )


def is_outstanding(receipt: Receipt | None) -> bool:
    return receipt is not None and receipt.payment_status != PAID
