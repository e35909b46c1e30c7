"""Reminder preference store access."""
import json
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from receipt_reminders.models.preference import UserPreference

logger = logging.getLogger(__name__)

EMAIL = "email"
SMS = "sms"
CHANNEL_ORDER = (EMAIL, SMS)

# Each run scans one due date per day of the longest lead time
MAX_LEAD_TIME_DAYS = 365


class PreferenceStoreError(Exception):
    """Preferences could not be read; the whole run must stop."""


@dataclass(frozen=True)
class ReminderPreference:
    user_id: str
    lead_times: frozenset[int]
    channels: frozenset[str]
    email_address: str | None = None
    phone_number: str | None = None

    def recipient_for(self, channel: str) -> str | None:
        if channel == EMAIL:
            return self.email_address
        if channel == SMS:
            return self.phone_number
        return None

    def missing_contacts(self) -> list[str]:
        """Enabled channels that have no contact address."""
        return [c for c in CHANNEL_ORDER if c in self.channels and not self.recipient_for(c)]


def _from_row(row: UserPreference) -> ReminderPreference:
    lead_times = json.loads(row.lead_times or "[]")
    channels = json.loads(row.channels or "[]")
    return ReminderPreference(
        user_id=row.user_id,
        lead_times=frozenset(int(days) for days in lead_times),
        channels=frozenset(str(c).lower() for c in channels),
        email_address=row.email_address or None,
        phone_number=row.phone_number or None,
    )


def list_active_preferences(db: Session) -> list[ReminderPreference]:
    """Load every stored preference; all of them are active.

    Raises PreferenceStoreError if any part of the read fails, so a run never
    acts on a partial list.
    """
    try:
        rows = db.query(UserPreference).order_by(UserPreference.user_id).all()
        return [_from_row(row) for row in rows]
    except SQLAlchemyError as e:
        raise PreferenceStoreError(f"Error fetching user preferences: {e}") from e
    except (ValueError, TypeError) as e:
        raise PreferenceStoreError(f"Malformed user preference data: {e}") from e


def get_preference(db: Session, user_id: str) -> ReminderPreference | None:
    row = db.get(UserPreference, user_id)
    return _from_row(row) if row else None


def upsert_preference(
    db: Session,
    user_id: str,
    lead_times: list[int],
    channels: list[str],
    email_address: str | None = None,
    phone_number: str | None = None,
) -> ReminderPreference:
    """Create or replace a user's preference row."""
    row = db.get(UserPreference, user_id)
    if row is None:
        row = UserPreference(user_id=user_id)
        db.add(row)
        logger.info(f"Created reminder preference for user {user_id}")

    row.lead_times = json.dumps(sorted(set(lead_times)))
    row.channels = json.dumps([c for c in CHANNEL_ORDER if c in set(channels)])
    row.email_address = email_address
    row.phone_number = phone_number
    db.commit()
    db.refresh(row)
    return _from_row(row)
