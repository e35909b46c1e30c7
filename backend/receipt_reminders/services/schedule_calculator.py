"""Send-time calculation for due-date reminders.

Every date and time here is UTC. Due dates are calendar dates without a time
of day and lead times are whole days, so the arithmetic is plain calendar
subtraction.
"""
import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from receipt_reminders.services.preferences import CHANNEL_ORDER, ReminderPreference


class ScheduleDecision(str, enum.Enum):
    SCHEDULE_FUTURE = "schedule_future"
    SCHEDULE_CATCHUP = "schedule_catchup"
    SKIP_EXPIRED = "skip_expired"


@dataclass(frozen=True)
class ScheduleResult:
    decision: ScheduleDecision
    send_at: datetime | None = None

    @property
    def is_scheduled(self) -> bool:
        return self.decision is not ScheduleDecision.SKIP_EXPIRED


@dataclass
class NotificationDraft:
    """An unsaved ``ScheduledNotification`` for one channel."""

    user_id: str
    receipt_id: str | None
    channel: str
    recipient: str
    due_date: date
    lead_time_days: int
    scheduled_send_at: datetime
    content: dict = field(default_factory=dict)

    @property
    def key(self) -> tuple:
        return (self.receipt_id, self.channel, self.lead_time_days, self.due_date.isoformat())


def utc_now() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def parse_due_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def calculate_send_time(
    due_date: date,
    lead_time_days: int,
    now: datetime,
    today: date | None = None,
) -> ScheduleResult:
    """Decide when a reminder ``lead_time_days`` before ``due_date`` goes out.

    Args:
        due_date: The obligation's due date.
        lead_time_days: Days before the due date the user wants reminding.
        now: The current moment (naive UTC).
        today: The current calendar day; defaults to ``now.date()``.

    Returns:
        ``SCHEDULE_FUTURE`` at the start of the ideal send day when that day
        is today or later, ``SCHEDULE_CATCHUP`` at ``now`` when the ideal day
        has passed but the due date has not, and ``SKIP_EXPIRED`` otherwise.
        The send time never falls after the end of the due date.
    """
    if lead_time_days < 0:
        raise ValueError(f"Lead time must be non-negative, got {lead_time_days}")
    if today is None:
        today = now.date()

    scheduled_send_date = due_date - timedelta(days=lead_time_days)
    if scheduled_send_date >= today:
        return ScheduleResult(ScheduleDecision.SCHEDULE_FUTURE, start_of_day(scheduled_send_date))
    if now <= end_of_day(due_date):
        return ScheduleResult(ScheduleDecision.SCHEDULE_CATCHUP, now)
    return ScheduleResult(ScheduleDecision.SKIP_EXPIRED)


def build_content(receipt, lead_time_days: int, catch_up: bool) -> dict:
    """Message payload stored with every scheduled notification."""
    return {
        "receiptId": receipt.id,
        "vendor": receipt.vendor,
        "amount": receipt.amount,
        "category": receipt.category,
        "dueDate": receipt.due_date,
        "daysBefore": lead_time_days,
        "catchUp": catch_up,
    }


def build_drafts(
    preference: ReminderPreference,
    receipt,
    lead_time_days: int,
    now: datetime,
    today: date | None = None,
) -> list[NotificationDraft]:
    """Drafts for one (preference, receipt, lead time) triple, one per enabled channel.

    A channel whose contact address is missing still gets a draft with an
    empty recipient; the dispatcher records it as a configuration failure.
    """
    due_date = parse_due_date(receipt.due_date)
    result = calculate_send_time(due_date, lead_time_days, now, today)
    if not result.is_scheduled:
        return []

    content = build_content(
        receipt,
        lead_time_days,
        catch_up=result.decision is ScheduleDecision.SCHEDULE_CATCHUP,
    )
    drafts = []
    for channel in CHANNEL_ORDER:
        if channel not in preference.channels:
            continue
        drafts.append(
            NotificationDraft(
                user_id=preference.user_id,
                receipt_id=receipt.id,
                channel=channel,
                recipient=preference.recipient_for(channel) or "",
                due_date=due_date,
                lead_time_days=lead_time_days,
                scheduled_send_at=result.send_at,
                content=dict(content),
            )
        )
    return drafts
