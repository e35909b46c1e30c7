"""Reminder engine: one pass of scheduling and dispatch over every user.

Call ``run_reminder_engine`` from a scheduler or the HTTP trigger. It
derives scheduled notifications from preferences and unpaid receipts, then
dispatches everything whose send time has arrived.
"""
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from receipt_reminders.models.receipt import Receipt
from receipt_reminders.models.scheduled_notification import ScheduledNotification
from receipt_reminders.services.channels import ChannelRegistry, DeliveryResult
from receipt_reminders.services.dispatcher import (
    SCHEDULED,
    close_notification,
    deliver,
    dispatch,
)
from receipt_reminders.services.due_matcher import (
    candidate_due_dates,
    find_due_obligations,
    find_next_upcoming_obligation,
    is_outstanding,
)
from receipt_reminders.services.duplicate_guard import day_window, has_already_notified
from receipt_reminders.services.preferences import (
    EMAIL,
    SMS,
    ReminderPreference,
    list_active_preferences,
)
from receipt_reminders.services.schedule_calculator import (
    NotificationDraft,
    build_drafts,
    utc_now,
)

logger = logging.getLogger(__name__)


class NoUpcomingReceiptError(Exception):
    """The user has no unpaid receipt due today or later."""


class RunDeadline:
    """Optional wall-clock budget for a run."""

    def __init__(self, budget_seconds: float | None, clock=time.monotonic):
        self._clock = clock
        self._expires_at = None if budget_seconds is None else clock() + budget_seconds

    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at


@dataclass
class RunResult:
    success: bool = True
    total_notifications_sent: int = 0
    total_users: int = 0
    scheduled_count: int = 0
    errors: list[str] = field(default_factory=list)
    manual: bool = False
    timestamp: str = ""


@dataclass
class ProcessResult:
    sent_count: int = 0
    failed_count: int = 0
    deferred_count: int = 0
    closed_count: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class AdHocScheduleResult:
    receipt: Receipt
    scheduled_count: int
    skipped_lead_times: list[int]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def persist_draft(db: Session, draft: NotificationDraft) -> ScheduledNotification | None:
    """Add a draft unless a notification with the same key already exists."""
    existing = (
        db.query(ScheduledNotification.id)
        .filter(
            ScheduledNotification.receipt_id == draft.receipt_id,
            ScheduledNotification.channel == draft.channel,
            ScheduledNotification.lead_time_days == draft.lead_time_days,
            ScheduledNotification.due_date == draft.due_date.isoformat(),
        )
        .first()
    )
    if existing is not None:
        return None

    notification = ScheduledNotification(
        user_id=draft.user_id,
        receipt_id=draft.receipt_id,
        channel=draft.channel,
        recipient=draft.recipient,
        due_date=draft.due_date.isoformat(),
        lead_time_days=draft.lead_time_days,
        scheduled_send_at=draft.scheduled_send_at.isoformat(),
        status=SCHEDULED,
        content=json.dumps(draft.content),
    )
    db.add(notification)
    db.flush()
    return notification


def schedule_user(db: Session, preference: ReminderPreference, now: datetime, today: date | None = None) -> int:
    """Derive and store scheduled notifications for one user. Returns how many were created."""
    if today is None:
        today = now.date()

    missing = preference.missing_contacts()
    if missing:
        logger.warning(f"User {preference.user_id} has no contact address for: {', '.join(missing)}")

    created = 0
    lead_times = sorted(preference.lead_times)
    for target_date in candidate_due_dates(today, lead_times):
        receipts = find_due_obligations(db, preference.user_id, target_date)
        for receipt in receipts:
            for lead_time in lead_times:
                for draft in build_drafts(preference, receipt, lead_time, now, today):
                    if persist_draft(db, draft) is not None:
                        created += 1
    db.commit()

    if created:
        logger.info(f"Scheduled {created} notifications for user {preference.user_id}")
    return created


def _cancellation_reason(db: Session, notification: ScheduledNotification, today: date) -> str | None:
    if notification.due_date < today.isoformat():
        return "Due date passed before dispatch"
    if notification.receipt_id is None:
        return None
    receipt = db.get(Receipt, notification.receipt_id)
    if receipt is None:
        return "Cancelled: receipt no longer exists"
    if not is_outstanding(receipt):
        return "Cancelled: receipt marked as paid"
    if receipt.due_date != notification.due_date:
        return "Cancelled: receipt due date changed"
    return None


def process_due_notifications(
    db: Session,
    channels: ChannelRegistry,
    now: datetime | None = None,
    deadline: RunDeadline | None = None,
    dashboard_url: str = "",
) -> ProcessResult:
    """Dispatch every scheduled notification whose send time has arrived."""
    if now is None:
        now = utc_now()
    today = now.date()
    result = ProcessResult()

    due = (
        db.query(ScheduledNotification)
        .filter(
            ScheduledNotification.status == SCHEDULED,
            ScheduledNotification.scheduled_send_at <= now.isoformat(),
        )
        .order_by(ScheduledNotification.scheduled_send_at, ScheduledNotification.id)
        .all()
    )
    logger.info(f"Found {len(due)} scheduled notifications due for dispatch")

    # One send per receipt, channel and recipient, however many lead times came due together
    groups: dict[tuple, list[ScheduledNotification]] = {}
    for notification in due:
        reason = _cancellation_reason(db, notification, today)
        if reason:
            close_notification(db, notification, reason, now)
            result.closed_count += 1
            continue
        key = (notification.receipt_id or notification.id, notification.channel, notification.recipient)
        groups.setdefault(key, []).append(notification)

    window_start, window_end = day_window(today)
    remaining = len(groups)
    for group in groups.values():
        if deadline is not None and deadline.expired():
            result.errors.append(f"Run time budget exhausted; {remaining} notification groups left for a later run")
            break
        remaining -= 1

        lead = group[0]
        if has_already_notified(db, lead.receipt_id, lead.channel, window_start, window_end, lead.recipient):
            logger.info(
                f"{lead.channel} notification already sent to {lead.recipient} for receipt {lead.receipt_id} today; deferring"
            )
            result.deferred_count += len(group)
            continue

        outcome = dispatch(db, group, channels, now, dashboard_url)
        if outcome.sent:
            if not outcome.concurrent_duplicate:
                result.sent_count += 1
        else:
            result.failed_count += 1
            result.errors.append(f"Receipt {lead.receipt_id} ({lead.channel}): {outcome.error}")

    return result


def run_reminder_engine(
    db: Session,
    channels: ChannelRegistry,
    now: datetime | None = None,
    manual: bool = False,
    time_budget_seconds: float | None = None,
    dashboard_url: str = "",
) -> RunResult:
    """Run one full scheduling and dispatch pass.

    A failure to read preferences propagates (nothing is generated from a
    partial list). Anything that goes wrong for a single user or a single
    notification is logged and collected in ``errors``.
    """
    if now is None:
        now = utc_now()
    today = now.date()
    deadline = RunDeadline(time_budget_seconds)

    logger.info(f"Starting reminder run for {today.isoformat()} (manual={manual})")
    preferences = list_active_preferences(db)
    logger.info(f"Found {len(preferences)} users with preferences")

    result = RunResult(total_users=len(preferences), manual=manual)

    for index, preference in enumerate(preferences):
        if deadline.expired():
            result.errors.append(
                f"Run time budget exhausted; {len(preferences) - index} users not scheduled"
            )
            break
        try:
            result.scheduled_count += schedule_user(db, preference, now, today)
        except Exception as e:
            db.rollback()
            logger.error(f"Error processing user {preference.user_id}: {e}")
            result.errors.append(f"User {preference.user_id}: {e}")

    processed = process_due_notifications(db, channels, now, deadline, dashboard_url)
    result.total_notifications_sent = processed.sent_count
    result.errors.extend(processed.errors)
    result.timestamp = _timestamp()

    logger.info(
        f"Reminder run completed: {result.total_notifications_sent} sent, "
        f"{result.scheduled_count} scheduled, {len(result.errors)} errors"
    )
    return result


def schedule_for_next_receipt(
    db: Session,
    user_id: str,
    lead_times: list[int],
    email: str | None = None,
    phone_number: str | None = None,
    now: datetime | None = None,
) -> AdHocScheduleResult:
    """Schedule reminders for the user's next upcoming receipt on request."""
    if now is None:
        now = utc_now()
    today = now.date()

    receipt = find_next_upcoming_obligation(db, user_id, today)
    if receipt is None:
        raise NoUpcomingReceiptError("No upcoming receipts with due dates found")

    channels = [c for c, contact in ((EMAIL, email), (SMS, phone_number)) if contact]
    preference = ReminderPreference(
        user_id=user_id,
        lead_times=frozenset(lead_times),
        channels=frozenset(channels),
        email_address=email,
        phone_number=phone_number,
    )

    created = 0
    skipped = []
    for lead_time in sorted(preference.lead_times):
        drafts = build_drafts(preference, receipt, lead_time, now, today)
        if not drafts:
            skipped.append(lead_time)
            continue
        for draft in drafts:
            if persist_draft(db, draft) is not None:
                created += 1
    db.commit()

    logger.info(f"Scheduled {created} ad-hoc notifications for receipt {receipt.id} (user {user_id})")
    return AdHocScheduleResult(receipt=receipt, scheduled_count=created, skipped_lead_times=skipped)


SAMPLE_CONTENT = {
    "receiptId": "test",
    "vendor": "Sample Vendor",
    "amount": 42.0,
    "category": "Test",
    "dueDate": None,
    "daysBefore": 1,
    "catchUp": False,
}


def send_test_notification(
    channels: ChannelRegistry,
    channel: str,
    to: str,
    now: datetime | None = None,
    dashboard_url: str = "",
) -> DeliveryResult:
    """Send a sample reminder through one channel without touching the ledger."""
    if now is None:
        now = utc_now()
    content = dict(SAMPLE_CONTENT, dueDate=now.date().isoformat())
    result, _ = deliver(channels, channel, to, content, dashboard_url, now.date())
    logger.info(f"Test {channel} notification sent to {to}")
    return result
