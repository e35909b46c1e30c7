"""Dispatch of due notifications and recording of their outcome."""
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from receipt_reminders.models.notification_history import NotificationHistory
from receipt_reminders.models.scheduled_notification import ScheduledNotification
from receipt_reminders.services.channels import (
    ChannelConfigurationError,
    ChannelRegistry,
    DeliveryResult,
)
from receipt_reminders.services.messages import render_email, render_sms
from receipt_reminders.services.preferences import EMAIL, SMS

logger = logging.getLogger(__name__)

SCHEDULED = "scheduled"
SENT = "sent"
FAILED = "failed"


@dataclass
class DispatchOutcome:
    status: str
    error: str | None = None
    provider_id: str | None = None
    notification_ids: list[str] = field(default_factory=list)
    # Another run already recorded a send for this receipt, channel and recipient today
    concurrent_duplicate: bool = False

    @property
    def sent(self) -> bool:
        return self.status == SENT


def deliver(
    channels: ChannelRegistry,
    channel: str,
    recipient: str,
    content: dict,
    dashboard_url: str = "",
    today: date | None = None,
) -> tuple[DeliveryResult, dict]:
    """Render and send one message. Returns the provider result and a ledger summary.

    ``today`` is the dispatch day; the email wording counts the days left from it.
    """
    capability = channels.get(channel)
    if capability is None:
        raise ChannelConfigurationError(f"No {channel} channel is configured")

    if channel == EMAIL:
        subject, html = render_email(content, dashboard_url, today)
        result = capability.send(recipient, subject, html)
        return result, {"to": recipient, "subject": subject}
    if channel == SMS:
        body = render_sms(content)
        result = capability.send(recipient, body)
        return result, {"to": recipient, "message": body}
    raise ChannelConfigurationError(f"Unsupported channel: {channel}")


def dispatch(
    db: Session,
    notifications: list[ScheduledNotification],
    channels: ChannelRegistry,
    now: datetime,
    dashboard_url: str = "",
) -> DispatchOutcome:
    """Send one message for a group of due notifications sharing a receipt, channel and recipient.

    Every notification in the group ends ``sent`` or ``failed`` together and
    a single ledger row records the attempt. Channel errors never escape.
    """
    lead = notifications[0]
    content = json.loads(lead.content or "{}")
    ids = [n.id for n in notifications]

    try:
        result, ledger_content = deliver(
            channels, lead.channel, lead.recipient, content, dashboard_url, now.date()
        )
    except Exception as e:
        error = str(e) or e.__class__.__name__
        logger.error(f"Error sending {lead.channel} notification for receipt {lead.receipt_id}: {error}")
        outcome = DispatchOutcome(status=FAILED, error=error, notification_ids=ids)
        ledger_content = {"to": lead.recipient, "error": error}
    else:
        logger.info(f"Sent {lead.channel} notification for receipt {lead.receipt_id} to {lead.recipient}")
        outcome = DispatchOutcome(status=SENT, provider_id=result.id, notification_ids=ids)
        ledger_content["providerId"] = result.id

    ledger_content["scheduledNotificationIds"] = ids
    record_outcome(db, notifications, outcome, now, ledger_content)
    return outcome


def _apply_status(notifications: list[ScheduledNotification], outcome: DispatchOutcome, now_iso: str) -> None:
    for notification in notifications:
        notification.status = outcome.status
        notification.updated_at = now_iso
        if outcome.sent:
            notification.sent_at = now_iso
            notification.error_message = None
        else:
            notification.error_message = outcome.error


def record_outcome(
    db: Session,
    notifications: list[ScheduledNotification],
    outcome: DispatchOutcome,
    now: datetime,
    ledger_content: dict,
) -> None:
    """Commit the terminal status of each notification plus one ledger row."""
    now_iso = now.isoformat()
    lead = notifications[0]
    _apply_status(notifications, outcome, now_iso)
    db.add(
        NotificationHistory(
            user_id=lead.user_id,
            receipt_id=lead.receipt_id,
            scheduled_notification_id=lead.id,
            notification_type=lead.channel,
            recipient=lead.recipient or "",
            status=outcome.status,
            content=json.dumps(ledger_content),
            sent_at=now_iso,
            sent_day=now.date().isoformat(),
        )
    )
    try:
        db.commit()
    except IntegrityError:
        # The daily unique index rejected the ledger row: a concurrent run
        # already recorded a send for this receipt, channel and recipient.
        db.rollback()
        logger.warning(
            f"Ledger already holds a {lead.channel} send to {lead.recipient} for receipt {lead.receipt_id} today; "
            "keeping notification status only"
        )
        outcome.concurrent_duplicate = True
        _apply_status(notifications, outcome, now_iso)
        db.commit()


def close_notification(db: Session, notification: ScheduledNotification, reason: str, now: datetime) -> None:
    """Terminate a notification that will never be sent, without a ledger row."""
    notification.status = FAILED
    notification.error_message = reason
    notification.updated_at = now.isoformat()
    db.commit()
    logger.info(f"Closed notification {notification.id} for receipt {notification.receipt_id}: {reason}")
