"""Notification engine API endpoints."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from receipt_reminders.api.deps import get_channels, get_db, require_service_token
from receipt_reminders.config import Settings, get_settings
from receipt_reminders.models.notification_history import NotificationHistory
from receipt_reminders.models.scheduled_notification import ScheduledNotification
from receipt_reminders.schemas.notification import (
    NotificationHistoryResponse,
    ProcessSummary,
    ReceiptDetails,
    RunRequest,
    RunSummary,
    SampleSendRequest,
    SampleSendResponse,
    ScheduledNotificationResponse,
    ScheduleRequest,
    ScheduleResponse,
)
from receipt_reminders.services.channels import ChannelError, ChannelRegistry
from receipt_reminders.services.engine import (
    NoUpcomingReceiptError,
    process_due_notifications,
    run_reminder_engine,
    schedule_for_next_receipt,
    send_test_notification,
)
from receipt_reminders.services.preferences import PreferenceStoreError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_service_token)],
)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _store_failure(error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(error), "timestamp": _timestamp()},
    )


@router.post("/run", response_model=RunSummary)
def run_notifications(
    request: RunRequest | None = Body(None),
    db: Session = Depends(get_db),
    channels: ChannelRegistry = Depends(get_channels),
    settings: Settings = Depends(get_settings),
):
    """Run the reminder engine once: schedule, then dispatch everything due."""
    request = request or RunRequest()
    manual = request.manual or request.trigger == "manual"
    try:
        result = run_reminder_engine(
            db,
            channels,
            manual=manual,
            time_budget_seconds=settings.run_time_budget_seconds,
            dashboard_url=settings.app_base_url,
        )
    except PreferenceStoreError as e:
        logger.error(f"Reminder run aborted: {e}")
        return _store_failure(e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Reminder run aborted by a database error: {e}")
        return _store_failure(e)

    return RunSummary(
        success=result.success,
        total_notifications_sent=result.total_notifications_sent,
        total_users=result.total_users,
        scheduled_count=result.scheduled_count,
        errors=result.errors,
        manual=result.manual,
        timestamp=result.timestamp,
    )


@router.post("/process", response_model=ProcessSummary)
def process_notifications(
    db: Session = Depends(get_db),
    channels: ChannelRegistry = Depends(get_channels),
    settings: Settings = Depends(get_settings),
):
    """Dispatch scheduled notifications whose send time has arrived."""
    try:
        result = process_due_notifications(db, channels, dashboard_url=settings.app_base_url)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Notification processing aborted by a database error: {e}")
        return _store_failure(e)
    return ProcessSummary(
        sent_count=result.sent_count,
        failed_count=result.failed_count,
        deferred_count=result.deferred_count,
        closed_count=result.closed_count,
        errors=result.errors,
        timestamp=_timestamp(),
    )


@router.post("/schedule", response_model=ScheduleResponse)
def schedule_notifications(
    request: ScheduleRequest,
    db: Session = Depends(get_db),
):
    """Schedule reminders for a user's next upcoming receipt."""
    try:
        result = schedule_for_next_receipt(
            db,
            request.user_id,
            request.schedule_days,
            email=request.email,
            phone_number=request.mobile_number,
        )
    except NoUpcomingReceiptError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    receipt = result.receipt
    return ScheduleResponse(
        scheduled_count=result.scheduled_count,
        skipped_days=result.skipped_lead_times,
        receipt_details=ReceiptDetails(
            id=receipt.id,
            vendor=receipt.vendor,
            amount=receipt.amount,
            due_date=receipt.due_date,
        ),
    )


@router.get("/scheduled", response_model=list[ScheduledNotificationResponse])
def list_scheduled_notifications(
    user_id: str,
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    """List a user's scheduled notifications, soonest first."""
    query = db.query(ScheduledNotification).filter(ScheduledNotification.user_id == user_id)
    if status_filter:
        query = query.filter(ScheduledNotification.status == status_filter)
    notifications = query.order_by(ScheduledNotification.scheduled_send_at).limit(100).all()
    return [ScheduledNotificationResponse.model_validate(n) for n in notifications]


@router.get("/history", response_model=list[NotificationHistoryResponse])
def list_notification_history(
    user_id: str,
    db: Session = Depends(get_db),
):
    """Recent ledger entries for a user, newest first."""
    entries = (
        db.query(NotificationHistory)
        .filter(NotificationHistory.user_id == user_id)
        .order_by(NotificationHistory.sent_at.desc())
        .limit(50)
        .all()
    )
    return [NotificationHistoryResponse.model_validate(e) for e in entries]


@router.post("/test", response_model=SampleSendResponse)
def send_test(
    request: SampleSendRequest,
    channels: ChannelRegistry = Depends(get_channels),
    settings: Settings = Depends(get_settings),
):
    """Send a sample reminder to check channel configuration."""
    try:
        result = send_test_notification(channels, request.channel, request.to, dashboard_url=settings.app_base_url)
    except ChannelError as e:
        return SampleSendResponse(success=False, message=str(e))
    return SampleSendResponse(
        success=True,
        message=f"Test {request.channel} sent",
        provider_id=result.id,
    )
