"""Notification engine schemas."""
import json

from pydantic import BaseModel, Field, field_validator, model_validator

from receipt_reminders.services.preferences import MAX_LEAD_TIME_DAYS


class RunRequest(BaseModel):
    """Optional body for a run trigger."""

    manual: bool = False
    trigger: str | None = None  # e.g. "cron", "manual"


class RunSummary(BaseModel):
    """Operator-facing summary of one engine run."""

    success: bool
    total_notifications_sent: int = Field(0, alias="totalNotificationsSent")
    total_users: int = Field(0, alias="totalUsers")
    scheduled_count: int = Field(0, alias="scheduledCount")
    errors: list[str] = []
    manual: bool = False
    timestamp: str

    class Config:
        populate_by_name = True


class ProcessSummary(BaseModel):
    """Summary of a dispatch-only pass."""

    success: bool = True
    sent_count: int = Field(0, alias="sentCount")
    failed_count: int = Field(0, alias="failedCount")
    deferred_count: int = Field(0, alias="deferredCount")
    closed_count: int = Field(0, alias="closedCount")
    errors: list[str] = []
    timestamp: str

    class Config:
        populate_by_name = True


class ScheduleRequest(BaseModel):
    """Ad-hoc request to schedule reminders for a user's next receipt."""

    user_id: str
    email: str | None = None
    mobile_number: str | None = Field(None, alias="mobileNumber")
    schedule_days: list[int] = Field(alias="scheduleDays", min_length=1)

    class Config:
        populate_by_name = True

    @field_validator("schedule_days")
    @classmethod
    def non_negative_days(cls, value: list[int]) -> list[int]:
        if any(days < 0 for days in value):
            raise ValueError("scheduleDays must be non-negative")
        if any(days > MAX_LEAD_TIME_DAYS for days in value):
            raise ValueError(f"scheduleDays must be at most {MAX_LEAD_TIME_DAYS} days")
        return value

    @model_validator(mode="after")
    def require_contact(self):
        if not self.email and not self.mobile_number:
            raise ValueError("Provide an email or a mobileNumber")
        return self


class ReceiptDetails(BaseModel):
    id: str
    vendor: str
    amount: float
    due_date: str | None = Field(None, alias="dueDate")

    class Config:
        populate_by_name = True


class ScheduleResponse(BaseModel):
    success: bool = True
    scheduled_count: int = Field(0, alias="scheduledCount")
    skipped_days: list[int] = Field(default_factory=list, alias="skippedDays")
    receipt_details: ReceiptDetails = Field(alias="receiptDetails")

    class Config:
        populate_by_name = True


class ScheduledNotificationResponse(BaseModel):
    """Scheduled notification record."""

    id: str
    user_id: str
    receipt_id: str | None
    channel: str
    recipient: str
    due_date: str
    lead_time_days: int
    scheduled_send_at: str
    status: str
    content: dict
    sent_at: str | None
    error_message: str | None

    @field_validator("content", mode="before")
    @classmethod
    def parse_content(cls, v):
        if isinstance(v, str):
            return json.loads(v or "{}")
        return v

    class Config:
        from_attributes = True


class NotificationHistoryResponse(BaseModel):
    """Ledger record."""

    id: str
    user_id: str
    receipt_id: str | None
    notification_type: str
    status: str
    sent_at: str
    content: dict

    @field_validator("content", mode="before")
    @classmethod
    def parse_content(cls, v):
        if isinstance(v, str):
            return json.loads(v or "{}")
        return v

    class Config:
        from_attributes = True


class SampleSendRequest(BaseModel):
    """Send a sample reminder through one channel."""

    channel: str
    to: str

    @field_validator("channel")
    @classmethod
    def known_channel(cls, value: str) -> str:
        value = value.lower()
        if value not in ("email", "sms"):
            raise ValueError("channel must be 'email' or 'sms'")
        return value


class SampleSendResponse(BaseModel):
    success: bool
    message: str
    provider_id: str | None = Field(None, alias="providerId")

    class Config:
        populate_by_name = True
