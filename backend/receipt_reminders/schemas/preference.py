"""Reminder preference schemas."""
from pydantic import BaseModel, Field, field_validator, model_validator

from receipt_reminders.services.preferences import MAX_LEAD_TIME_DAYS


class PreferenceUpdate(BaseModel):
    """A user's reminder configuration."""

    lead_times: list[int] = Field(min_length=1)
    channels: list[str] = Field(min_length=1)
    email_address: str | None = None
    phone_number: str | None = None

    @field_validator("lead_times")
    @classmethod
    def non_negative_lead_times(cls, value: list[int]) -> list[int]:
        if any(days < 0 for days in value):
            raise ValueError("lead_times must be non-negative")
        if any(days > MAX_LEAD_TIME_DAYS for days in value):
            raise ValueError(f"lead_times must be at most {MAX_LEAD_TIME_DAYS} days")
        return sorted(set(value))

    @field_validator("channels")
    @classmethod
    def known_channels(cls, value: list[str]) -> list[str]:
        channels = {c.lower() for c in value}
        unknown = channels - {"email", "sms"}
        if unknown:
            raise ValueError(f"Unknown channels: {', '.join(sorted(unknown))}")
        return sorted(channels)

    @model_validator(mode="after")
    def contacts_for_channels(self):
        if "sms" in self.channels and not self.phone_number:
            raise ValueError("phone_number is required when sms is enabled")
        if "email" in self.channels and not self.email_address:
            raise ValueError("email_address is required when email is enabled")
        return self


class PreferenceResponse(BaseModel):
    user_id: str
    lead_times: list[int]
    channels: list[str]
    email_address: str | None
    phone_number: str | None
