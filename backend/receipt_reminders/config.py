"""Application configuration."""
from collections import Counter
from functools import lru_cache
import math

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Receipt Reminders"
    debug: bool = False
    log_level: str = "INFO"
    app_base_url: str = "http://localhost:5173"

    # Database
    database_url: str = "sqlite:///./data/receipts.db"

    # Run trigger
    cron_secret: str
    run_time_budget_seconds: float | None = None

    # Email (SMTP)
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "Receipt Reminders <noreply@receipt-reminders.app>"

    # SMS (Twilio)
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_from_number: str | None = None
    sms_timeout_seconds: float = 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("cron_secret")
    @classmethod
    def validate_cron_secret(cls, value: str) -> str:
        """Fail closed if CRON_SECRET is weak or placeholder quality."""
        if not value:
            raise ValueError("CRON_SECRET must be set.")

        if len(value) < 32:
            raise ValueError("CRON_SECRET must be at least 32 characters.")

        weak_values = {"changeme", "changeme-in-production", "secret", "password", "test"}
        lowered = value.lower()
        if lowered in weak_values or "changeme" in lowered:
            raise ValueError("CRON_SECRET must not be a placeholder value.")

        counts = Counter(value)
        entropy_per_char = -sum((count / len(value)) * math.log2(count / len(value)) for count in counts.values())
        estimated_entropy_bits = entropy_per_char * len(value)
        if estimated_entropy_bits < 100:
            raise ValueError("CRON_SECRET entropy is too low; use a cryptographically random value.")

        return value

    @field_validator("run_time_budget_seconds")
    @classmethod
    def validate_time_budget(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("RUN_TIME_BUDGET_SECONDS must be positive.")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
