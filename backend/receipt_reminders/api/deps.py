"""Shared API dependencies."""
import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from receipt_reminders.config import Settings, get_settings
from receipt_reminders.database import get_db  # noqa: F401
from receipt_reminders.services.channels import ChannelRegistry, build_channels

bearer_scheme = HTTPBearer(auto_error=False)


def require_service_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """Only the scheduler and internal services may call engine endpoints."""
    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode("utf-8"),
        settings.cron_secret.encode("utf-8"),
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing service token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_channels(settings: Settings = Depends(get_settings)) -> ChannelRegistry:
    """Delivery channels built from settings for this request."""
    return build_channels(settings)
