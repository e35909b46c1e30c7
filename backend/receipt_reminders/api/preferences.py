"""Reminder preference API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from receipt_reminders.api.deps import get_db, require_service_token
from receipt_reminders.schemas.preference import PreferenceResponse, PreferenceUpdate
from receipt_reminders.services.preferences import (
    ReminderPreference,
    get_preference,
    upsert_preference,
)

router = APIRouter(
    prefix="/preferences",
    tags=["preferences"],
    dependencies=[Depends(require_service_token)],
)


def _to_response(preference: ReminderPreference) -> PreferenceResponse:
    return PreferenceResponse(
        user_id=preference.user_id,
        lead_times=sorted(preference.lead_times),
        channels=sorted(preference.channels),
        email_address=preference.email_address,
        phone_number=preference.phone_number,
    )


@router.get("/{user_id}", response_model=PreferenceResponse)
def read_preference(user_id: str, db: Session = Depends(get_db)):
    """Get a user's reminder preference."""
    preference = get_preference(db, user_id)
    if preference is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preference not found")
    return _to_response(preference)


@router.put("/{user_id}", response_model=PreferenceResponse)
def write_preference(user_id: str, request: PreferenceUpdate, db: Session = Depends(get_db)):
    """Create or replace a user's reminder preference."""
    preference = upsert_preference(
        db,
        user_id,
        lead_times=request.lead_times,
        channels=request.channels,
        email_address=request.email_address,
        phone_number=request.phone_number,
    )
    return _to_response(preference)
