"""
Vehicle pickup meetings on Google Calendar
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.bookings.service import BookingService
from ..models import User
from ..services import google_calendar_service
from ..shared.validators import validate_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])


class PickupMeetingRequest(BaseModel):
    bookingId: int
    title: str = Field(..., min_length=1, max_length=255)
    startDateTime: datetime
    durationMinutes: int = Field(30, ge=5, le=480)
    location: str = Field(..., min_length=1)
    description: Optional[str] = None
    attendees: Optional[list[str]] = None
    sendNotification: bool = True

    @field_validator("attendees")
    @classmethod
    def check_attendees(cls, v):
        return [validate_email(email) for email in v] if v else v


@router.post("/booking", status_code=201)
async def create_pickup_meeting(
    data: PickupMeetingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Schedule the vehicle handover and record it on the booking"""
    booking = BookingService(db).get_booking(data.bookingId)
    event_id = await google_calendar_service.create_pickup_meeting(
        db,
        current_user,
        booking,
        title=data.title,
        start=data.startDateTime,
        duration_minutes=data.durationMinutes,
        location=data.location,
        description=data.description,
        attendees=data.attendees,
        send_notification=data.sendNotification,
    )
    return {"success": True, "eventId": event_id, "message": "Pickup meeting scheduled"}
