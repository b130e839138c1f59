"""Booking router - FastAPI endpoints for booking operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services import google_calendar_service
from ...shared.validators import parse_date_param, require_date_range
from .schemas import (
    BookingCreate,
    BookingResponse,
    BookingStatsResponse,
    BookingStatusUpdate,
    BookingUpdate,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=list[BookingResponse])
async def get_bookings(
    status: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Get all bookings, newest first"""
    return [BookingResponse.from_booking(b) for b in service.get_bookings(status, source)]


@router.get("/recent", response_model=list[BookingResponse])
async def get_recent_bookings(
    limit: int = Query(5, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return [BookingResponse.from_booking(b) for b in service.get_recent_bookings(limit)]


@router.get("/stats", response_model=BookingStatsResponse)
async def get_booking_stats(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Dashboard counters: totals, month-over-month growth, active, revenue"""
    return service.get_stats()


@router.get("/calendar", response_model=list[BookingResponse])
async def get_booking_calendar(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Bookings overlapping the visible calendar range"""
    start_date = parse_date_param(startDate, "startDate")
    end_date = parse_date_param(endDate, "endDate")
    require_date_range(start_date, end_date)
    return [BookingResponse.from_booking(b) for b in service.get_calendar(start_date, end_date)]


@router.get("/export")
async def export_bookings_csv(
    status: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Export bookings as CSV"""
    return service.export_bookings_csv(status, source)


@router.get("/ref/{booking_ref}", response_model=BookingResponse)
async def get_booking_by_ref(
    booking_ref: str,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_booking(service.get_booking_by_ref(booking_ref))


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_booking(service.get_booking(booking_id))


# ============================================================================
# WRITES
# ============================================================================


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking; 409 when the vehicle is taken for any of the dates"""
    booking = service.create_booking(data)
    await google_calendar_service.create_booking_event(service.db, current_user, booking)
    return BookingResponse.from_booking(booking)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: int,
    data: BookingUpdate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_booking(service.update_booking(booking_id, data))


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.update_status(booking_id, data.status)
    if booking.status == "cancelled":
        await google_calendar_service.delete_booking_event(service.db, current_user, booking)
    return BookingResponse.from_booking(booking)


@router.delete("/{booking_id}")
async def delete_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_booking(booking_id)
