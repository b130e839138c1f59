"""
Google Calendar Service
Rental bookings and pickup meetings as calendar events
"""
import logging
from datetime import datetime, time, timedelta
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import Booking, User
from . import google_oauth

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

DEFAULT_PICKUP_TIME = time(9, 0)
DEFAULT_RETURN_TIME = time(17, 0)


def _parse_hhmm(value: Optional[str], default: time) -> time:
    if not value:
        return default
    try:
        hour, minute = value.split(":")[:2]
        return time(int(hour), int(minute))
    except ValueError:
        return default


def build_booking_event(booking: Booking) -> dict[str, Any]:
    """Calendar event body for a rental booking (UTC times)"""
    customer_name = booking.customer.full_name if booking.customer else "Customer"
    vehicle = booking.vehicle
    vehicle_label = f"{vehicle.make} {vehicle.model} ({vehicle.license_plate})" if vehicle else "Vehicle"

    start = datetime.combine(booking.start_date, _parse_hhmm(booking.pickup_time, DEFAULT_PICKUP_TIME))
    end = datetime.combine(booking.end_date, _parse_hhmm(booking.return_time, DEFAULT_RETURN_TIME))
    if end <= start:
        end = start + timedelta(hours=1)

    description = (
        f"Booking Reference: {booking.booking_ref}\n"
        f"Vehicle: {vehicle_label}\n"
        f"Status: {booking.status}"
    )
    if booking.notes:
        description += f"\n\nNotes: {booking.notes}"

    event = {
        "summary": f"Car Rental: {customer_name}",
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
        "colorId": "1",
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 60},
            ],
        },
    }
    if booking.pickup_location:
        event["location"] = booking.pickup_location
    return event


def _events_url(db: Session, user: User) -> str:
    integration = google_oauth.get_integration(db, user.id)
    calendar_id = (integration.google_calendar_id if integration else None) or "primary"
    return f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events"


async def add_booking_to_calendar(db: Session, user: User, booking: Booking) -> str:
    """Create or update the booking's event. Returns the event id."""
    access_token = await google_oauth.require_access_token(db, user, google_oauth.CALENDAR_SCOPE)
    url = _events_url(db, user)
    body = build_booking_event(booking)

    if booking.google_calendar_event_id:
        event = await google_oauth.google_request(
            "PUT", f"{url}/{booking.google_calendar_event_id}", access_token, json=body
        )
    else:
        event = await google_oauth.google_request("POST", url, access_token, expected=(200, 201), json=body)

    booking.google_calendar_event_id = event.get("id")
    db.commit()
    logger.info(f"✅ Google Calendar event {booking.google_calendar_event_id} for {booking.booking_ref}")
    return booking.google_calendar_event_id


async def create_booking_event(db: Session, user: User, booking: Booking) -> Optional[str]:
    """
    Best-effort event creation after a booking is made.
    Returns None when Calendar is not connected or Google fails.
    """
    if booking.google_calendar_event_id or not google_oauth.get_integration(db, user.id):
        return None
    try:
        return await add_booking_to_calendar(db, user, booking)
    except HTTPException as e:
        logger.warning(f"⚠️ Calendar sync skipped for {booking.booking_ref}: {e.detail}")
        return None


async def delete_booking_event(db: Session, user: User, booking: Booking) -> bool:
    """Best-effort removal of a cancelled booking's event"""
    if not booking.google_calendar_event_id or not google_oauth.get_integration(db, user.id):
        return False
    try:
        access_token = await google_oauth.require_access_token(db, user, google_oauth.CALENDAR_SCOPE)
        await google_oauth.google_request(
            "DELETE",
            f"{_events_url(db, user)}/{booking.google_calendar_event_id}",
            access_token,
            expected=(200, 204, 410),
        )
    except HTTPException as e:
        logger.warning(f"⚠️ Failed to delete calendar event for {booking.booking_ref}: {e.detail}")
        return False

    booking.google_calendar_event_id = None
    db.commit()
    logger.info(f"🗑️ Calendar event removed for {booking.booking_ref}")
    return True


async def sync_bookings(db: Session, user: User, bookings: list[Booking]) -> list[dict[str, Any]]:
    """Sync each booking independently and report per-item outcomes"""
    # Fail fast only on a missing connection; per-booking errors are collected
    await google_oauth.require_access_token(db, user, google_oauth.CALENDAR_SCOPE)

    results = []
    for booking in bookings:
        try:
            event_id = await add_booking_to_calendar(db, user, booking)
            results.append({"bookingId": booking.id, "eventId": event_id, "success": True})
        except HTTPException as e:
            db.rollback()
            results.append({"bookingId": booking.id, "success": False, "error": str(e.detail)})

    synced = sum(1 for r in results if r["success"])
    logger.info(f"📅 Calendar sync: {synced}/{len(results)} bookings synced")
    return results


async def create_pickup_meeting(
    db: Session,
    user: User,
    booking: Booking,
    title: str,
    start: datetime,
    duration_minutes: int,
    location: str,
    description: Optional[str] = None,
    attendees: Optional[list[str]] = None,
    send_notification: bool = True,
) -> str:
    """Schedule a vehicle pickup meeting and mark it on the booking"""
    access_token = await google_oauth.require_access_token(db, user, google_oauth.CALENDAR_SCOPE)

    body: dict[str, Any] = {
        "summary": title,
        "location": location,
        "description": description
        or f"Vehicle pickup for booking {booking.booking_ref}",
        "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": (start + timedelta(minutes=duration_minutes)).isoformat(), "timeZone": "UTC"},
        "reminders": {"useDefault": False, "overrides": [{"method": "popup", "minutes": 30}]},
    }
    emails = list(attendees or [])
    if booking.customer and booking.customer.email and booking.customer.email not in emails:
        emails.append(booking.customer.email)
    if emails:
        body["attendees"] = [{"email": email} for email in emails]

    event = await google_oauth.google_request(
        "POST",
        _events_url(db, user),
        access_token,
        expected=(200, 201),
        params={"sendUpdates": "all" if send_notification else "none"},
        json=body,
    )

    booking.has_pickup_meeting = True
    booking.pickup_location = location
    booking.pickup_time = start.strftime("%H:%M")
    db.commit()
    logger.info(f"✅ Pickup meeting scheduled for {booking.booking_ref}: {event.get('id')}")
    return event.get("id")
