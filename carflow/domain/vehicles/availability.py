"""Vehicle availability - overlap checks and the denormalized availability fields

The bookings table is the source of truth. ``Vehicle.is_available``,
``current_booking_id``, ``booked_from`` and ``booked_until`` are a cache of
it, refreshed by ``update_vehicle_availability`` inside the same
transaction as the booking write that changed them.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import BLOCKING_BOOKING_STATUSES, Booking, Vehicle

logger = logging.getLogger(__name__)

OUT_OF_SERVICE_STATUSES = ("maintenance", "repair", "inactive")


def lock_vehicle(db: Session, vehicle_id: int) -> Optional[Vehicle]:
    """
    Load a vehicle with a row lock (SELECT ... FOR UPDATE).

    Concurrent booking writes for the same vehicle serialize on this lock
    until the surrounding transaction commits or rolls back.
    """
    return db.query(Vehicle).filter(Vehicle.id == vehicle_id).with_for_update().first()


def find_conflicting_bookings(
    db: Session,
    vehicle_id: int,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
) -> list[Booking]:
    """Blocking bookings whose inclusive date range overlaps [start_date, end_date]"""
    query = db.query(Booking).filter(
        Booking.vehicle_id == vehicle_id,
        Booking.status.in_(BLOCKING_BOOKING_STATUSES),
        Booking.start_date <= end_date,
        Booking.end_date >= start_date,
    )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    return query.order_by(Booking.start_date).all()


def check_vehicle_availability(
    db: Session,
    vehicle: Vehicle,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    if vehicle.status in OUT_OF_SERVICE_STATUSES:
        return False
    conflicts = find_conflicting_bookings(db, vehicle.id, start_date, end_date, exclude_booking_id)
    if conflicts:
        logger.info(
            f"🚗 Vehicle {vehicle.id} unavailable {start_date}..{end_date}: "
            f"conflicts with booking(s) {[b.booking_ref for b in conflicts]}"
        )
        return False
    return True


def update_vehicle_availability(db: Session, vehicle: Vehicle, today: Optional[date] = None) -> Vehicle:
    """
    Recompute the cached availability fields of ``vehicle`` from its bookings.

    Does not commit; callers commit as part of their own transaction.
    """
    today = today or date.today()
    db.flush()

    blocking = (
        db.query(Booking)
        .filter(
            Booking.vehicle_id == vehicle.id,
            Booking.status.in_(BLOCKING_BOOKING_STATUSES),
            Booking.end_date >= today,
        )
        .order_by(Booking.start_date)
        .all()
    )

    current = blocking[0] if blocking else None
    vehicle.current_booking_id = current.id if current else None
    vehicle.booked_from = current.start_date if current else None
    vehicle.booked_until = current.end_date if current else None

    has_active = any(b.status == "active" for b in blocking)
    if has_active and vehicle.status not in OUT_OF_SERVICE_STATUSES:
        vehicle.status = "rented"
    elif not has_active and vehicle.status == "rented":
        vehicle.status = "available"

    occupied_today = current is not None and current.start_date <= today
    vehicle.is_available = vehicle.status not in OUT_OF_SERVICE_STATUSES and not occupied_today
    return vehicle
