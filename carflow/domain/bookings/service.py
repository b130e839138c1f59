"""Booking service - Business logic for bookings

Every write that can change which dates a vehicle is held for runs in one
transaction: lock the vehicle row, re-check overlap, write the booking,
refresh the vehicle's cached availability, commit.
"""

import csv
import logging
import math
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from io import StringIO
from typing import Optional

from dateutil.relativedelta import relativedelta
from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import BOOKING_REF_OFFSET
from ...models import BLOCKING_BOOKING_STATUSES, Booking, Customer, Vehicle
from ...models_invoice import Invoice
from ..customers.service import CustomerService
from ..vehicles.availability import (
    check_vehicle_availability,
    lock_vehicle,
    update_vehicle_availability,
)
from ..vehicles.pricing import calculate_rental_price
from ..vehicles.repository import VehicleRepository
from .repository import BookingRepository
from .schemas import BookingCreate, BookingStatsResponse, BookingUpdate, N8nBookingPayload

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Vehicle is not available for the selected dates"


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    @contextmanager
    def _transaction(self):
        """Commit on success; roll back (releasing row locks) on any error"""
        try:
            yield
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Booking write rejected by database constraint: {e.orig}")
            raise HTTPException(status_code=409, detail="Booking conflicts with an existing record") from e
        except Exception:
            self.db.rollback()
            raise

    def _lock_vehicles(self, *vehicle_ids: int) -> dict[int, Vehicle]:
        # Fixed lock order avoids deadlocks when a booking moves between vehicles
        locked = {}
        for vehicle_id in sorted(set(vehicle_ids)):
            vehicle = lock_vehicle(self.db, vehicle_id)
            if not vehicle:
                raise HTTPException(status_code=404, detail="Vehicle not found")
            locked[vehicle_id] = vehicle
        return locked

    def _ensure_available(
        self, vehicle: Vehicle, start_date: date, end_date: date, exclude_booking_id: Optional[int] = None
    ) -> None:
        if not check_vehicle_availability(self.db, vehicle, start_date, end_date, exclude_booking_id):
            raise HTTPException(status_code=409, detail=UNAVAILABLE_MESSAGE)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_bookings(self, status: Optional[str] = None, source: Optional[str] = None) -> list[Booking]:
        return self.repo.get_bookings(self.db, status, source)

    def get_recent_bookings(self, limit: int = 5) -> list[Booking]:
        return self.repo.get_recent_bookings(self.db, limit)

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking_by_id(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_booking_by_ref(self, booking_ref: str) -> Booking:
        booking = self.repo.get_booking_by_ref(self.db, booking_ref)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_calendar(self, start_date: date, end_date: date) -> list[Booking]:
        return self.repo.get_bookings_in_range(self.db, start_date, end_date)

    def get_stats(self, now: Optional[datetime] = None) -> BookingStatsResponse:
        now = now or datetime.utcnow()
        today = datetime(now.year, now.month, now.day)
        one_month_ago = now - relativedelta(months=1)
        two_months_ago = one_month_ago - relativedelta(months=1)

        last_month = self.repo.count_created_between(self.db, one_month_ago, today)
        previous_month = self.repo.count_created_between(self.db, two_months_ago, one_month_ago)
        recent_increase = (
            math.floor((last_month - previous_month) / previous_month * 100 + 0.5) if previous_month else 0
        )

        return BookingStatsResponse(
            totalBookings=self.repo.count_bookings(self.db),
            recentIncrease=recent_increase,
            todayBookings=self.repo.count_created_between(self.db, today, today + timedelta(days=1)),
            activeBookings=self.repo.count_by_status(self.db, "active"),
            revenue=self.repo.paid_revenue(self.db),
        )

    def export_bookings_csv(self, status: Optional[str] = None, source: Optional[str] = None) -> StreamingResponse:
        """Export bookings as CSV"""
        bookings = self.repo.get_bookings(self.db, status, source)

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(
            [
                "Booking Ref",
                "Customer",
                "Customer Email",
                "Vehicle",
                "License Plate",
                "Start Date",
                "End Date",
                "Status",
                "Payment Status",
                "Total Amount",
                "Source",
                "Created At",
            ]
        )
        for b in bookings:
            writer.writerow(
                [
                    b.booking_ref,
                    b.customer.full_name if b.customer else "",
                    b.customer.email if b.customer else "",
                    f"{b.vehicle.make} {b.vehicle.model}" if b.vehicle else "",
                    b.vehicle.license_plate if b.vehicle else "",
                    b.start_date.isoformat(),
                    b.end_date.isoformat(),
                    b.status,
                    b.payment_status,
                    b.total_amount,
                    b.source,
                    b.created_at.strftime("%Y-%m-%d %H:%M:%S") if b.created_at else "",
                ]
            )

        output.seek(0)
        filename = f"bookings_export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        logger.info(f"✅ CSV export successful: {filename} ({len(bookings)} bookings)")

        return StreamingResponse(
            iter([output.getvalue()]),
            media_type="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Cache-Control": "no-cache",
            },
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert_booking(
        self,
        customer: Customer,
        vehicle_id: int,
        start_date: date,
        end_date: date,
        booking_ref: Optional[str] = None,
        total_amount: Optional[int] = None,
        status: str = "pending",
        **fields,
    ) -> Booking:
        """Insert inside an open transaction. Caller commits."""
        if end_date < start_date:
            raise HTTPException(status_code=400, detail="endDate must be on or after startDate")

        vehicle = self._lock_vehicles(vehicle_id)[vehicle_id]
        if status in BLOCKING_BOOKING_STATUSES:
            self._ensure_available(vehicle, start_date, end_date)

        if booking_ref and self.repo.get_booking_by_ref(self.db, booking_ref):
            raise HTTPException(status_code=409, detail=f"Booking reference {booking_ref} already exists")

        if total_amount is None:
            total_amount = calculate_rental_price(vehicle, start_date, end_date)["totalPrice"]

        booking = Booking(
            # Placeholder until the id is known
            booking_ref=booking_ref or f"TMP-{uuid.uuid4().hex[:16]}",
            customer_id=customer.id,
            vehicle_id=vehicle.id,
            start_date=start_date,
            end_date=end_date,
            status=status,
            total_amount=total_amount,
            **fields,
        )
        self.db.add(booking)
        self.db.flush()
        if not booking_ref:
            booking.booking_ref = f"BK-{BOOKING_REF_OFFSET + booking.id}"

        update_vehicle_availability(self.db, vehicle)
        return booking

    def create_booking(self, data: BookingCreate) -> Booking:
        with self._transaction():
            customer = self.db.query(Customer).filter(Customer.id == data.customerId).first()
            if not customer:
                raise HTTPException(status_code=404, detail="Customer not found")

            booking = self._insert_booking(
                customer,
                data.vehicleId,
                data.startDate,
                data.endDate,
                booking_ref=data.bookingRef,
                total_amount=data.totalAmount,
                status=data.status,
                payment_status=data.paymentStatus,
                source=data.source,
                notes=data.notes,
                pickup_location=data.pickupLocation,
                pickup_time=data.pickupTime,
                return_time=data.returnTime,
                special_requests=data.specialRequests,
            )

        self.db.refresh(booking)
        logger.info(
            f"✅ Booking {booking.booking_ref} created: vehicle {booking.vehicle_id}, "
            f"{booking.start_date}..{booking.end_date}, source={booking.source}"
        )
        return booking

    def create_booking_for(
        self,
        customer: Customer,
        vehicle_id: int,
        start_date: date,
        end_date: date,
        **fields,
    ) -> Booking:
        """Create a booking for an already resolved (possibly uncommitted) customer"""
        with self._transaction():
            booking = self._insert_booking(customer, vehicle_id, start_date, end_date, **fields)
        self.db.refresh(booking)
        logger.info(f"✅ Booking {booking.booking_ref} created via {booking.source}")
        return booking

    def _reschedule(
        self,
        booking: Booking,
        vehicle_id: Optional[int],
        start_date: Optional[date],
        end_date: Optional[date],
    ) -> None:
        """Move a booking to new dates and/or vehicle inside an open transaction"""
        new_vehicle_id = vehicle_id or booking.vehicle_id
        new_start = start_date or booking.start_date
        new_end = end_date or booking.end_date
        if new_end < new_start:
            raise HTTPException(status_code=400, detail="endDate must be on or after startDate")

        changed = (
            new_vehicle_id != booking.vehicle_id
            or new_start != booking.start_date
            or new_end != booking.end_date
        )
        if not changed:
            return

        old_vehicle_id = booking.vehicle_id
        vehicles = self._lock_vehicles(old_vehicle_id, new_vehicle_id)
        if booking.status in BLOCKING_BOOKING_STATUSES:
            self._ensure_available(vehicles[new_vehicle_id], new_start, new_end, exclude_booking_id=booking.id)

        booking.vehicle_id = new_vehicle_id
        booking.start_date = new_start
        booking.end_date = new_end
        for vehicle in vehicles.values():
            update_vehicle_availability(self.db, vehicle)

    def update_booking(self, booking_id: int, data: BookingUpdate) -> Booking:
        with self._transaction():
            booking = self.get_booking(booking_id)
            self._reschedule(booking, data.vehicleId, data.startDate, data.endDate)

            updates = {
                "total_amount": data.totalAmount,
                "payment_status": data.paymentStatus,
                "notes": data.notes,
                "pickup_location": data.pickupLocation,
                "pickup_time": data.pickupTime,
                "return_time": data.returnTime,
                "special_requests": data.specialRequests,
            }
            for key, value in updates.items():
                if value is not None:
                    setattr(booking, key, value)

        self.db.refresh(booking)
        return booking

    def update_status(self, booking_id: int, status: str) -> Booking:
        with self._transaction():
            booking = self.get_booking(booking_id)
            vehicle = self._lock_vehicles(booking.vehicle_id)[booking.vehicle_id]

            # Re-activating a released booking must not collide with bookings made since
            if status in BLOCKING_BOOKING_STATUSES and booking.status not in BLOCKING_BOOKING_STATUSES:
                self._ensure_available(vehicle, booking.start_date, booking.end_date, exclude_booking_id=booking.id)

            logger.info(f"📋 Booking {booking.booking_ref} status {booking.status} → {status}")
            booking.status = status
            update_vehicle_availability(self.db, vehicle)

        self.db.refresh(booking)
        return booking

    def delete_booking(self, booking_id: int) -> dict:
        with self._transaction():
            booking = self.get_booking(booking_id)
            if self.db.query(Invoice).filter(Invoice.booking_id == booking_id).first():
                raise HTTPException(status_code=409, detail="Booking has invoices and cannot be deleted")
            vehicle = self._lock_vehicles(booking.vehicle_id)[booking.vehicle_id]
            self.repo.delete_booking(self.db, booking)
            update_vehicle_availability(self.db, vehicle)
        return {"message": "Booking deleted"}

    # ------------------------------------------------------------------
    # n8n
    # ------------------------------------------------------------------

    def upsert_from_n8n(self, payload: N8nBookingPayload) -> tuple[Booking, bool]:
        """
        Update the booking named by ``bookingRef`` or create a new one.

        Returns (booking, created).
        """
        raw = payload.model_dump(mode="json", exclude_none=True)

        if payload.bookingRef:
            existing = self.repo.get_booking_by_ref(self.db, payload.bookingRef)
            if existing:
                with self._transaction():
                    self._reschedule(existing, payload.vehicleId, payload.startDate, payload.endDate)
                    updates = {
                        "total_amount": payload.totalAmount,
                        "payment_status": payload.paymentStatus,
                        "notes": payload.notes,
                        "pickup_location": payload.pickupLocation,
                        "special_requests": payload.specialRequests,
                        "google_calendar_event_id": payload.googleCalendarEventId,
                    }
                    for key, value in updates.items():
                        if value is not None:
                            setattr(existing, key, value)
                    existing.n8n_webhook_data = raw
                if payload.status and payload.status != existing.status:
                    existing = self.update_status(existing.id, payload.status)
                self.db.refresh(existing)
                logger.info(f"🔄 Booking {existing.booking_ref} updated from n8n")
                return existing, False

        customer = self._resolve_n8n_customer(payload)

        start_date = payload.startDate or date.today()
        end_date = payload.endDate or start_date + timedelta(days=1)

        vehicle_id = payload.vehicleId
        if vehicle_id is None:
            candidates = VehicleRepository.get_available_vehicles(self.db, start_date, end_date)
            if not candidates:
                self.db.rollback()
                raise HTTPException(status_code=409, detail="No vehicles available for the selected dates")
            vehicle_id = candidates[0].id

        booking = self.create_booking_for(
            customer,
            vehicle_id,
            start_date,
            end_date,
            booking_ref=payload.bookingRef,
            total_amount=payload.totalAmount,
            status=payload.status or "pending",
            payment_status=payload.paymentStatus or "pending",
            notes=payload.notes or "Created from n8n webhook",
            source="n8n",
            pickup_location=payload.pickupLocation,
            special_requests=payload.specialRequests,
            google_calendar_event_id=payload.googleCalendarEventId,
            n8n_webhook_data=raw,
        )
        return booking, True

    def _resolve_n8n_customer(self, payload: N8nBookingPayload) -> Customer:
        if payload.customerId is not None:
            customer = self.db.query(Customer).filter(Customer.id == payload.customerId).first()
            if not customer:
                raise HTTPException(status_code=404, detail="Customer not found")
            return customer

        customer = None
        if payload.customerEmail:
            customer = CustomerService(self.db).find_or_create_customer(
                payload.customerName,
                email=payload.customerEmail,
                phone=payload.customerPhone,
                driver_license=payload.driverLicense,
            )
            if customer is not None and payload.customerAddress and not customer.address:
                customer.address = payload.customerAddress
        if customer is None:
            raise HTTPException(
                status_code=400,
                detail="Invalid booking data from n8n: customerId or customerEmail with customerName is required",
            )
        return customer
