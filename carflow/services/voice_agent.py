"""
Voice Agent Service
Answers ElevenLabs tool calls against the fleet and bookings tables.

Every answer is a plain dict the agent can read out: failures are reported
with success=False and a spoken-style message instead of an HTTP error.
"""
import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.bookings.repository import BookingRepository
from ..domain.bookings.schemas import BookingUpdate
from ..domain.bookings.service import BookingService
from ..domain.customers.service import CustomerService
from ..domain.vehicles.availability import OUT_OF_SERVICE_STATUSES, check_vehicle_availability
from ..domain.vehicles.pricing import calculate_rental_price
from ..domain.vehicles.repository import VehicleRepository
from ..models import BLOCKING_BOOKING_STATUSES, Booking, Customer, N8nCall, Vehicle
from .voice_agent_parsing import normalize_booking_ref, normalize_request

logger = logging.getLogger(__name__)

CALL_STATUS_BOOKED = "booked"
CALL_STATUS_CANCELED = "canceled"
CALL_STATUS_FOLLOWUP = "followup"
CALL_STATUS_NEW = "new"


class VoiceAgentError(Exception):
    """A request the agent should explain to the caller"""


def _money(amount: Any) -> str:
    return f"${amount:,.0f}" if isinstance(amount, (int, float)) else str(amount)


def _spoken_date(value: date) -> str:
    return value.strftime("%B %d, %Y").replace(" 0", " ")


def vehicle_summary(vehicle: Vehicle) -> dict[str, Any]:
    return {
        "id": vehicle.id,
        "name": vehicle.display_name,
        "make": vehicle.make,
        "model": vehicle.model,
        "year": vehicle.year,
        "category": vehicle.category,
        "pricePerDay": vehicle.daily_rate,
        "transmission": vehicle.transmission,
        "fuelType": vehicle.fuel_type,
        "seats": vehicle.seats,
        "doors": vehicle.doors,
    }


def booking_summary(booking: Booking) -> dict[str, Any]:
    return {
        "bookingRef": booking.booking_ref,
        "customerName": booking.customer.full_name if booking.customer else None,
        "vehicle": booking.vehicle.display_name if booking.vehicle else None,
        "startDate": booking.start_date.isoformat(),
        "endDate": booking.end_date.isoformat(),
        "pickupTime": booking.pickup_time,
        "returnTime": booking.return_time,
        "pickupLocation": booking.pickup_location,
        "status": booking.status,
        "totalAmount": booking.total_amount,
        "paymentStatus": booking.payment_status,
    }


def _require_dates(start: Any, end: Any, what: str = "those dates") -> tuple[date, date]:
    if not isinstance(start, date) or not isinstance(end, date):
        raise VoiceAgentError(
            f"I couldn't understand {what}. Could you tell me the pickup and return dates again, "
            "for example June 1st to June 5th?"
        )
    if end < start:
        raise VoiceAgentError("The return date needs to be on or after the pickup date.")
    return start, end


class VoiceAgentService:
    """Service layer for voice agent tool calls"""

    def __init__(self, db: Session):
        self.db = db
        self.bookings = BookingService(db)

    def handle(self, body: dict) -> dict[str, Any]:
        request = normalize_request(body)
        request_type = request["requestType"]
        logger.info(f"🎙️ Voice agent request: {request_type} (action={request.get('action')})")

        handler = getattr(self, f"_handle_{request_type}")
        call_status = CALL_STATUS_NEW
        booking_id = None
        try:
            result, call_status, booking_id = handler(request)
            result = {"success": True, **result}
        except VoiceAgentError as e:
            result = {"success": False, "message": str(e)}
            call_status = CALL_STATUS_FOLLOWUP
        except HTTPException as e:
            self.db.rollback()
            result = {"success": False, "message": self._explain(e)}
            call_status = CALL_STATUS_FOLLOWUP
        except ValueError as e:
            self.db.rollback()
            result = {"success": False, "message": f"Sorry, something in that request wasn't valid: {e}"}
            call_status = CALL_STATUS_FOLLOWUP

        if request.get("validationErrors"):
            result["validationErrors"] = request["validationErrors"]

        result["requestType"] = request_type
        result["timestamp"] = datetime.utcnow().isoformat()

        self._log_call(body, request, result, call_status, booking_id)
        return result

    @staticmethod
    def _explain(error: HTTPException) -> str:
        if error.status_code == 409:
            return (
                "I'm sorry, that vehicle is already booked for those dates. "
                "Would you like me to look for another vehicle or different dates?"
            )
        if error.status_code == 404:
            return f"I'm sorry, I couldn't find that. {error.detail}."
        return f"I'm sorry, I couldn't complete that request: {error.detail}."

    # ------------------------------------------------------------------
    # Call log
    # ------------------------------------------------------------------

    def _log_call(
        self,
        body: dict,
        request: dict,
        result: dict,
        status: str,
        booking_id: Optional[int],
    ) -> None:
        caller = (
            request.get("bookingData")
            or request.get("lookupData")
            or request.get("modificationData")
            or request.get("cancellationData")
            or {}
        )
        call = N8nCall(
            caller_id=str(body.get("caller_id") or body.get("conversation_id") or "") or None,
            caller_name=caller.get("customer_name"),
            caller_phone=caller.get("phone"),
            call_duration=body.get("call_duration") if isinstance(body.get("call_duration"), int) else None,
            status=status,
            reason=request["requestType"],
            notes=result.get("message"),
            booking_id=booking_id,
            transcription=body.get("transcript") or body.get("transcription"),
        )
        try:
            self.db.add(call)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to log voice agent call: {e}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _find_vehicles(self, filters: dict, start: Optional[date], end: Optional[date]) -> list[Vehicle]:
        if start and end:
            vehicles = VehicleRepository.get_available_vehicles(self.db, start, end)
        else:
            vehicles = (
                self.db.query(Vehicle)
                .filter(Vehicle.status == "available", Vehicle.maintenance_status == "ok")
                .order_by(Vehicle.daily_rate, Vehicle.id)
                .all()
            )

        def matches(vehicle: Vehicle) -> bool:
            if filters.get("make") and filters["make"] not in vehicle.make.lower():
                return False
            if filters.get("model") and filters["model"] not in vehicle.model.lower():
                return False
            if filters.get("category") and filters["category"] not in vehicle.category.lower():
                return False
            if filters.get("min_year") and vehicle.year < filters["min_year"]:
                return False
            if filters.get("max_year") and vehicle.year > filters["max_year"]:
                return False
            if filters.get("transmission") and (vehicle.transmission or "").lower() != filters["transmission"]:
                return False
            if filters.get("fuel_type") and filters["fuel_type"] not in (vehicle.fuel_type or "").lower():
                return False
            if filters.get("seats") and (vehicle.seats or 0) < filters["seats"]:
                return False
            if filters.get("doors") and (vehicle.doors or 0) < filters["doors"]:
                return False
            return True

        return [v for v in vehicles if matches(v)]

    def _resolve_vehicle(self, data: dict, start: Optional[date], end: Optional[date]) -> Vehicle:
        if data.get("vehicle_id"):
            vehicle = VehicleRepository.get_vehicle_by_id(self.db, data["vehicle_id"])
            if not vehicle:
                raise VoiceAgentError("I couldn't find that vehicle. Would you like to hear what's available?")
            return vehicle

        filters = {
            "make": data.get("vehicle_make"),
            "model": data.get("vehicle_model"),
            "category": data.get("category"),
        }
        candidates = self._find_vehicles(filters, start, end)
        if not candidates:
            raise VoiceAgentError(
                "I'm sorry, I couldn't find an available vehicle matching that request. "
                "Would you like to try a different vehicle or dates?"
            )
        return candidates[0]

    def _find_customers_by_phone(self, phone: str) -> list[Customer]:
        digits = re.sub(r"\D", "", phone)
        if len(digits) < 7:
            return []
        customers = self.db.query(Customer).filter(Customer.phone.isnot(None)).all()
        # Formatting varies between callers; compare the trailing digits
        return [c for c in customers if re.sub(r"\D", "", c.phone).endswith(digits[-10:])]

    def _find_bookings(self, data: dict) -> list[Booking]:
        booking_ref = normalize_booking_ref(data.get("booking_reference"))
        if booking_ref:
            booking = BookingRepository.get_booking_by_ref(self.db, booking_ref)
            return [booking] if booking else []

        customer_ids: list[int] = []
        if data.get("phone"):
            customer_ids = [c.id for c in self._find_customers_by_phone(str(data["phone"]))]
        if not customer_ids and data.get("customer_name"):
            pattern = f"%{str(data['customer_name']).strip().lower()}%"
            customer_ids = [
                c.id
                for c in self.db.query(Customer).filter(func.lower(Customer.full_name).like(pattern)).all()
            ]
        if not customer_ids:
            return []

        return (
            self.db.query(Booking)
            .filter(Booking.customer_id.in_(customer_ids))
            .order_by(Booking.start_date.desc(), Booking.id.desc())
            .all()
        )

    def _find_changeable_booking(self, data: dict) -> Booking:
        if not (data.get("booking_reference") or data.get("phone") or data.get("customer_name")):
            raise VoiceAgentError(
                "To find your booking I need your booking reference, or the name or phone number it was made under."
            )
        bookings = [b for b in self._find_bookings(data) if b.status in BLOCKING_BOOKING_STATUSES]
        if not bookings:
            raise VoiceAgentError(
                "I couldn't find an open booking with those details. Could you check the booking reference?"
            )
        # Latest pickup date first
        return bookings[0]

    # ------------------------------------------------------------------
    # Handlers: each returns (result, call status, booking id)
    # ------------------------------------------------------------------

    def _handle_vehicles(self, request: dict):
        filters = request["filters"]
        start, end = filters.get("start_date"), filters.get("end_date")
        if start is not None or end is not None:
            start, end = _require_dates(start, end)

        vehicles = self._find_vehicles(filters, start, end)
        if not vehicles:
            message = "I'm sorry, I couldn't find any available vehicles matching your criteria."
        else:
            listed = ", ".join(f"a {v.display_name} at {_money(v.daily_rate)} per day" for v in vehicles[:3])
            message = f"I found {len(vehicles)} available vehicle{'s' if len(vehicles) != 1 else ''}: {listed}."
            if len(vehicles) > 3:
                message += " Would you like to hear more options?"

        return (
            {"message": message, "count": len(vehicles), "vehicles": [vehicle_summary(v) for v in vehicles]},
            CALL_STATUS_NEW,
            None,
        )

    def _handle_pricing(self, request: dict):
        query = request["priceQuery"]
        start = query.get("start_date")
        end = query.get("end_date")
        if start is None and end is None and query.get("rental_days"):
            start = date.today()
            end = start + timedelta(days=query["rental_days"])
        elif start is not None and end is None and query.get("rental_days"):
            if isinstance(start, date):
                end = start + timedelta(days=query["rental_days"])
        start, end = _require_dates(start, end, "the rental dates")

        vehicle = self._resolve_vehicle(query, None, None)
        quote = calculate_rental_price(vehicle, start, end, include_insurance=query["include_insurance"])

        message = (
            f"The {vehicle.display_name} for {quote['days']} day{'s' if quote['days'] != 1 else ''} "
            f"comes to {_money(quote['totalPrice'])}"
        )
        if quote["insurance"]:
            message += f", including {_money(quote['insurance'])} for insurance"
        message += "."

        return {"message": message, "quote": quote}, CALL_STATUS_NEW, None

    def _handle_booking(self, request: dict):
        if request.get("validationErrors"):
            raise VoiceAgentError(request["message"])

        data = request["bookingData"]
        start, end = _require_dates(data["start_date"], data["end_date"])
        if start < date.today():
            raise VoiceAgentError("The pickup date is in the past. Which date would you like to pick up the car?")

        vehicle = self._resolve_vehicle(data, start, end)

        customer = CustomerService(self.db).find_or_create_customer(
            data["customer_name"],
            email=data.get("email"),
            phone=str(data["phone"]),
            driver_license=data.get("driver_license"),
            source="n8n_voice",
            notes="Created from voice agent call",
        )
        if customer is None:
            raise VoiceAgentError("I need your full name and phone number to make the booking.")

        notes = "Booked by phone through the voice agent"
        if data.get("return_location"):
            notes += f". Return location: {data['return_location']}"

        booking = self.bookings.create_booking_for(
            customer,
            vehicle.id,
            start,
            end,
            status="confirmed",
            source="n8n_voice",
            notes=notes,
            pickup_location=data.get("pickup_location"),
            pickup_time=data["pickup_time"],
            return_time=data["return_time"],
            special_requests=data.get("special_requests"),
        )

        message = (
            f"Your booking is confirmed. Your reference is {booking.booking_ref}: "
            f"the {vehicle.display_name} from {_spoken_date(start)} at {booking.pickup_time} "
            f"to {_spoken_date(end)} at {booking.return_time}, for a total of {_money(booking.total_amount)}."
        )
        return {"message": message, "booking": booking_summary(booking)}, CALL_STATUS_BOOKED, booking.id

    def _handle_booking_lookup(self, request: dict):
        data = request["lookupData"]
        if not any(data.values()):
            raise VoiceAgentError(
                "To look up your booking I need your booking reference, or the name or phone number it was made under."
            )

        bookings = self._find_bookings(data)
        if not bookings:
            raise VoiceAgentError("I couldn't find a booking with those details. Could you check the booking reference?")

        first = bookings[0]
        message = (
            f"I found booking {first.booking_ref} for the "
            f"{first.vehicle.display_name if first.vehicle else 'vehicle'} "
            f"from {_spoken_date(first.start_date)} to {_spoken_date(first.end_date)}. Its status is {first.status}."
        )
        if len(bookings) > 1:
            message += f" There are {len(bookings) - 1} other bookings under the same details."

        return (
            {"message": message, "bookings": [booking_summary(b) for b in bookings]},
            CALL_STATUS_NEW,
            first.id,
        )

    def _handle_availability_check(self, request: dict):
        query = request["availabilityQuery"]
        start, end = _require_dates(query.get("start_date"), query.get("end_date"))

        vehicle_ids = list(query.get("vehicle_ids") or [])
        if query.get("vehicle_id"):
            vehicle_ids.append(query["vehicle_id"])

        if vehicle_ids:
            vehicles = self.db.query(Vehicle).filter(Vehicle.id.in_(vehicle_ids)).order_by(Vehicle.id).all()
            results = [
                {**vehicle_summary(v), "available": check_vehicle_availability(self.db, v, start, end)}
                for v in vehicles
            ]
        else:
            available = self._find_vehicles(query, start, end)
            results = [{**vehicle_summary(v), "available": True} for v in available]

        free = [r for r in results if r["available"]]
        period = f"from {_spoken_date(start)} to {_spoken_date(end)}"
        if not results:
            message = f"I'm sorry, I couldn't find any matching vehicles {period}."
        elif len(vehicle_ids) == 1 and len(results) == 1:
            status = "is available" if free else "is not available"
            message = f"The {results[0]['name']} {status} {period}."
        else:
            message = f"{len(free)} of the vehicles you asked about are available {period}." if vehicle_ids else (
                f"I found {len(free)} available vehicle{'s' if len(free) != 1 else ''} {period}."
            )

        return {"message": message, "vehicles": results}, CALL_STATUS_NEW, None

    def _handle_booking_modification(self, request: dict):
        data = request["modificationData"]
        booking = self._find_changeable_booking(data)

        new_start = data.get("new_start_date")
        new_end = data.get("new_end_date")
        if new_start is not None or new_end is not None:
            start, end = _require_dates(new_start or booking.start_date, new_end or booking.end_date, "the new dates")
        else:
            start, end = booking.start_date, booking.end_date

        vehicle_id = data.get("new_vehicle_id") or booking.vehicle_id
        changes_dates = (start, end, vehicle_id) != (booking.start_date, booking.end_date, booking.vehicle_id)
        if not changes_dates and not data.get("new_pickup_location") and not data.get("new_special_requests"):
            raise VoiceAgentError("What would you like to change about your booking?")

        total_amount = None
        if changes_dates:
            vehicle = VehicleRepository.get_vehicle_by_id(self.db, vehicle_id)
            if not vehicle:
                raise VoiceAgentError("I couldn't find that vehicle. Would you like to hear what's available?")
            if vehicle.status in OUT_OF_SERVICE_STATUSES:
                raise VoiceAgentError(f"The {vehicle.display_name} is currently out of service.")
            total_amount = calculate_rental_price(vehicle, start, end)["totalPrice"]

        booking = self.bookings.update_booking(
            booking.id,
            BookingUpdate(
                vehicleId=vehicle_id,
                startDate=start,
                endDate=end,
                totalAmount=total_amount,
                pickupLocation=data.get("new_pickup_location"),
                specialRequests=data.get("new_special_requests"),
            ),
        )

        message = (
            f"Your booking {booking.booking_ref} has been updated: the {booking.vehicle.display_name} "
            f"from {_spoken_date(booking.start_date)} to {_spoken_date(booking.end_date)}, "
            f"total {_money(booking.total_amount)}."
        )
        return {"message": message, "booking": booking_summary(booking)}, CALL_STATUS_BOOKED, booking.id

    def _handle_booking_cancellation(self, request: dict):
        data = request["cancellationData"]
        booking = self._find_changeable_booking(data)

        reason = data.get("cancellation_reason")
        if reason:
            booking.notes = f"{booking.notes}\nCancelled by caller: {reason}" if booking.notes else (
                f"Cancelled by caller: {reason}"
            )
        booking = self.bookings.update_status(booking.id, "cancelled")

        message = f"Your booking {booking.booking_ref} has been cancelled."
        return {"message": message, "booking": booking_summary(booking)}, CALL_STATUS_CANCELED, booking.id

    def _handle_natural_language(self, request: dict):
        return (
            {"message": request["message"], "naturalLanguageQuery": request["naturalLanguageQuery"]},
            CALL_STATUS_NEW,
            None,
        )
