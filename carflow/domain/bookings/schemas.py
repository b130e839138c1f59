"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...models import BOOKING_SOURCES, BOOKING_STATUSES, PAYMENT_STATUSES, Booking
from ...shared.validators import validate_choice

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class BookingCreate(BaseModel):
    """Schema for creating a booking"""

    customerId: int
    vehicleId: int
    startDate: date
    endDate: date
    bookingRef: Optional[str] = Field(None, min_length=3, max_length=50)
    status: str = "pending"
    totalAmount: Optional[int] = Field(None, ge=0)
    paymentStatus: str = "pending"
    source: str = "direct"
    notes: Optional[str] = None
    pickupLocation: Optional[str] = None
    pickupTime: Optional[str] = Field(None, pattern=TIME_PATTERN)
    returnTime: Optional[str] = Field(None, pattern=TIME_PATTERN)
    specialRequests: Optional[str] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, BOOKING_STATUSES, "status")

    @field_validator("paymentStatus")
    @classmethod
    def check_payment_status(cls, v):
        return validate_choice(v, PAYMENT_STATUSES, "paymentStatus")

    @field_validator("source")
    @classmethod
    def check_source(cls, v):
        return validate_choice(v, BOOKING_SOURCES, "source")

    @model_validator(mode="after")
    def check_dates(self):
        if self.endDate < self.startDate:
            raise ValueError("endDate must be on or after startDate")
        return self


class BookingUpdate(BaseModel):
    """Partial update - dates and vehicle are re-checked for availability"""

    vehicleId: Optional[int] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    totalAmount: Optional[int] = Field(None, ge=0)
    paymentStatus: Optional[str] = None
    notes: Optional[str] = None
    pickupLocation: Optional[str] = None
    pickupTime: Optional[str] = Field(None, pattern=TIME_PATTERN)
    returnTime: Optional[str] = Field(None, pattern=TIME_PATTERN)
    specialRequests: Optional[str] = None

    @field_validator("paymentStatus")
    @classmethod
    def check_payment_status(cls, v):
        return validate_choice(v, PAYMENT_STATUSES, "paymentStatus")


class BookingStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, BOOKING_STATUSES, "status")


class BookingCustomerSummary(BaseModel):
    id: int
    fullName: str
    email: str
    phone: Optional[str] = None


class BookingVehicleSummary(BaseModel):
    id: int
    make: str
    model: str
    year: int
    licensePlate: str
    category: str


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    bookingRef: str
    customerId: int
    vehicleId: int
    startDate: date
    endDate: date
    status: str
    totalAmount: int
    paymentStatus: str
    source: str
    notes: Optional[str] = None
    googleCalendarEventId: Optional[str] = None
    hasPickupMeeting: bool = False
    pickupLocation: Optional[str] = None
    pickupTime: Optional[str] = None
    returnTime: Optional[str] = None
    specialRequests: Optional[str] = None
    createdAt: Optional[datetime] = None
    customer: Optional[BookingCustomerSummary] = None
    vehicle: Optional[BookingVehicleSummary] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_booking(cls, b: Booking) -> "BookingResponse":
        customer = b.customer
        vehicle = b.vehicle
        return cls(
            id=b.id,
            bookingRef=b.booking_ref,
            customerId=b.customer_id,
            vehicleId=b.vehicle_id,
            startDate=b.start_date,
            endDate=b.end_date,
            status=b.status,
            totalAmount=b.total_amount or 0,
            paymentStatus=b.payment_status,
            source=b.source,
            notes=b.notes,
            googleCalendarEventId=b.google_calendar_event_id,
            hasPickupMeeting=bool(b.has_pickup_meeting),
            pickupLocation=b.pickup_location,
            pickupTime=b.pickup_time,
            returnTime=b.return_time,
            specialRequests=b.special_requests,
            createdAt=b.created_at,
            customer=(
                BookingCustomerSummary(
                    id=customer.id, fullName=customer.full_name, email=customer.email, phone=customer.phone
                )
                if customer
                else None
            ),
            vehicle=(
                BookingVehicleSummary(
                    id=vehicle.id,
                    make=vehicle.make,
                    model=vehicle.model,
                    year=vehicle.year,
                    licensePlate=vehicle.license_plate,
                    category=vehicle.category,
                )
                if vehicle
                else None
            ),
        )


class BookingStatsResponse(BaseModel):
    totalBookings: int
    recentIncrease: int
    todayBookings: int
    activeBookings: int
    revenue: int


class N8nBookingPayload(BaseModel):
    """Booking data pushed by an n8n workflow. Unknown keys are kept in n8n_webhook_data."""

    model_config = {"extra": "allow"}

    bookingRef: Optional[str] = None
    customerId: Optional[int] = None
    customerEmail: Optional[str] = None
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    customerAddress: Optional[str] = None
    driverLicense: Optional[str] = None
    vehicleId: Optional[int] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    status: Optional[str] = None
    totalAmount: Optional[int] = Field(None, ge=0)
    paymentStatus: Optional[str] = None
    notes: Optional[str] = None
    pickupLocation: Optional[str] = None
    specialRequests: Optional[str] = None
    googleCalendarEventId: Optional[str] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, BOOKING_STATUSES, "status")

    @field_validator("paymentStatus")
    @classmethod
    def check_payment_status(cls, v):
        return validate_choice(v, PAYMENT_STATUSES, "paymentStatus")
