from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

VEHICLE_STATUSES = ("available", "rented", "maintenance", "repair", "inactive")
MAINTENANCE_STATUSES = ("ok", "scheduled", "in_progress", "completed", "overdue")
BOOKING_STATUSES = ("pending", "confirmed", "active", "completed", "cancelled")
# Bookings in these states hold the vehicle for their date range
BLOCKING_BOOKING_STATUSES = ("pending", "confirmed", "active")
PAYMENT_STATUSES = ("pending", "paid", "refunded")
BOOKING_SOURCES = ("direct", "n8n", "n8n_voice", "api", "web", "partner")
TICKET_PRIORITIES = ("low", "medium", "high", "critical")
TICKET_STATUSES = ("open", "in_progress", "resolved", "closed")
CALL_STATUSES = ("new", "booked", "canceled", "followup")
REPORT_TYPES = ("bookings", "vehicles", "customers", "revenue", "custom")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default="user")  # user, admin
    created_at = Column(DateTime, server_default=func.now())

    google_integration = relationship(
        "GoogleIntegration", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    license_plate = Column(String(20), unique=True, index=True, nullable=False)
    category = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="available")
    image_url = Column(Text, nullable=True)
    daily_rate = Column(Integer, nullable=False)

    # Specs used by the voice agent search
    transmission = Column(String(20), nullable=True)  # automatic, manual
    fuel_type = Column(String(20), nullable=True)  # gasoline, diesel, hybrid, electric
    seats = Column(Integer, nullable=True)
    doors = Column(Integer, nullable=True)

    # Maintenance tracking
    maintenance_status = Column(String(20), nullable=False, default="ok")
    maintenance_type = Column(String(100), nullable=True)
    maintenance_date = Column(Date, nullable=True)
    maintenance_notes = Column(Text, nullable=True)

    # Denormalized availability, refreshed from the bookings table on every booking write
    is_available = Column(Boolean, nullable=False, default=True)
    current_booking_id = Column(Integer, nullable=True)
    booked_from = Column(Date, nullable=True)
    booked_until = Column(Date, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    bookings = relationship("Booking", back_populates="vehicle")
    pricing = relationship(
        "VehiclePricing", back_populates="vehicle", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        return f"{self.year} {self.make} {self.model}"


class VehiclePricing(Base):
    """Weekly/monthly discount tiers for a vehicle"""

    __tablename__ = "vehicle_pricing"

    id = Column(Integer, primary_key=True, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, unique=True)
    daily_rate = Column(Integer, nullable=False)
    weekly_rate = Column(Integer, nullable=True)
    monthly_rate = Column(Integer, nullable=True)
    insurance_daily_rate = Column(Integer, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    vehicle = relationship("Vehicle", back_populates="pricing")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    driver_license = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    source = Column(String(50), nullable=True, default="direct")
    created_at = Column(DateTime, server_default=func.now())

    bookings = relationship("Booking", back_populates="customer")
    invoices = relationship("Invoice", back_populates="customer")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_ref = Column(String(50), unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    total_amount = Column(Integer, nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default="pending")
    notes = Column(Text, nullable=True)
    source = Column(String(50), nullable=False, default="direct")

    # Integrations
    google_calendar_event_id = Column(String(255), nullable=True)
    n8n_webhook_data = Column(JSON, nullable=True)

    # Pickup
    has_pickup_meeting = Column(Boolean, default=False)
    pickup_location = Column(Text, nullable=True)
    pickup_time = Column(String(10), nullable=True)  # HH:MM
    return_time = Column(String(10), nullable=True)  # HH:MM
    special_requests = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="bookings")
    vehicle = relationship("Vehicle", back_populates="bookings")
    invoices = relationship("Invoice", back_populates="booking")

    @property
    def rental_days(self) -> int:
        return max(1, (self.end_date - self.start_date).days)


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="open")
    priority = Column(String(20), nullable=False, default="medium")
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    attachments = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    resolved_at = Column(DateTime, nullable=True)

    customer = relationship("Customer")
    booking = relationship("Booking")


class N8nCall(Base):
    """Inbound phone call handled by the voice agent / n8n workflow"""

    __tablename__ = "n8n_calls"

    id = Column(Integer, primary_key=True, index=True)
    caller_id = Column(String(100), nullable=True)
    caller_name = Column(String(255), nullable=True)
    caller_phone = Column(String(50), nullable=True)
    call_time = Column(DateTime, server_default=func.now())
    call_duration = Column(Integer, nullable=True)  # seconds
    status = Column(String(20), nullable=False, default="new")
    reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    agent_notes = Column(Text, nullable=True)
    transcription = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ReportTable(Base):
    """Saved column/filter selection over one report data set"""

    __tablename__ = "report_tables"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)
    columns = Column(JSON, nullable=False, default=list)
    filters = Column(JSON, nullable=True, default=dict)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
