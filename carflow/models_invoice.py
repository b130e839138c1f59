"""
Invoice Models for rental billing
"""

from sqlalchemy import JSON, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

INVOICE_STATUSES = ("draft", "pending", "sent", "paid", "overdue", "cancelled")


class Invoice(Base):
    """Invoice issued to a customer, optionally tied to a booking"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, index=True)

    status = Column(String(20), nullable=False, default="pending")

    # Pricing - recomputed from items on every write
    subtotal = Column(Float, nullable=False, default=0)
    tax_rate = Column(Float, nullable=False, default=0)  # percent
    tax = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False, default=0)

    notes = Column(Text, nullable=True)
    payment_terms = Column(String(255), nullable=True)
    # [{"description": str, "quantity": int, "unitPrice": float}]
    items = Column(JSON, nullable=False, default=list)

    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="invoices")
    booking = relationship("Booking", back_populates="invoices")
