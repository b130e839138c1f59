"""Invoice domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models_invoice import INVOICE_STATUSES, Invoice
from ...shared.validators import validate_choice


class InvoiceItem(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(1, ge=1)
    unitPrice: float = Field(..., ge=0)


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice. Totals are always computed from items."""

    customerId: int
    bookingId: Optional[int] = None
    invoiceNumber: Optional[str] = Field(None, min_length=3, max_length=50)
    invoiceDate: Optional[date] = None
    dueDate: Optional[date] = None
    status: str = "pending"
    taxRate: float = Field(0, ge=0, le=100)
    notes: Optional[str] = None
    paymentTerms: Optional[str] = Field(None, max_length=255)
    items: list[InvoiceItem] = []

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, INVOICE_STATUSES, "status")


class InvoiceUpdate(BaseModel):
    invoiceDate: Optional[date] = None
    dueDate: Optional[date] = None
    taxRate: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = None
    paymentTerms: Optional[str] = Field(None, max_length=255)
    items: Optional[list[InvoiceItem]] = None


class InvoiceStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, INVOICE_STATUSES, "status")


class InvoiceEmailRequest(BaseModel):
    to: Optional[str] = None
    message: Optional[str] = None


class InvoiceResponse(BaseModel):
    """Schema for invoice response"""

    id: int
    invoiceNumber: str
    invoiceDate: date
    dueDate: date
    customerId: int
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    bookingId: Optional[int] = None
    bookingRef: Optional[str] = None
    status: str
    subtotal: float
    taxRate: float
    tax: float
    total: float
    notes: Optional[str] = None
    paymentTerms: Optional[str] = None
    items: list[InvoiceItem] = []
    sentAt: Optional[datetime] = None
    paidAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_invoice(cls, inv: Invoice) -> "InvoiceResponse":
        return cls(
            id=inv.id,
            invoiceNumber=inv.invoice_number,
            invoiceDate=inv.invoice_date,
            dueDate=inv.due_date,
            customerId=inv.customer_id,
            customerName=inv.customer.full_name if inv.customer else None,
            customerEmail=inv.customer.email if inv.customer else None,
            bookingId=inv.booking_id,
            bookingRef=inv.booking.booking_ref if inv.booking else None,
            status=inv.status,
            subtotal=inv.subtotal,
            taxRate=inv.tax_rate,
            tax=inv.tax,
            total=inv.total,
            notes=inv.notes,
            paymentTerms=inv.payment_terms,
            items=inv.items or [],
            sentAt=inv.sent_at,
            paidAt=inv.paid_at,
            createdAt=inv.created_at,
        )
