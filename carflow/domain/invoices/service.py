"""Invoice service - Business logic for invoices"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...models import Booking, Customer, User
from ...models_invoice import Invoice
from ...services import google_oauth
from ...services.google_docs_service import send_email
from ...services.invoice_pdf_generator import generate_invoice_pdf
from .repository import InvoiceRepository
from .schemas import InvoiceCreate, InvoiceEmailRequest, InvoiceItem, InvoiceUpdate

logger = logging.getLogger(__name__)

PAYMENT_DUE_DAYS = 30


def compute_totals(items: list[dict], tax_rate: float) -> tuple[float, float, float]:
    """(subtotal, tax, total) rounded to cents"""
    subtotal = round(sum(item["quantity"] * item["unitPrice"] for item in items), 2)
    tax = round(subtotal * tax_rate / 100, 2)
    return subtotal, tax, round(subtotal + tax, 2)


def booking_line_item(booking: Booking) -> dict:
    vehicle = booking.vehicle
    label = f"{vehicle.make} {vehicle.model}" if vehicle else "vehicle"
    return InvoiceItem(
        description=f"Vehicle rental {label} ({booking.start_date.isoformat()} to {booking.end_date.isoformat()})",
        quantity=1,
        unitPrice=booking.total_amount or 0,
    ).model_dump()


class InvoiceService:
    """Service layer for invoice business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()

    def get_invoices(self, status: Optional[str] = None) -> list[Invoice]:
        return self.repo.get_invoices(self.db, status)

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.repo.get_invoice_by_id(self.db, invoice_id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Invoice not found")
        return invoice

    def get_customer_invoices(self, customer_id: int) -> list[Invoice]:
        if not self.db.query(Customer).filter(Customer.id == customer_id).first():
            raise HTTPException(status_code=404, detail="Customer not found")
        return self.repo.get_invoices_by_customer(self.db, customer_id)

    def get_booking_invoices(self, booking_id: int) -> list[Invoice]:
        if not self.db.query(Booking).filter(Booking.id == booking_id).first():
            raise HTTPException(status_code=404, detail="Booking not found")
        return self.repo.get_invoices_by_booking(self.db, booking_id)

    def generate_invoice_number(self, invoice_date: date) -> str:
        """Next INV-<year>-<seq> for the invoice's year"""
        prefix = f"INV-{invoice_date.year}-"
        sequences = [
            int(match.group(1))
            for number in self.repo.get_numbers_with_prefix(self.db, prefix)
            if (match := re.fullmatch(rf"{prefix}(\d+)", number))
        ]
        return f"{prefix}{max(sequences, default=0) + 1:04d}"

    def create_invoice(self, data: InvoiceCreate) -> Invoice:
        customer = self.db.query(Customer).filter(Customer.id == data.customerId).first()
        if not customer:
            raise HTTPException(status_code=404, detail="Customer not found")

        booking = None
        if data.bookingId is not None:
            booking = self.db.query(Booking).filter(Booking.id == data.bookingId).first()
            if not booking:
                raise HTTPException(status_code=404, detail="Booking not found")
            if booking.customer_id != customer.id:
                raise HTTPException(status_code=400, detail="Booking belongs to a different customer")

        invoice_date = data.invoiceDate or date.today()
        due_date = data.dueDate or invoice_date + timedelta(days=PAYMENT_DUE_DAYS)
        if due_date < invoice_date:
            raise HTTPException(status_code=400, detail="dueDate must be on or after invoiceDate")

        invoice_number = data.invoiceNumber or self.generate_invoice_number(invoice_date)
        if self.repo.get_invoice_by_number(self.db, invoice_number):
            raise HTTPException(status_code=409, detail=f"Invoice number {invoice_number} already exists")

        items = [item.model_dump() for item in data.items]
        if not items and booking is not None:
            items = [booking_line_item(booking)]
        subtotal, tax, total = compute_totals(items, data.taxRate)

        invoice = self.repo.create_invoice(
            self.db,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            due_date=due_date,
            customer_id=customer.id,
            booking_id=booking.id if booking else None,
            status=data.status,
            subtotal=subtotal,
            tax_rate=data.taxRate,
            tax=tax,
            total=total,
            notes=data.notes,
            payment_terms=data.paymentTerms,
            items=items,
        )
        logger.info(f"✅ Invoice created: {invoice.invoice_number} for customer {customer.id} (total {total})")
        return invoice

    def update_invoice(self, invoice_id: int, data: InvoiceUpdate) -> Invoice:
        invoice = self.get_invoice(invoice_id)

        if data.invoiceDate is not None:
            invoice.invoice_date = data.invoiceDate
        if data.dueDate is not None:
            invoice.due_date = data.dueDate
        if invoice.due_date < invoice.invoice_date:
            raise HTTPException(status_code=400, detail="dueDate must be on or after invoiceDate")
        if data.notes is not None:
            invoice.notes = data.notes
        if data.paymentTerms is not None:
            invoice.payment_terms = data.paymentTerms
        if data.taxRate is not None:
            invoice.tax_rate = data.taxRate
        if data.items is not None:
            invoice.items = [item.model_dump() for item in data.items]

        invoice.subtotal, invoice.tax, invoice.total = compute_totals(invoice.items or [], invoice.tax_rate)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def update_status(self, invoice_id: int, status: str) -> Invoice:
        invoice = self.get_invoice(invoice_id)
        logger.info(f"🧾 Invoice {invoice.invoice_number} status {invoice.status} → {status}")

        invoice.status = status
        if status == "sent" and not invoice.sent_at:
            invoice.sent_at = datetime.utcnow()
        if status == "paid":
            invoice.paid_at = invoice.paid_at or datetime.utcnow()
            if invoice.booking:
                invoice.booking.payment_status = "paid"

        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def delete_invoice(self, invoice_id: int) -> dict:
        invoice = self.get_invoice(invoice_id)
        self.repo.delete_invoice(self.db, invoice)
        return {"message": "Invoice deleted"}

    def render_pdf(self, invoice_id: int) -> Response:
        invoice = self.get_invoice(invoice_id)
        pdf_bytes = generate_invoice_pdf(invoice)
        return Response(
            content=pdf_bytes,
            media_type="application/pdf",
            headers={"Content-Disposition": f"attachment; filename={invoice.invoice_number}.pdf"},
        )

    async def email_invoice(self, invoice_id: int, user: User, data: InvoiceEmailRequest) -> dict:
        """Send the invoice summary from the connected Gmail account"""
        invoice = self.get_invoice(invoice_id)
        recipient = data.to or (invoice.customer.email if invoice.customer else None)
        if not recipient:
            raise HTTPException(status_code=400, detail="No recipient email address")

        access_token = await google_oauth.require_access_token(self.db, user, google_oauth.GMAIL_SCOPE)

        lines = [
            f"Dear {invoice.customer.full_name if invoice.customer else 'customer'},",
            "",
            data.message or f"Please find the details of invoice {invoice.invoice_number} below.",
            "",
        ]
        for item in invoice.items or []:
            lines.append(f"- {item['description']}: {item['quantity']} x ${item['unitPrice']:,.2f}")
        lines += [
            "",
            f"Subtotal: ${invoice.subtotal:,.2f}",
            f"Tax ({invoice.tax_rate:g}%): ${invoice.tax:,.2f}",
            f"Total due: ${invoice.total:,.2f}",
            f"Due date: {invoice.due_date.strftime('%B %d, %Y')}",
        ]

        message_id = await send_email(
            access_token, recipient, f"Invoice {invoice.invoice_number}", "\n".join(lines)
        )

        if invoice.status in ("draft", "pending"):
            invoice.status = "sent"
        invoice.sent_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(invoice)

        logger.info(f"📧 Invoice {invoice.invoice_number} emailed to {recipient}")
        return {"success": True, "messageId": message_id, "status": invoice.status}
