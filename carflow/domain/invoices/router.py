"""Invoice router - FastAPI endpoints for invoice operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    InvoiceCreate,
    InvoiceEmailRequest,
    InvoiceResponse,
    InvoiceStatusUpdate,
    InvoiceUpdate,
)
from .service import InvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db)


@router.get("", response_model=list[InvoiceResponse])
async def get_invoices(
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Get all invoices, newest first"""
    return [InvoiceResponse.from_invoice(inv) for inv in service.get_invoices(status)]


@router.get("/customer/{customer_id}", response_model=list[InvoiceResponse])
async def get_customer_invoices(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return [InvoiceResponse.from_invoice(inv) for inv in service.get_customer_invoices(customer_id)]


@router.get("/booking/{booking_id}", response_model=list[InvoiceResponse])
async def get_booking_invoices(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return [InvoiceResponse.from_invoice(inv) for inv in service.get_booking_invoices(booking_id)]


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return InvoiceResponse.from_invoice(service.get_invoice(invoice_id))


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Render the invoice as a PDF download"""
    return service.render_pdf(invoice_id)


@router.post("", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Create an invoice; totals are computed from the line items"""
    return InvoiceResponse.from_invoice(service.create_invoice(data))


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return InvoiceResponse.from_invoice(service.update_invoice(invoice_id, data))


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
async def update_invoice_status(
    invoice_id: int,
    data: InvoiceStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return InvoiceResponse.from_invoice(service.update_status(invoice_id, data.status))


@router.post("/{invoice_id}/email")
async def email_invoice(
    invoice_id: int,
    data: Optional[InvoiceEmailRequest] = None,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Email the invoice through the connected Gmail account"""
    return await service.email_invoice(invoice_id, current_user, data or InvoiceEmailRequest())


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.delete_invoice(invoice_id)
