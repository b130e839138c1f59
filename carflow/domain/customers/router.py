"""Customer router - FastAPI endpoints for customer operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..bookings.schemas import BookingResponse
from ..invoices.schemas import InvoiceResponse
from ..invoices.service import InvoiceService
from .schemas import CustomerCreate, CustomerResponse, CustomerUpdate
from .service import CustomerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["Customers"])


def get_customer_service(db: Session = Depends(get_db)) -> CustomerService:
    """Dependency injection for CustomerService"""
    return CustomerService(db)


@router.get("", response_model=list[CustomerResponse])
async def get_customers(
    search: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    """Get all customers, optionally matching a name/email/phone search"""
    return [CustomerResponse.from_customer(c) for c in service.get_customers(search)]


@router.get("/export")
async def export_customers_csv(
    search: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    """Export customers as CSV"""
    return service.export_customers_csv(search)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return CustomerResponse.from_customer(service.get_customer(customer_id))


@router.post("", response_model=CustomerResponse, status_code=201)
async def create_customer(
    data: CustomerCreate,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return CustomerResponse.from_customer(service.create_customer(data))


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return CustomerResponse.from_customer(service.update_customer(customer_id, data))


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    """Delete a customer without bookings"""
    return service.delete_customer(customer_id)


@router.get("/{customer_id}/bookings", response_model=list[BookingResponse])
async def get_customer_bookings(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    service: CustomerService = Depends(get_customer_service),
):
    return [BookingResponse.from_booking(b) for b in service.get_customer_bookings(customer_id)]


@router.get("/{customer_id}/invoices", response_model=list[InvoiceResponse])
async def get_customer_invoices(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [InvoiceResponse.from_invoice(inv) for inv in InvoiceService(db).get_customer_invoices(customer_id)]
