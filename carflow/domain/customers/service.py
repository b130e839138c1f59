"""Customer service - Business logic for customer operations"""

import csv
import logging
from datetime import datetime
from io import StringIO
from typing import Optional

from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...models import Booking, Customer
from .repository import CustomerRepository
from .schemas import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)


class CustomerService:
    """Service layer for customer business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CustomerRepository()

    def get_customers(self, search: Optional[str] = None) -> list[Customer]:
        return self.repo.get_customers(self.db, search)

    def get_customer(self, customer_id: int) -> Customer:
        customer = self.repo.get_customer_by_id(self.db, customer_id)
        if not customer:
            raise HTTPException(status_code=404, detail="Customer not found")
        return customer

    def create_customer(self, data: CustomerCreate) -> Customer:
        if self.repo.get_customer_by_email(self.db, data.email):
            raise HTTPException(status_code=409, detail="A customer with this email already exists")

        customer = self.repo.create_customer(
            self.db,
            full_name=data.fullName,
            email=data.email,
            phone=data.phone,
            address=data.address,
            driver_license=data.driverLicense,
            notes=data.notes,
            source=data.source,
        )
        logger.info(f"✅ Customer created: {customer.id} ({customer.email})")
        return customer

    def find_or_create_customer(
        self,
        full_name: Optional[str],
        email: Optional[str] = None,
        phone: Optional[str] = None,
        driver_license: Optional[str] = None,
        source: str = "n8n",
        notes: str = "Created from n8n webhook",
    ) -> Optional[Customer]:
        """
        Match an existing customer by email, then phone; otherwise create one.

        Does not commit so the caller can create the booking in the same
        transaction. Returns None when there is nothing to identify the
        customer by.
        """
        customer = None
        if email:
            customer = self.repo.get_customer_by_email(self.db, email)
        if customer is None and phone:
            customer = self.repo.get_customer_by_phone(self.db, phone)
        if customer is not None:
            return customer

        if not full_name or not (email or phone):
            return None

        if not email:
            # email is required and unique; synthesize a placeholder from the phone digits
            digits = "".join(ch for ch in phone if ch.isdigit())
            email = f"phone-{digits}@customers.carflow.local"

        customer = self.repo.create_customer(
            self.db,
            commit=False,
            full_name=full_name,
            email=email.strip().lower(),
            phone=phone,
            driver_license=driver_license,
            notes=notes,
            source=source,
        )
        logger.info(f"🆕 Customer created from {source}: {customer.email}")
        return customer

    def update_customer(self, customer_id: int, data: CustomerUpdate) -> Customer:
        customer = self.get_customer(customer_id)

        if data.email and data.email != customer.email:
            if self.repo.get_customer_by_email(self.db, data.email):
                raise HTTPException(status_code=409, detail="A customer with this email already exists")

        return self.repo.update_customer(
            self.db,
            customer,
            full_name=data.fullName,
            email=data.email,
            phone=data.phone,
            address=data.address,
            driver_license=data.driverLicense,
            notes=data.notes,
        )

    def delete_customer(self, customer_id: int) -> dict:
        customer = self.get_customer(customer_id)
        if self.repo.count_bookings(self.db, customer_id):
            raise HTTPException(status_code=409, detail="Customer has bookings and cannot be deleted")
        self.repo.delete_customer(self.db, customer)
        return {"message": "Customer deleted"}

    def get_customer_bookings(self, customer_id: int) -> list[Booking]:
        customer = self.get_customer(customer_id)
        return sorted(customer.bookings, key=lambda b: b.start_date, reverse=True)

    def export_customers_csv(self, search: Optional[str] = None) -> StreamingResponse:
        """Export customers as CSV"""
        customers = self.repo.get_customers(self.db, search)

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(
            ["ID", "Full Name", "Email", "Phone", "Address", "Driver License", "Source", "Notes", "Created At"]
        )
        for customer in customers:
            writer.writerow(
                [
                    customer.id,
                    customer.full_name,
                    customer.email,
                    customer.phone or "",
                    customer.address or "",
                    customer.driver_license or "",
                    customer.source or "",
                    customer.notes or "",
                    customer.created_at.strftime("%Y-%m-%d %H:%M:%S") if customer.created_at else "",
                ]
            )

        output.seek(0)
        filename = f"customers_export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        logger.info(f"✅ CSV export successful: {filename} ({len(customers)} customers)")

        return StreamingResponse(
            iter([output.getvalue()]),
            media_type="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Cache-Control": "no-cache",
            },
        )
