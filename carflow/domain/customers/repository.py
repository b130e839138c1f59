"""Customer repository - Database operations for customers"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Booking, Customer


class CustomerRepository:
    """Repository for customer database operations"""

    @staticmethod
    def get_customers(db: Session, search: Optional[str] = None) -> list[Customer]:
        query = db.query(Customer)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(
                or_(
                    func.lower(Customer.full_name).like(pattern),
                    func.lower(Customer.email).like(pattern),
                    Customer.phone.like(f"%{search}%"),
                )
            )
        return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()

    @staticmethod
    def get_customer_by_id(db: Session, customer_id: int) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.id == customer_id).first()

    @staticmethod
    def get_customer_by_email(db: Session, email: str) -> Optional[Customer]:
        return db.query(Customer).filter(func.lower(Customer.email) == email.strip().lower()).first()

    @staticmethod
    def get_customer_by_phone(db: Session, phone: str) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.phone == phone).first()

    @staticmethod
    def create_customer(db: Session, commit: bool = True, **customer_data) -> Customer:
        customer = Customer(**customer_data)
        db.add(customer)
        if commit:
            db.commit()
            db.refresh(customer)
        else:
            db.flush()
        return customer

    @staticmethod
    def update_customer(db: Session, customer: Customer, **updates) -> Customer:
        for key, value in updates.items():
            if value is not None and hasattr(customer, key):
                setattr(customer, key, value)
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def delete_customer(db: Session, customer: Customer) -> None:
        db.delete(customer)
        db.commit()

    @staticmethod
    def count_bookings(db: Session, customer_id: int) -> int:
        return db.query(func.count(Booking.id)).filter(Booking.customer_id == customer_id).scalar()
