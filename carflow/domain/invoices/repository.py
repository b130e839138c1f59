"""Invoice repository - Database operations for invoices"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models_invoice import Invoice


class InvoiceRepository:
    """Repository for invoice database operations"""

    @staticmethod
    def _with_relations(db: Session):
        return db.query(Invoice).options(joinedload(Invoice.customer), joinedload(Invoice.booking))

    @staticmethod
    def get_invoices(db: Session, status: Optional[str] = None) -> list[Invoice]:
        query = InvoiceRepository._with_relations(db)
        if status:
            query = query.filter(Invoice.status == status)
        return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()

    @staticmethod
    def get_invoices_by_customer(db: Session, customer_id: int) -> list[Invoice]:
        return (
            InvoiceRepository._with_relations(db)
            .filter(Invoice.customer_id == customer_id)
            .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
            .all()
        )

    @staticmethod
    def get_invoices_by_booking(db: Session, booking_id: int) -> list[Invoice]:
        return (
            InvoiceRepository._with_relations(db)
            .filter(Invoice.booking_id == booking_id)
            .order_by(Invoice.id)
            .all()
        )

    @staticmethod
    def get_invoice_by_id(db: Session, invoice_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.id == invoice_id).first()

    @staticmethod
    def get_invoice_by_number(db: Session, invoice_number: str) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()

    @staticmethod
    def get_numbers_with_prefix(db: Session, prefix: str) -> list[str]:
        rows = db.query(Invoice.invoice_number).filter(Invoice.invoice_number.like(f"{prefix}%")).all()
        return [row[0] for row in rows]

    @staticmethod
    def outstanding_total(db: Session) -> float:
        total = (
            db.query(func.coalesce(func.sum(Invoice.total), 0))
            .filter(Invoice.status.in_(("pending", "sent", "overdue")))
            .scalar()
        )
        return round(float(total or 0), 2)

    @staticmethod
    def create_invoice(db: Session, **invoice_data) -> Invoice:
        invoice = Invoice(**invoice_data)
        db.add(invoice)
        db.commit()
        db.refresh(invoice)
        return invoice

    @staticmethod
    def delete_invoice(db: Session, invoice: Invoice) -> None:
        db.delete(invoice)
        db.commit()
