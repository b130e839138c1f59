"""Booking repository - Database operations for bookings"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Booking


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def _with_relations(db: Session):
        return db.query(Booking).options(joinedload(Booking.customer), joinedload(Booking.vehicle))

    @staticmethod
    def get_bookings(
        db: Session, status: Optional[str] = None, source: Optional[str] = None
    ) -> list[Booking]:
        query = BookingRepository._with_relations(db)
        if status:
            query = query.filter(Booking.status == status)
        if source:
            query = query.filter(Booking.source == source)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    @staticmethod
    def get_recent_bookings(db: Session, limit: int) -> list[Booking]:
        return (
            BookingRepository._with_relations(db)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_booking_by_id(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_booking_by_ref(db: Session, booking_ref: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.booking_ref == booking_ref).first()

    @staticmethod
    def get_bookings_by_ids(db: Session, booking_ids: list[int]) -> list[Booking]:
        return BookingRepository._with_relations(db).filter(Booking.id.in_(booking_ids)).all()

    @staticmethod
    def get_bookings_in_range(db: Session, start_date: date, end_date: date) -> list[Booking]:
        """Bookings of any status whose inclusive range overlaps [start_date, end_date]"""
        return (
            BookingRepository._with_relations(db)
            .filter(Booking.start_date <= end_date, Booking.end_date >= start_date)
            .order_by(Booking.start_date)
            .all()
        )

    @staticmethod
    def count_bookings(db: Session) -> int:
        return db.query(func.count(Booking.id)).scalar()

    @staticmethod
    def count_created_between(db: Session, start: datetime, end: datetime) -> int:
        return (
            db.query(func.count(Booking.id))
            .filter(Booking.created_at >= start, Booking.created_at < end)
            .scalar()
        )

    @staticmethod
    def count_by_status(db: Session, status: str) -> int:
        return db.query(func.count(Booking.id)).filter(Booking.status == status).scalar()

    @staticmethod
    def paid_revenue(db: Session) -> int:
        total = (
            db.query(func.coalesce(func.sum(Booking.total_amount), 0))
            .filter(Booking.payment_status == "paid")
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def delete_booking(db: Session, booking: Booking) -> None:
        db.delete(booking)
