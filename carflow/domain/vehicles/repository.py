"""Vehicle repository - Database operations for the fleet"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import BLOCKING_BOOKING_STATUSES, Booking, Vehicle, VehiclePricing


class VehicleRepository:
    """Repository for vehicle database operations"""

    @staticmethod
    def get_vehicles(
        db: Session, category: Optional[str] = None, status: Optional[str] = None
    ) -> list[Vehicle]:
        query = db.query(Vehicle)
        if category:
            query = query.filter(func.lower(Vehicle.category) == category.lower())
        if status:
            query = query.filter(Vehicle.status == status)
        return query.order_by(Vehicle.id).all()

    @staticmethod
    def get_vehicle_by_id(db: Session, vehicle_id: int) -> Optional[Vehicle]:
        return db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()

    @staticmethod
    def get_vehicle_by_plate(db: Session, license_plate: str) -> Optional[Vehicle]:
        return db.query(Vehicle).filter(Vehicle.license_plate == license_plate).first()

    @staticmethod
    def get_available_vehicles(db: Session, start_date: date, end_date: date) -> list[Vehicle]:
        """Vehicles in service with no blocking booking overlapping the range"""
        booked_ids = (
            db.query(Booking.vehicle_id)
            .filter(
                Booking.status.in_(BLOCKING_BOOKING_STATUSES),
                Booking.start_date <= end_date,
                Booking.end_date >= start_date,
            )
            .distinct()
        )
        return (
            db.query(Vehicle)
            .filter(
                Vehicle.status.in_(("available", "rented")),
                Vehicle.maintenance_status == "ok",
                ~Vehicle.id.in_(booked_ids),
            )
            .order_by(Vehicle.daily_rate, Vehicle.id)
            .all()
        )

    @staticmethod
    def count_by_category(db: Session) -> dict[str, int]:
        rows = db.query(Vehicle.category, func.count(Vehicle.id)).group_by(Vehicle.category).all()
        return {category: count for category, count in rows}

    @staticmethod
    def count_by_status(db: Session) -> dict[str, int]:
        rows = db.query(Vehicle.status, func.count(Vehicle.id)).group_by(Vehicle.status).all()
        return {status: count for status, count in rows}

    @staticmethod
    def count_bookings(db: Session, vehicle_id: int) -> int:
        return db.query(func.count(Booking.id)).filter(Booking.vehicle_id == vehicle_id).scalar()

    @staticmethod
    def create_vehicle(db: Session, **vehicle_data) -> Vehicle:
        vehicle = Vehicle(**vehicle_data)
        db.add(vehicle)
        db.commit()
        db.refresh(vehicle)
        return vehicle

    @staticmethod
    def delete_vehicle(db: Session, vehicle: Vehicle) -> None:
        db.delete(vehicle)
        db.commit()

    @staticmethod
    def upsert_pricing(db: Session, vehicle: Vehicle, **rates) -> VehiclePricing:
        pricing = vehicle.pricing
        if pricing is None:
            pricing = VehiclePricing(daily_rate=vehicle.daily_rate)
            vehicle.pricing = pricing
        for key, value in rates.items():
            if value is not None:
                setattr(pricing, key, value)
        # Keep the list price in step with the pricing tier
        vehicle.daily_rate = pricing.daily_rate
        db.commit()
        db.refresh(pricing)
        return pricing
