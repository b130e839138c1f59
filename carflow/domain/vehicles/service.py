"""Vehicle service - Business logic for the fleet"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Booking, Vehicle
from .availability import OUT_OF_SERVICE_STATUSES, update_vehicle_availability
from .pricing import calculate_rental_price
from .repository import VehicleRepository
from .schemas import (
    VehicleCreate,
    VehicleMaintenanceUpdate,
    VehiclePricingResponse,
    VehiclePricingUpdate,
    VehicleUpdate,
)

logger = logging.getLogger(__name__)

# Maintenance states that take a vehicle off the road
IN_SHOP_MAINTENANCE = ("scheduled", "in_progress", "overdue")


def normalize_maintenance_status(status: Optional[str]) -> Optional[str]:
    """Finished maintenance puts the vehicle back in service as `ok`"""
    return "ok" if status == "completed" else status


class VehicleService:
    """Service layer for fleet business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = VehicleRepository()

    def get_vehicles(self, category: Optional[str] = None, status: Optional[str] = None) -> list[Vehicle]:
        return self.repo.get_vehicles(self.db, category, status)

    def get_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = self.repo.get_vehicle_by_id(self.db, vehicle_id)
        if not vehicle:
            raise HTTPException(status_code=404, detail="Vehicle not found")
        return vehicle

    def get_available_vehicles(self, start_date: date, end_date: date) -> list[Vehicle]:
        return self.repo.get_available_vehicles(self.db, start_date, end_date)

    def get_categories(self) -> dict[str, int]:
        return self.repo.count_by_category(self.db)

    def get_stats(self) -> dict:
        by_status = self.repo.count_by_status(self.db)
        total = sum(by_status.values())
        rented = by_status.get("rented", 0)
        return {
            "totalVehicles": total,
            "byStatus": by_status,
            "available": by_status.get("available", 0),
            "rented": rented,
            "inMaintenance": by_status.get("maintenance", 0) + by_status.get("repair", 0),
            "utilizationRate": round(100 * rented / total) if total else 0,
        }

    def create_vehicle(self, data: VehicleCreate) -> Vehicle:
        if self.repo.get_vehicle_by_plate(self.db, data.licensePlate):
            raise HTTPException(
                status_code=409, detail=f"A vehicle with license plate {data.licensePlate} already exists"
            )

        vehicle = self.repo.create_vehicle(
            self.db,
            make=data.make,
            model=data.model,
            year=data.year,
            license_plate=data.licensePlate,
            category=data.category,
            daily_rate=data.dailyRate,
            status=data.status,
            maintenance_status=normalize_maintenance_status(data.maintenanceStatus),
            image_url=data.imageUrl,
            transmission=data.transmission,
            fuel_type=data.fuelType,
            seats=data.seats,
            doors=data.doors,
            is_available=data.status not in OUT_OF_SERVICE_STATUSES,
        )
        logger.info(f"✅ Vehicle added: {vehicle.display_name} ({vehicle.license_plate})")
        return vehicle

    def update_vehicle(self, vehicle_id: int, data: VehicleUpdate) -> Vehicle:
        vehicle = self.get_vehicle(vehicle_id)

        if data.licensePlate and data.licensePlate != vehicle.license_plate:
            if self.repo.get_vehicle_by_plate(self.db, data.licensePlate):
                raise HTTPException(
                    status_code=409,
                    detail=f"A vehicle with license plate {data.licensePlate} already exists",
                )

        updates = {
            "make": data.make,
            "model": data.model,
            "year": data.year,
            "license_plate": data.licensePlate,
            "category": data.category,
            "daily_rate": data.dailyRate,
            "status": data.status,
            "maintenance_status": normalize_maintenance_status(data.maintenanceStatus),
            "image_url": data.imageUrl,
            "transmission": data.transmission,
            "fuel_type": data.fuelType,
            "seats": data.seats,
            "doors": data.doors,
        }
        for key, value in updates.items():
            if value is not None:
                setattr(vehicle, key, value)

        if data.dailyRate is not None and vehicle.pricing:
            vehicle.pricing.daily_rate = data.dailyRate

        update_vehicle_availability(self.db, vehicle)
        self.db.commit()
        self.db.refresh(vehicle)
        return vehicle

    def update_status(self, vehicle_id: int, status: str) -> Vehicle:
        vehicle = self.get_vehicle(vehicle_id)
        logger.info(f"🚗 Vehicle {vehicle_id} status {vehicle.status} → {status}")
        vehicle.status = status
        update_vehicle_availability(self.db, vehicle)
        self.db.commit()
        self.db.refresh(vehicle)
        return vehicle

    def update_maintenance(self, vehicle_id: int, data: VehicleMaintenanceUpdate) -> Vehicle:
        vehicle = self.get_vehicle(vehicle_id)

        vehicle.maintenance_status = normalize_maintenance_status(data.maintenanceStatus)
        if data.maintenanceType is not None:
            vehicle.maintenance_type = data.maintenanceType
        if data.maintenanceDate is not None:
            vehicle.maintenance_date = data.maintenanceDate
        if data.maintenanceNotes is not None:
            vehicle.maintenance_notes = data.maintenanceNotes

        if data.maintenanceStatus in IN_SHOP_MAINTENANCE:
            vehicle.status = "maintenance"
        elif vehicle.status == "maintenance":
            vehicle.status = "available"

        update_vehicle_availability(self.db, vehicle)
        self.db.commit()
        self.db.refresh(vehicle)
        logger.info(f"🔧 Vehicle {vehicle_id} maintenance: {data.maintenanceStatus} (status={vehicle.status})")
        return vehicle

    def delete_vehicle(self, vehicle_id: int) -> dict:
        vehicle = self.get_vehicle(vehicle_id)
        if self.repo.count_bookings(self.db, vehicle_id):
            raise HTTPException(
                status_code=409,
                detail="Vehicle has bookings and cannot be deleted. Set its status to inactive instead.",
            )
        self.repo.delete_vehicle(self.db, vehicle)
        return {"message": "Vehicle deleted"}

    def get_vehicle_bookings(self, vehicle_id: int) -> list[Booking]:
        vehicle = self.get_vehicle(vehicle_id)
        return sorted(vehicle.bookings, key=lambda b: b.start_date, reverse=True)

    # Pricing
    def get_pricing(self, vehicle_id: int) -> VehiclePricingResponse:
        vehicle = self.get_vehicle(vehicle_id)
        pricing = vehicle.pricing
        return VehiclePricingResponse(
            vehicleId=vehicle.id,
            dailyRate=pricing.daily_rate if pricing else vehicle.daily_rate,
            weeklyRate=pricing.weekly_rate if pricing else None,
            monthlyRate=pricing.monthly_rate if pricing else None,
            insuranceDailyRate=pricing.insurance_daily_rate if pricing else None,
        )

    def update_pricing(self, vehicle_id: int, data: VehiclePricingUpdate) -> VehiclePricingResponse:
        vehicle = self.get_vehicle(vehicle_id)
        self.repo.upsert_pricing(
            self.db,
            vehicle,
            daily_rate=data.dailyRate,
            weekly_rate=data.weeklyRate,
            monthly_rate=data.monthlyRate,
            insurance_daily_rate=data.insuranceDailyRate,
        )
        return self.get_pricing(vehicle_id)

    def quote(self, vehicle_id: int, start_date: date, end_date: date, include_insurance: bool) -> dict:
        vehicle = self.get_vehicle(vehicle_id)
        return calculate_rental_price(vehicle, start_date, end_date, include_insurance)
