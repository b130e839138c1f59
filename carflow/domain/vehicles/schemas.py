"""Vehicle domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import MAINTENANCE_STATUSES, VEHICLE_STATUSES, Vehicle
from ...shared.validators import validate_choice

MIN_YEAR = 1990
MAX_YEAR = datetime.utcnow().year + 1


class VehicleCreate(BaseModel):
    """Schema for adding a vehicle to the fleet"""

    make: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=MIN_YEAR, le=MAX_YEAR)
    licensePlate: str = Field(..., min_length=2, max_length=20)
    category: str = Field(..., min_length=1, max_length=50)
    dailyRate: int = Field(..., ge=0)
    status: str = "available"
    maintenanceStatus: str = "ok"
    imageUrl: Optional[str] = None
    transmission: Optional[str] = None
    fuelType: Optional[str] = None
    seats: Optional[int] = Field(None, ge=1, le=20)
    doors: Optional[int] = Field(None, ge=1, le=6)

    @field_validator("licensePlate")
    @classmethod
    def normalize_plate(cls, v):
        return v.strip().upper()

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, VEHICLE_STATUSES, "status")

    @field_validator("maintenanceStatus")
    @classmethod
    def validate_maintenance_status(cls, v):
        return validate_choice(v, MAINTENANCE_STATUSES, "maintenanceStatus")


class VehicleUpdate(BaseModel):
    """Partial update - only provided fields change"""

    make: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=MIN_YEAR, le=MAX_YEAR)
    licensePlate: Optional[str] = Field(None, min_length=2, max_length=20)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    dailyRate: Optional[int] = Field(None, ge=0)
    status: Optional[str] = None
    maintenanceStatus: Optional[str] = None
    imageUrl: Optional[str] = None
    transmission: Optional[str] = None
    fuelType: Optional[str] = None
    seats: Optional[int] = Field(None, ge=1, le=20)
    doors: Optional[int] = Field(None, ge=1, le=6)

    @field_validator("licensePlate")
    @classmethod
    def normalize_plate(cls, v):
        return v.strip().upper() if v else v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, VEHICLE_STATUSES, "status")

    @field_validator("maintenanceStatus")
    @classmethod
    def validate_maintenance_status(cls, v):
        return validate_choice(v, MAINTENANCE_STATUSES, "maintenanceStatus")


class VehicleStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, VEHICLE_STATUSES, "status")


class VehicleMaintenanceUpdate(BaseModel):
    maintenanceStatus: str
    maintenanceType: Optional[str] = None
    maintenanceDate: Optional[date] = None
    maintenanceNotes: Optional[str] = None

    @field_validator("maintenanceStatus")
    @classmethod
    def validate_maintenance_status(cls, v):
        return validate_choice(v, MAINTENANCE_STATUSES, "maintenanceStatus")


class VehiclePricingUpdate(BaseModel):
    dailyRate: Optional[int] = Field(None, ge=0)
    weeklyRate: Optional[int] = Field(None, ge=0)
    monthlyRate: Optional[int] = Field(None, ge=0)
    insuranceDailyRate: Optional[int] = Field(None, ge=0)


class VehiclePricingResponse(BaseModel):
    vehicleId: int
    dailyRate: int
    weeklyRate: Optional[int] = None
    monthlyRate: Optional[int] = None
    insuranceDailyRate: Optional[int] = None


class VehicleResponse(BaseModel):
    """Schema for vehicle response"""

    id: int
    make: str
    model: str
    year: int
    licensePlate: str
    category: str
    status: str
    dailyRate: int
    imageUrl: Optional[str] = None
    transmission: Optional[str] = None
    fuelType: Optional[str] = None
    seats: Optional[int] = None
    doors: Optional[int] = None
    maintenanceStatus: str
    maintenanceType: Optional[str] = None
    maintenanceDate: Optional[date] = None
    maintenanceNotes: Optional[str] = None
    isAvailable: bool
    currentBookingId: Optional[int] = None
    bookedFrom: Optional[date] = None
    bookedUntil: Optional[date] = None
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_vehicle(cls, v: Vehicle) -> "VehicleResponse":
        return cls(
            id=v.id,
            make=v.make,
            model=v.model,
            year=v.year,
            licensePlate=v.license_plate,
            category=v.category,
            status=v.status,
            dailyRate=v.daily_rate,
            imageUrl=v.image_url,
            transmission=v.transmission,
            fuelType=v.fuel_type,
            seats=v.seats,
            doors=v.doors,
            maintenanceStatus=v.maintenance_status,
            maintenanceType=v.maintenance_type,
            maintenanceDate=v.maintenance_date,
            maintenanceNotes=v.maintenance_notes,
            isAvailable=bool(v.is_available),
            currentBookingId=v.current_booking_id,
            bookedFrom=v.booked_from,
            bookedUntil=v.booked_until,
            createdAt=v.created_at,
        )
