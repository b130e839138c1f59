"""Vehicle router - FastAPI endpoints for the fleet"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.validators import parse_date_param, require_date_range
from ..bookings.schemas import BookingResponse
from .schemas import (
    VehicleCreate,
    VehicleMaintenanceUpdate,
    VehiclePricingResponse,
    VehiclePricingUpdate,
    VehicleResponse,
    VehicleStatusUpdate,
    VehicleUpdate,
)
from .service import VehicleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


def get_vehicle_service(db: Session = Depends(get_db)) -> VehicleService:
    """Dependency injection for VehicleService"""
    return VehicleService(db)


# ============================================================================
# FLEET QUERIES
# ============================================================================


@router.get("", response_model=list[VehicleResponse])
async def get_vehicles(
    category: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Get all vehicles, optionally filtered by category and status"""
    return [VehicleResponse.from_vehicle(v) for v in service.get_vehicles(category, status)]


@router.get("/available", response_model=list[VehicleResponse])
async def get_available_vehicles(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Vehicles that can be booked for the whole date range"""
    start_date = parse_date_param(startDate, "startDate")
    end_date = parse_date_param(endDate, "endDate")
    require_date_range(start_date, end_date)
    return [VehicleResponse.from_vehicle(v) for v in service.get_available_vehicles(start_date, end_date)]


@router.get("/categories")
async def get_vehicle_categories(
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Vehicle count per category"""
    return service.get_categories()


@router.get("/stats")
async def get_vehicle_stats(
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    return service.get_stats()


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    return VehicleResponse.from_vehicle(service.get_vehicle(vehicle_id))


@router.post("", response_model=VehicleResponse, status_code=201)
async def create_vehicle(
    data: VehicleCreate,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Add a vehicle to the fleet"""
    return VehicleResponse.from_vehicle(service.create_vehicle(data))


@router.put("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: int,
    data: VehicleUpdate,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    return VehicleResponse.from_vehicle(service.update_vehicle(vehicle_id, data))


@router.patch("/{vehicle_id}/status", response_model=VehicleResponse)
async def update_vehicle_status(
    vehicle_id: int,
    data: VehicleStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    return VehicleResponse.from_vehicle(service.update_status(vehicle_id, data.status))


@router.patch("/{vehicle_id}/maintenance", response_model=VehicleResponse)
async def update_vehicle_maintenance(
    vehicle_id: int,
    data: VehicleMaintenanceUpdate,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Record maintenance; in-shop states take the vehicle off the road"""
    return VehicleResponse.from_vehicle(service.update_maintenance(vehicle_id, data))


@router.delete("/{vehicle_id}")
async def delete_vehicle(
    vehicle_id: int,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    return service.delete_vehicle(vehicle_id)


@router.get("/{vehicle_id}/bookings", response_model=list[BookingResponse])
async def get_vehicle_bookings(
    vehicle_id: int,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Booking history for a vehicle, latest first"""
    return [BookingResponse.from_booking(b) for b in service.get_vehicle_bookings(vehicle_id)]


# ============================================================================
# PRICING
# ============================================================================


@router.get("/{vehicle_id}/pricing", response_model=VehiclePricingResponse)
async def get_vehicle_pricing(
    vehicle_id: int,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    return service.get_pricing(vehicle_id)


@router.put("/{vehicle_id}/pricing", response_model=VehiclePricingResponse)
async def update_vehicle_pricing(
    vehicle_id: int,
    data: VehiclePricingUpdate,
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Set daily, weekly, monthly and insurance rates"""
    return service.update_pricing(vehicle_id, data)


@router.get("/{vehicle_id}/quote")
async def get_rental_quote(
    vehicle_id: int,
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    includeInsurance: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: VehicleService = Depends(get_vehicle_service),
):
    """Price a rental for the date range"""
    start_date = parse_date_param(startDate, "startDate")
    end_date = parse_date_param(endDate, "endDate")
    require_date_range(start_date, end_date)
    return service.quote(vehicle_id, start_date, end_date, includeInsurance)
