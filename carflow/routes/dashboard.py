import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.bookings.schemas import BookingResponse
from ..domain.bookings.service import BookingService
from ..domain.invoices.repository import InvoiceRepository
from ..domain.vehicles.service import VehicleService
from ..models import SupportTicket, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/summary")
async def get_dashboard_summary(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Everything the dashboard home page shows, in one call"""
    bookings = BookingService(db)
    vehicles = VehicleService(db)

    open_tickets = (
        db.query(func.count(SupportTicket.id))
        .filter(SupportTicket.status.in_(("open", "in_progress")))
        .scalar()
    )

    return {
        "bookingStats": bookings.get_stats(),
        "vehicleStats": vehicles.get_stats(),
        "vehicleCategories": vehicles.get_categories(),
        "openTickets": open_tickets,
        "pendingInvoiceTotal": InvoiceRepository.outstanding_total(db),
        "recentBookings": [BookingResponse.from_booking(b) for b in bookings.get_recent_bookings(5)],
    }
