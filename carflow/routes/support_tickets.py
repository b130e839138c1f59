"""
Support ticket routes, including the customer-facing emergency support intake
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import Booking, Customer, SupportTicket, User
from ..schemas import (
    EmergencySupportRequest,
    SupportTicketCreate,
    SupportTicketResponse,
    SupportTicketStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/support-tickets", tags=["Support Tickets"])
emergency_router = APIRouter(tags=["Support Tickets"])


def _get_ticket(db: Session, ticket_id: int) -> SupportTicket:
    ticket = db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Support ticket not found")
    return ticket


def _check_references(db: Session, customer_id: Optional[int], booking_id: Optional[int]) -> None:
    if customer_id is not None and not db.query(Customer).filter(Customer.id == customer_id).first():
        raise HTTPException(status_code=404, detail="Customer not found")
    if booking_id is not None and not db.query(Booking).filter(Booking.id == booking_id).first():
        raise HTTPException(status_code=404, detail="Booking not found")


@router.get("", response_model=list[SupportTicketResponse])
async def get_support_tickets(
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(SupportTicket)
    if status:
        query = query.filter(SupportTicket.status == status)
    if priority:
        query = query.filter(SupportTicket.priority == priority)
    tickets = query.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc()).all()
    return [SupportTicketResponse.from_ticket(t) for t in tickets]


@router.get("/{ticket_id}", response_model=SupportTicketResponse)
async def get_support_ticket(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return SupportTicketResponse.from_ticket(_get_ticket(db, ticket_id))


@router.post("", response_model=SupportTicketResponse, status_code=201)
async def create_support_ticket(
    data: SupportTicketCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _check_references(db, data.customerId, data.bookingId)

    ticket = SupportTicket(
        subject=data.subject,
        description=data.description,
        customer_id=data.customerId,
        booking_id=data.bookingId,
        priority=data.priority,
        status=data.status,
        assigned_to=data.assignedTo,
        attachments=data.attachments,
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)

    logger.info(f"🎫 Support ticket #{ticket.id} opened ({ticket.priority}): {ticket.subject}")
    return SupportTicketResponse.from_ticket(ticket)


@router.patch("/{ticket_id}/status", response_model=SupportTicketResponse)
async def update_support_ticket_status(
    ticket_id: int,
    data: SupportTicketStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ticket = _get_ticket(db, ticket_id)
    ticket.status = data.status
    if data.status == "resolved":
        ticket.resolved_at = datetime.utcnow()
    db.commit()
    db.refresh(ticket)
    return SupportTicketResponse.from_ticket(ticket)


@emergency_router.post("/emergency-support", status_code=201)
async def create_emergency_support(data: EmergencySupportRequest, db: Session = Depends(get_db)):
    """Roadside / urgent help request; always opens a high priority ticket"""
    _check_references(db, data.customerId, data.bookingId)

    ticket = SupportTicket(
        subject=data.subject or "Emergency support request",
        description=data.description,
        customer_id=data.customerId,
        booking_id=data.bookingId,
        priority="high",
        status="open",
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)

    logger.warning(f"🚨 Emergency support ticket #{ticket.id} for customer {data.customerId}")
    return {
        "success": True,
        "message": "Emergency support request received. Our team will contact you shortly.",
        "ticketId": ticket.id,
    }
