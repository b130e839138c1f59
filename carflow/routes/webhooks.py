"""
n8n Webhook Handlers
Inbound booking upserts, the voice agent bridge and the outbound relay
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.bookings.schemas import BookingResponse, N8nBookingPayload
from ..domain.bookings.service import BookingService
from ..models import User
from ..services.n8n_service import send_to_n8n
from ..services.voice_agent import VoiceAgentService
from ..webhook_security import verify_n8n_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
n8n_router = APIRouter(prefix="/n8n", tags=["webhooks"])


class SendToN8nRequest(BaseModel):
    url: Optional[str] = None
    data: Any = None


def _parse_json(body: bytes) -> dict:
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON") from None
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return payload


def _parse_booking_payload(body: bytes) -> N8nBookingPayload:
    try:
        return N8nBookingPayload.model_validate(_parse_json(body))
    except ValidationError as e:
        reasons = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        logger.warning(f"⚠️ Invalid n8n booking payload: {reasons}")
        raise HTTPException(status_code=400, detail=f"Invalid booking data from n8n: {reasons}") from None


def _upsert(payload: N8nBookingPayload, db: Session) -> dict:
    booking, created = BookingService(db).upsert_from_n8n(payload)
    return {
        "success": True,
        "message": "Booking created successfully" if created else "Booking updated successfully",
        "data": BookingResponse.from_booking(booking).model_dump(mode="json"),
    }


@router.post("/booking")
async def booking_webhook(body: bytes = Depends(verify_n8n_webhook), db: Session = Depends(get_db)):
    """
    n8n booking webhook with explicit ids

    Updates the booking named by bookingRef, or creates a new one.
    """
    payload = _parse_booking_payload(body)
    if payload.customerId is None or payload.vehicleId is None:
        raise HTTPException(
            status_code=400, detail="Invalid booking data from n8n: customerId and vehicleId are required"
        )

    logger.info(f"📥 n8n booking webhook: ref={payload.bookingRef} vehicle={payload.vehicleId}")
    return _upsert(payload, db)


@n8n_router.post("/webhook")
async def n8n_webhook(body: bytes = Depends(verify_n8n_webhook), db: Session = Depends(get_db)):
    """n8n booking webhook where the customer may be identified by email"""
    payload = _parse_booking_payload(body)
    logger.info(f"📥 n8n webhook: ref={payload.bookingRef} customer={payload.customerEmail or payload.customerId}")
    return _upsert(payload, db)


@router.get("/test")
async def test_webhook():
    return {
        "success": True,
        "message": "Webhook endpoint is working",
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.post("/send-to-n8n")
async def relay_to_n8n(data: SendToN8nRequest, current_user: User = Depends(get_current_user)):
    """Forward a JSON payload to an n8n workflow"""
    result = await send_to_n8n(data.data, data.url)
    logger.info(f"📤 {current_user.username} relayed data to n8n")
    return {"success": True, "message": "Data sent to n8n", **result}


@router.post("/voice-agent")
async def voice_agent_webhook(body: bytes = Depends(verify_n8n_webhook), db: Session = Depends(get_db)):
    """
    ElevenLabs tool-call bridge.

    Always answers 200 with success true/false so the agent can speak the message.
    """
    return VoiceAgentService(db).handle(_parse_json(body))
