"""
Call log for phone calls handled by the n8n / voice agent workflow
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import CALL_STATUSES, N8nCall, User
from ..schemas import N8nCallCreate, N8nCallResponse, N8nCallUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/n8n-calls", tags=["n8n Calls"])

FIELD_MAP = {
    "callerId": "caller_id",
    "callerName": "caller_name",
    "callerPhone": "caller_phone",
    "callTime": "call_time",
    "callDuration": "call_duration",
    "status": "status",
    "reason": "reason",
    "notes": "notes",
    "bookingId": "booking_id",
    "agentNotes": "agent_notes",
    "transcription": "transcription",
}


def _get_call(db: Session, call_id: int) -> N8nCall:
    call = db.query(N8nCall).filter(N8nCall.id == call_id).first()
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    return call


@router.get("", response_model=list[N8nCallResponse])
async def get_calls(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    calls = db.query(N8nCall).order_by(N8nCall.call_time.desc(), N8nCall.id.desc()).all()
    return [N8nCallResponse.from_call(c) for c in calls]


@router.get("/status/{status}", response_model=list[N8nCallResponse])
async def get_calls_by_status(
    status: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if status not in CALL_STATUSES:
        raise HTTPException(status_code=400, detail=f"status must be one of: {', '.join(CALL_STATUSES)}")
    calls = (
        db.query(N8nCall)
        .filter(N8nCall.status == status)
        .order_by(N8nCall.call_time.desc(), N8nCall.id.desc())
        .all()
    )
    return [N8nCallResponse.from_call(c) for c in calls]


@router.get("/{call_id}", response_model=N8nCallResponse)
async def get_call(call_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return N8nCallResponse.from_call(_get_call(db, call_id))


@router.post("", response_model=N8nCallResponse, status_code=201)
async def create_call(
    data: N8nCallCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    values = {FIELD_MAP[k]: v for k, v in data.model_dump(exclude_none=True).items()}
    call = N8nCall(**values)
    db.add(call)
    db.commit()
    db.refresh(call)
    logger.info(f"📞 Call logged: #{call.id} from {call.caller_phone or 'unknown'} ({call.status})")
    return N8nCallResponse.from_call(call)


@router.put("/{call_id}", response_model=N8nCallResponse)
async def update_call(
    call_id: int,
    data: N8nCallUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    call = _get_call(db, call_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(call, FIELD_MAP[key], value)
    db.commit()
    db.refresh(call)
    return N8nCallResponse.from_call(call)


@router.delete("/{call_id}")
async def delete_call(call_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    call = _get_call(db, call_id)
    db.delete(call)
    db.commit()
    return {"message": "Call deleted"}
