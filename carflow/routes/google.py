"""
Google Workspace Integration Routes
OAuth connection plus Calendar, Sheets and Docs actions
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_admin
from ..database import get_db
from ..domain.bookings.repository import BookingRepository
from ..domain.bookings.service import BookingService
from ..models import User
from ..services import google_calendar_service, google_docs_service, google_oauth, google_sheets_service
from ..services.report_service import build_report_rows, get_report_table

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google", tags=["google"])


class CalendarBookingRequest(BaseModel):
    bookingId: int


class CalendarSyncRequest(BaseModel):
    bookingIds: Optional[list[int]] = None


class SpreadsheetCreateRequest(BaseModel):
    title: str = Field("CarFlow Bookings", min_length=1, max_length=255)
    bookingIds: Optional[list[int]] = None


class SpreadsheetAppendRequest(BaseModel):
    bookingIds: list[int] = Field(..., min_length=1)


class ReportSheetRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=255)


class DocumentCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = ""


# ============================================================================
# CONNECTION
# ============================================================================


@router.get("/auth/{service}/url")
async def get_google_auth_url(service: str, current_user: User = Depends(require_admin)):
    """Consent screen URL for calendar, sheets, docs, gmail or all"""
    return {"authUrl": google_oauth.build_authorization_url(current_user, service)}


@router.get("/callback")
async def google_oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """OAuth redirect target; the signed state identifies the user"""
    if error:
        raise HTTPException(status_code=400, detail=f"Google authorization failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    state_data = google_oauth.parse_state(state)
    user = db.query(User).filter(User.id == state_data["uid"]).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")

    tokens = await google_oauth.exchange_code(code)
    google_email = await google_oauth.fetch_user_email(tokens["access_token"])
    integration = google_oauth.save_integration(db, user.id, tokens, google_email)

    logger.info(f"✅ Google {state_data.get('service')} connected for user: {user.username}")
    return {
        "success": True,
        "message": "Google account connected successfully",
        "service": state_data.get("service"),
        "userEmail": integration.google_user_email,
    }


@router.get("/status")
async def get_google_status(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    integration = google_oauth.get_integration(db, current_user.id)
    if not integration:
        return {"connected": False, "userEmail": None, "services": {}}

    return {
        "connected": True,
        "userEmail": integration.google_user_email,
        "calendarId": integration.google_calendar_id,
        "services": {
            name: all(integration.has_scope(scope) for scope in scopes)
            for name, scopes in google_oauth.SERVICE_SCOPES.items()
            if name != "all"
        },
    }


@router.post("/disconnect")
async def disconnect_google(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    integration = google_oauth.get_integration(db, current_user.id)
    if not integration:
        raise HTTPException(status_code=404, detail="Google account not connected")

    await google_oauth.revoke(integration)
    db.delete(integration)
    db.commit()

    logger.info(f"✅ Google disconnected for user: {current_user.username}")
    return {"success": True, "message": "Google account disconnected"}


# ============================================================================
# CALENDAR
# ============================================================================


@router.post("/calendar/booking")
async def add_booking_to_calendar(
    data: CalendarBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    booking = BookingService(db).get_booking(data.bookingId)
    event_id = await google_calendar_service.add_booking_to_calendar(db, current_user, booking)
    return {"success": True, "eventId": event_id, "message": "Booking added to Google Calendar"}


@router.post("/calendar/sync")
async def sync_bookings_to_calendar(
    data: CalendarSyncRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Sync the given bookings (default: all open bookings); failures are reported per booking"""
    if data.bookingIds:
        bookings = BookingRepository.get_bookings_by_ids(db, data.bookingIds)
    else:
        bookings = [
            b for b in BookingRepository.get_bookings(db) if b.status in ("pending", "confirmed", "active")
        ]

    results = await google_calendar_service.sync_bookings(db, current_user, bookings)
    synced = sum(1 for r in results if r["success"])
    return {
        "success": True,
        "message": f"Synced {synced} of {len(results)} bookings",
        "results": results,
    }


# ============================================================================
# SHEETS
# ============================================================================


@router.post("/sheets/bookings", status_code=201)
async def create_bookings_spreadsheet(
    data: SpreadsheetCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    access_token = await google_oauth.require_access_token(db, current_user, google_oauth.SHEETS_SCOPE)
    result = await google_sheets_service.create_bookings_spreadsheet(access_token, data.title)

    if data.bookingIds:
        bookings = BookingRepository.get_bookings_by_ids(db, data.bookingIds)
        result["rowsWritten"] = await google_sheets_service.append_bookings(
            access_token, result["spreadsheetId"], bookings
        )
    return {"success": True, **result}


@router.post("/sheets/bookings/{spreadsheet_id}")
async def append_bookings_to_spreadsheet(
    spreadsheet_id: str,
    data: SpreadsheetAppendRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bookings = BookingRepository.get_bookings_by_ids(db, data.bookingIds)
    if not bookings:
        raise HTTPException(status_code=404, detail="No bookings found for the given ids")

    access_token = await google_oauth.require_access_token(db, current_user, google_oauth.SHEETS_SCOPE)
    written = await google_sheets_service.append_bookings(access_token, spreadsheet_id, bookings)
    return {"success": True, "spreadsheetId": spreadsheet_id, "rowsWritten": written}


@router.post("/reports/{table_id}/sheet", status_code=201)
async def export_report_to_sheet(
    table_id: int,
    data: Optional[ReportSheetRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    table = get_report_table(db, table_id)
    columns, rows = build_report_rows(db, table)

    access_token = await google_oauth.require_access_token(db, current_user, google_oauth.SHEETS_SCOPE)
    title = (data.title if data else None) or table.name
    result = await google_sheets_service.export_report(access_token, title, columns, rows)
    return {"success": True, **result}


# ============================================================================
# DOCS
# ============================================================================


@router.post("/docs", status_code=201)
async def create_google_doc(
    data: DocumentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    access_token = await google_oauth.require_access_token(db, current_user, google_oauth.DOCS_SCOPE)
    result = await google_docs_service.create_document(access_token, data.title, data.content)
    return {"success": True, **result}
