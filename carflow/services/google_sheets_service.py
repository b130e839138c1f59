"""
Google Sheets Service
Booking spreadsheets and report exports
"""
import logging
from typing import Any
from urllib.parse import quote

from ..models import Booking
from .google_oauth import google_request

logger = logging.getLogger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"

BOOKINGS_SHEET = "Bookings"
BOOKING_HEADERS = [
    "Booking Ref",
    "Customer",
    "Vehicle",
    "Start Date",
    "End Date",
    "Status",
    "Payment Status",
    "Total Amount",
    "Created At",
    "Notes",
]


def booking_row(booking: Booking) -> list[Any]:
    vehicle = booking.vehicle
    return [
        booking.booking_ref,
        booking.customer.full_name if booking.customer else "",
        f"{vehicle.make} {vehicle.model} ({vehicle.license_plate})" if vehicle else "",
        booking.start_date.isoformat(),
        booking.end_date.isoformat(),
        booking.status,
        booking.payment_status,
        booking.total_amount,
        booking.created_at.strftime("%Y-%m-%d %H:%M:%S") if booking.created_at else "",
        booking.notes or "",
    ]


def _header_format_request(sheet_id: int, column_count: int) -> dict[str, Any]:
    return {
        "repeatCell": {
            "range": {
                "sheetId": sheet_id,
                "startRowIndex": 0,
                "endRowIndex": 1,
                "startColumnIndex": 0,
                "endColumnIndex": column_count,
            },
            "cell": {
                "userEnteredFormat": {
                    "backgroundColor": {"red": 0.2, "green": 0.4, "blue": 0.8},
                    "textFormat": {"bold": True, "foregroundColor": {"red": 1, "green": 1, "blue": 1}},
                }
            },
            "fields": "userEnteredFormat(backgroundColor,textFormat)",
        }
    }


async def create_spreadsheet(
    access_token: str, title: str, sheet_title: str, headers: list[str]
) -> dict[str, Any]:
    """Create a spreadsheet with one sheet and a formatted, frozen header row"""
    spreadsheet = await google_request(
        "POST",
        SHEETS_API,
        access_token,
        json={
            "properties": {"title": title},
            "sheets": [
                {
                    "properties": {
                        "sheetId": 0,
                        "title": sheet_title,
                        "gridProperties": {"frozenRowCount": 1},
                    }
                }
            ],
        },
    )
    spreadsheet_id = spreadsheet["spreadsheetId"]

    await append_rows(access_token, spreadsheet_id, sheet_title, [headers])
    await google_request(
        "POST",
        f"{SHEETS_API}/{spreadsheet_id}:batchUpdate",
        access_token,
        json={"requests": [_header_format_request(0, len(headers))]},
    )

    logger.info(f"✅ Spreadsheet created: {spreadsheet_id} ({title})")
    return {
        "spreadsheetId": spreadsheet_id,
        "spreadsheetUrl": spreadsheet.get(
            "spreadsheetUrl", f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}"
        ),
    }


async def append_rows(
    access_token: str, spreadsheet_id: str, sheet_title: str, rows: list[list[Any]]
) -> int:
    """Append rows after the last filled row. Returns the number of rows written."""
    if not rows:
        return 0
    sheet_range = quote(f"{sheet_title}!A1")
    result = await google_request(
        "POST",
        f"{SHEETS_API}/{spreadsheet_id}/values/{sheet_range}:append",
        access_token,
        params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
        json={"values": rows},
    )
    return result.get("updates", {}).get("updatedRows", len(rows))


async def create_bookings_spreadsheet(access_token: str, title: str) -> dict[str, Any]:
    return await create_spreadsheet(access_token, title, BOOKINGS_SHEET, BOOKING_HEADERS)


async def append_bookings(access_token: str, spreadsheet_id: str, bookings: list[Booking]) -> int:
    written = await append_rows(
        access_token, spreadsheet_id, BOOKINGS_SHEET, [booking_row(b) for b in bookings]
    )
    logger.info(f"📊 Appended {written} booking rows to {spreadsheet_id}")
    return written


async def export_report(
    access_token: str, title: str, columns: list[str], rows: list[dict[str, Any]]
) -> dict[str, Any]:
    """Write a report table (header + rows) to a new spreadsheet"""
    result = await create_spreadsheet(access_token, title, "Report", columns)
    values = [["" if row.get(col) is None else row.get(col) for col in columns] for row in rows]
    result["rowsWritten"] = await append_rows(access_token, result["spreadsheetId"], "Report", values)
    return result
