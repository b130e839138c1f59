"""
Report Service
Builds the rows behind saved report tables and exports them as CSV
"""

import csv
import logging
import re
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from io import StringIO
from typing import Any, Optional

from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload

from ..models import Booking, Customer, ReportTable, Vehicle

logger = logging.getLogger(__name__)

REPORT_COLUMNS = {
    "bookings": [
        "bookingRef",
        "customerName",
        "customerEmail",
        "vehicleMake",
        "vehicleModel",
        "vehicleLicense",
        "startDate",
        "endDate",
        "totalAmount",
        "status",
        "createdAt",
    ],
    "vehicles": [
        "make",
        "model",
        "licensePlate",
        "category",
        "status",
        "maintenanceStatus",
        "totalBookings",
        "revenue",
        "utilizationRate",
    ],
    "customers": [
        "fullName",
        "email",
        "phone",
        "totalBookings",
        "totalSpent",
        "averageBookingValue",
        "lastBooking",
        "preferredCategory",
    ],
    "revenue": ["month", "totalRevenue", "bookingCount", "averageBookingValue"],
    "custom": [],
}

UTILIZATION_WINDOW_DAYS = 30


def get_report_table(db: Session, table_id: int) -> ReportTable:
    table = db.query(ReportTable).filter(ReportTable.id == table_id).first()
    if not table:
        raise HTTPException(status_code=404, detail="Report table not found")
    return table


def resolve_columns(report_type: str, columns: Optional[list[str]]) -> list[str]:
    """Requested columns in order, or every column of the type. Unknown names → 400."""
    available = REPORT_COLUMNS[report_type]
    if not columns:
        return list(available)
    unknown = [c for c in columns if c not in available]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown columns for {report_type} report: {', '.join(unknown)}",
        )
    return list(columns)


def _filter_date(filters: dict, key: str) -> Optional[date]:
    value = filters.get(key)
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{key} filter must be a date in YYYY-MM-DD format") from None


def _filtered_bookings(db: Session, filters: dict) -> list[Booking]:
    query = db.query(Booking).options(joinedload(Booking.customer), joinedload(Booking.vehicle))
    if filters.get("status"):
        query = query.filter(Booking.status == filters["status"])
    start = _filter_date(filters, "startDate")
    end = _filter_date(filters, "endDate")
    if start:
        query = query.filter(Booking.start_date >= start)
    if end:
        query = query.filter(Booking.start_date <= end)
    return query.order_by(Booking.start_date, Booking.id).all()


def _billable(bookings: list[Booking]) -> list[Booking]:
    return [b for b in bookings if b.status != "cancelled"]


def booked_days_in_window(bookings: list[Booking], window_start: date, window_end: date) -> int:
    """Inclusive days of [window_start, window_end] covered by non-cancelled bookings"""
    days: set[date] = set()
    for b in _billable(bookings):
        start = max(b.start_date, window_start)
        end = min(b.end_date, window_end)
        while start <= end:
            days.add(start)
            start += timedelta(days=1)
    return len(days)


def _booking_rows(bookings: list[Booking]) -> list[dict[str, Any]]:
    return [
        {
            "bookingRef": b.booking_ref,
            "customerName": b.customer.full_name if b.customer else None,
            "customerEmail": b.customer.email if b.customer else None,
            "vehicleMake": b.vehicle.make if b.vehicle else None,
            "vehicleModel": b.vehicle.model if b.vehicle else None,
            "vehicleLicense": b.vehicle.license_plate if b.vehicle else None,
            "startDate": b.start_date.isoformat(),
            "endDate": b.end_date.isoformat(),
            "totalAmount": b.total_amount,
            "status": b.status,
            "createdAt": b.created_at.isoformat() if b.created_at else None,
        }
        for b in bookings
    ]


def _vehicle_rows(db: Session, bookings: list[Booking], today: date) -> list[dict[str, Any]]:
    by_vehicle: dict[int, list[Booking]] = defaultdict(list)
    for b in bookings:
        by_vehicle[b.vehicle_id].append(b)

    window_start = today - timedelta(days=UTILIZATION_WINDOW_DAYS - 1)
    rows = []
    for v in db.query(Vehicle).order_by(Vehicle.id).all():
        vehicle_bookings = by_vehicle.get(v.id, [])
        booked = booked_days_in_window(vehicle_bookings, window_start, today)
        rows.append(
            {
                "make": v.make,
                "model": v.model,
                "licensePlate": v.license_plate,
                "category": v.category,
                "status": v.status,
                "maintenanceStatus": v.maintenance_status,
                "totalBookings": len(vehicle_bookings),
                "revenue": sum(b.total_amount or 0 for b in _billable(vehicle_bookings)),
                "utilizationRate": round(100 * booked / UTILIZATION_WINDOW_DAYS, 1),
            }
        )
    return rows


def _customer_rows(db: Session, bookings: list[Booking]) -> list[dict[str, Any]]:
    by_customer: dict[int, list[Booking]] = defaultdict(list)
    for b in bookings:
        by_customer[b.customer_id].append(b)

    rows = []
    for c in db.query(Customer).order_by(Customer.id).all():
        customer_bookings = by_customer.get(c.id, [])
        billable = _billable(customer_bookings)
        total_spent = sum(b.total_amount or 0 for b in billable)
        categories = Counter(b.vehicle.category for b in customer_bookings if b.vehicle)
        rows.append(
            {
                "fullName": c.full_name,
                "email": c.email,
                "phone": c.phone,
                "totalBookings": len(customer_bookings),
                "totalSpent": total_spent,
                "averageBookingValue": round(total_spent / len(billable), 2) if billable else 0,
                "lastBooking": max(b.start_date for b in customer_bookings).isoformat() if customer_bookings else None,
                "preferredCategory": categories.most_common(1)[0][0] if categories else None,
            }
        )
    return rows


def _revenue_rows(bookings: list[Booking]) -> list[dict[str, Any]]:
    by_month: dict[str, list[int]] = defaultdict(list)
    for b in _billable(bookings):
        by_month[b.start_date.strftime("%Y-%m")].append(b.total_amount or 0)

    return [
        {
            "month": month,
            "totalRevenue": sum(amounts),
            "bookingCount": len(amounts),
            "averageBookingValue": round(sum(amounts) / len(amounts), 2),
        }
        for month, amounts in sorted(by_month.items())
    ]


def build_report_rows(db: Session, table: ReportTable, today: Optional[date] = None) -> tuple[list[str], list[dict]]:
    """(columns, rows) for a saved table; rows only carry the table's columns"""
    today = today or date.today()
    columns = resolve_columns(table.type, table.columns)
    filters = table.filters or {}

    if table.type == "custom":
        return columns, []

    bookings = _filtered_bookings(db, filters)
    if table.type == "bookings":
        rows = _booking_rows(bookings)
    elif table.type == "vehicles":
        rows = _vehicle_rows(db, bookings, today)
    elif table.type == "customers":
        rows = _customer_rows(db, bookings)
    else:
        rows = _revenue_rows(bookings)

    return columns, [{col: row.get(col) for col in columns} for row in rows]


def export_report_csv(db: Session, table: ReportTable) -> StreamingResponse:
    """Export a report table as CSV with every value quoted"""
    columns, rows = build_report_rows(db, table)

    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL)
    writer.writerow(columns)
    for row in rows:
        writer.writerow(["" if row[col] is None else row[col] for col in columns])

    output.seek(0)
    safe_name = re.sub(r"[^A-Za-z0-9_-]+", "_", table.name).strip("_") or "report"
    filename = f"{safe_name}_{datetime.now().strftime('%Y%m%d')}.csv"
    logger.info(f"✅ Report export: {filename} ({len(rows)} rows)")

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Cache-Control": "no-cache",
        },
    )
