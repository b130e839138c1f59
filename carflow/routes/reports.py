"""
Saved report tables: definitions, data and CSV export
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import ReportTable, User
from ..schemas import ReportTableCreate, ReportTableResponse
from ..services.report_service import (
    build_report_rows,
    export_report_csv,
    get_report_table,
    resolve_columns,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/tables", response_model=list[ReportTableResponse])
async def get_report_tables(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    tables = db.query(ReportTable).order_by(ReportTable.created_at.desc(), ReportTable.id.desc()).all()
    return [ReportTableResponse.from_table(t) for t in tables]


@router.post("/tables", response_model=ReportTableResponse, status_code=201)
async def create_report_table(
    data: ReportTableCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    table = ReportTable(
        name=data.name,
        type=data.type,
        columns=resolve_columns(data.type, data.columns),
        filters=data.filters,
        created_by=current_user.id,
    )
    db.add(table)
    db.commit()
    db.refresh(table)
    logger.info(f"📊 Report table created: {table.name} ({table.type})")
    return ReportTableResponse.from_table(table)


@router.delete("/tables/{table_id}")
async def delete_report_table(
    table_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    table = get_report_table(db, table_id)
    db.delete(table)
    db.commit()
    return {"message": "Report table deleted"}


@router.get("/tables/{table_id}/data")
async def get_report_data(
    table_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    table = get_report_table(db, table_id)
    columns, rows = build_report_rows(db, table)
    return {"table": ReportTableResponse.from_table(table), "columns": columns, "rows": rows}


@router.get("/tables/{table_id}/export")
async def export_report_data(
    table_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Download the report table as CSV"""
    return export_report_csv(db, get_report_table(db, table_id))
