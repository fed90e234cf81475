# osoul/routes/reports.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from osoul.constants import EXPORT_FORMATS, EXPORT_REPORT_TYPES
from osoul.database.db import get_db
from osoul.errors import ValidationError
from osoul.models.models import User
from osoul.services import exports, reporting
from osoul.utils.auth import get_current_user
from osoul.utils.time_windows import date_window, optional_window, parse_iso_date, parse_period, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/reports",
    tags=["Reports"],
    dependencies=[Depends(get_current_user)],
)


def _required_dates(start_raw: str, end_raw: str):
    dfrom = parse_iso_date(start_raw, "startDate")
    dto = parse_iso_date(end_raw, "endDate")
    if dfrom is None or dto is None:
        raise ValidationError(
            "startDate and endDate are required",
            details=[{"field": "startDate/endDate", "message": "required"}],
        )
    return dfrom, dto


# ===========================
#   Monthly / quarterly
# ===========================
@router.get("/monthly-comparison")
def monthly_comparison(
    year: int = Query(..., ge=2020),
    branch_id: Optional[int] = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
):
    return reporting.monthly_comparison(db, year, branch_id)


@router.get("/quarterly-comparison")
def quarterly_comparison(
    year: int = Query(..., ge=2020),
    branch_id: Optional[int] = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
):
    return reporting.quarterly_comparison(db, year, branch_id)


# ===========================
#   Branches / trends
# ===========================
@router.get("/branch-comparison")
def branch_comparison(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    region: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    window = date_window(*_required_dates(start_date, end_date))
    return reporting.branch_comparison(db, window, region=(region or "").strip() or None)


@router.get("/performance-trends")
def performance_trends(
    period: str = Query(...),
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    branch_id: Optional[int] = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
):
    p = parse_period(period)
    dfrom, dto = _required_dates(start_date, end_date)
    return reporting.performance_trends(db, p, dfrom, dto, branch_id)


@router.get("/top-performers")
def top_performers(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    window = date_window(*_required_dates(start_date, end_date))
    return reporting.top_performers(db, window, limit)


# ===========================
#   Summary
# ===========================
@router.get("/summary")
def summary(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    branch_id: Optional[int] = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
):
    return reporting.transaction_summary(db, optional_window(start_date, end_date), branch_id)


# ===========================
#   Export
# ===========================
@router.get("/export")
def export(
    report_type: str = Query(..., alias="reportType"),
    fmt: str = Query(..., alias="format"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    branch_id: Optional[int] = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    errors = []
    if report_type not in EXPORT_REPORT_TYPES:
        errors.append({"field": "reportType", "message": f"must be one of {sorted(EXPORT_REPORT_TYPES)}"})
    if fmt not in EXPORT_FORMATS:
        errors.append({"field": "format", "message": f"must be one of {sorted(EXPORT_FORMATS)}"})
    if errors:
        raise ValidationError("Invalid export request", details=errors)

    rows = reporting.export_rows(db, report_type, optional_window(start_date, end_date), branch_id)
    logger.info("Export %s/%s rows=%d user=%s", report_type, fmt, len(rows), current.id)

    if fmt == "json":
        return {"reportType": report_type, "format": fmt, "count": len(rows), "rows": rows}

    name = exports.filename(report_type, fmt, utcnow().strftime("%Y%m%d%H%M%S"))
    headers = {"Content-Disposition": f'attachment; filename="{name}"'}
    if fmt == "csv":
        return Response(content=exports.to_csv(rows), media_type=exports.CSV_MEDIA_TYPE, headers=headers)
    return Response(
        content=exports.to_xlsx(rows, sheet_title=report_type.title()),
        media_type=exports.XLSX_MEDIA_TYPE,
        headers=headers,
    )
