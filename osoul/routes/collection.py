# osoul/routes/collection.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from osoul.constants import DEFAULT_PAGE_SIZE
from osoul.database.db import get_db
from osoul.services import collection_query
from osoul.utils.auth import get_current_user
from osoul.utils.pagination import Page
from osoul.utils.time_windows import optional_window, parse_iso_date, utcnow

router = APIRouter(
    prefix="/api/v1/collection",
    tags=["Collection"],
    dependencies=[Depends(get_current_user)],
)


@router.get("/accounts")
def list_accounts(
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    status: Optional[str] = Query(None, description="all | Active | Closed | <case status>"),
    search: Optional[str] = Query(None),
    branch: Optional[str] = Query(None, description="Branch code or 'all'"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    sort_by: str = Query("created_date", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
):
    data = collection_query.list_cases(
        db,
        Page(page=page, limit=limit),
        status=status,
        search=search,
        branch=branch,
        window=optional_window(start_date, end_date),
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {
        "success": True,
        "data": data,
        "message": f"Retrieved {len(data['accounts'])} collection accounts",
    }


@router.get("/accounts/{case_id}")
def get_account(case_id: int, db: Session = Depends(get_db)):
    return {
        "success": True,
        "data": collection_query.get_case_detail(db, case_id),
        "message": "Account details retrieved successfully",
    }


@router.get("/reports/daily")
def daily_report(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today (UTC)"),
    collector: Optional[int] = Query(None, description="Collector user id"),
    db: Session = Depends(get_db),
):
    day = parse_iso_date(date, "date") or utcnow().date()
    report = collection_query.daily_report(db, day, collector)
    return {
        "success": True,
        "data": report,
        "message": f"Daily collection report for {day.isoformat()}",
    }
