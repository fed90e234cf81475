# osoul/routes/dashboard.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from osoul.config import Settings, get_settings
from osoul.database.db import get_db
from osoul.services import reporting
from osoul.utils.auth import get_current_user
from osoul.utils.time_windows import optional_window, parse_iso_date, parse_period

router = APIRouter(
    prefix="/api/v1/dashboard",
    tags=["Dashboard"],
    dependencies=[Depends(get_current_user)],
)

BRANCH_HELP = "Branch code or 'all'"


@router.get("/summary")
def dashboard_summary(
    branch: Optional[str] = Query(None, description=BRANCH_HELP),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    return reporting.portfolio_summary(db, branch, optional_window(start_date, end_date))


@router.get("/trends/{period}")
def collection_trends(
    period: str,
    branch: Optional[str] = Query(None, description=BRANCH_HELP),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return reporting.collection_trends(
        db,
        parse_period(period),
        settings.default_trend_target,
        branch_code=branch,
        dfrom=parse_iso_date(start_date, "startDate"),
        dto=parse_iso_date(end_date, "endDate"),
    )


@router.get("/aging")
def aging(
    branch: Optional[str] = Query(None, description=BRANCH_HELP),
    db: Session = Depends(get_db),
):
    return reporting.aging_buckets(db, branch)


@router.get("/collector-performance")
def collector_performance(
    branch: Optional[str] = Query(None, description=BRANCH_HELP),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return reporting.collector_performance(
        db,
        settings.default_collector_target,
        branch_code=branch,
        window=optional_window(start_date, end_date),
    )


@router.get("/product-npf")
def product_npf(
    branch: Optional[str] = Query(None, description=BRANCH_HELP),
    db: Session = Depends(get_db),
):
    return reporting.product_npf(db, branch)
