# osoul/routes/dashboards.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from osoul.database.db import get_db
from osoul.models.models import User
from osoul.schemas.dashboards import DashboardCreate, DashboardUpdate, WidgetCreate, WidgetUpdate
from osoul.services import dashboards as service
from osoul.utils.auth import get_current_user
from osoul.utils.time_windows import optional_window

router = APIRouter(
    prefix="/api/v1/dashboards",
    tags=["Dashboards"],
    dependencies=[Depends(get_current_user)],
)


# ---------- widget data (before /{dashboard_id}) ----------

@router.get("/widgets/{widget_id}/data")
def widget_data(
    widget_id: int,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    branch_id: Optional[int] = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return service.get_widget_data(
        db, widget_id, current,
        window=optional_window(start_date, end_date),
        branch_id=branch_id,
    )


# ---------- dashboards ----------

@router.get("")
def list_dashboards(db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return service.list_dashboards(db, current)


@router.get("/{dashboard_id}")
def get_dashboard(dashboard_id: int, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return service.get_dashboard(db, dashboard_id, current)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_dashboard(
    payload: DashboardCreate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return service.create_dashboard(db, current, payload)


@router.put("/{dashboard_id}")
def update_dashboard(
    dashboard_id: int,
    payload: DashboardUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return service.update_dashboard(db, dashboard_id, current, payload)


@router.delete("/{dashboard_id}")
def delete_dashboard(dashboard_id: int, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    service.delete_dashboard(db, dashboard_id, current)
    return {"message": "Dashboard deleted successfully"}


# ---------- widgets ----------

@router.post("/{dashboard_id}/widgets", status_code=status.HTTP_201_CREATED)
def add_widget(
    dashboard_id: int,
    payload: WidgetCreate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return service.add_widget(db, dashboard_id, current, payload)


@router.put("/{dashboard_id}/widgets/{widget_id}")
def update_widget(
    dashboard_id: int,
    widget_id: int,
    payload: WidgetUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return service.update_widget(db, dashboard_id, widget_id, current, payload)


@router.delete("/{dashboard_id}/widgets/{widget_id}")
def delete_widget(
    dashboard_id: int,
    widget_id: int,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    service.delete_widget(db, dashboard_id, widget_id, current)
    return {"message": "Widget deleted successfully"}
