# osoul/services/dashboards.py
import copy
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from osoul.constants import DEFAULT_WIDGETS, NOT_IMPLEMENTED_DATA_SOURCE, Period
from osoul.database.db import atomic
from osoul.errors import NotFound, ValidationError
from osoul.models.models import DashboardWidget, User, UserDashboard
from osoul.repositories import BranchRepository, DashboardRepository, WidgetRepository
from osoul.schemas.dashboards import (
    DashboardCreate,
    DashboardDetail,
    DashboardListItem,
    DashboardOut,
    DashboardUpdate,
    WidgetCreate,
    WidgetOut,
    WidgetUpdate,
)
from osoul.services import reporting
from osoul.utils.time_windows import last_days_window, window_dates

logger = logging.getLogger(__name__)

Window = Tuple[datetime, datetime]

SUMMARY_CARD = "summary_card"

WIDGET_LIMIT_DEFAULT = 10
WIDGET_LIMIT_MAX = 50


def _dashboard_404():
    return NotFound("Dashboard not found")


def _widget_404():
    return NotFound("Widget not found")


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, mode="json")


# ---------- dashboards ----------

def list_dashboards(db: Session, user: User) -> list:
    rows = DashboardRepository(db).list_with_widget_count(user.id)
    return [
        _dump(DashboardListItem.model_validate(d).model_copy(update={"widget_count": int(n or 0)}))
        for d, n in rows
    ]


def _owned(db: Session, dashboard_id: int, user: User) -> UserDashboard:
    dashboard = DashboardRepository(db).get_owned(dashboard_id, user.id)
    if not dashboard:
        raise _dashboard_404()
    return dashboard


def get_dashboard(db: Session, dashboard_id: int, user: User) -> dict:
    dashboard = _owned(db, dashboard_id, user)
    widgets = WidgetRepository(db).for_dashboard(dashboard.id)
    detail = DashboardDetail.model_validate(dashboard).model_copy(
        update={"widgets": [WidgetOut.model_validate(w) for w in widgets]}
    )
    return _dump(detail)


def create_dashboard(db: Session, user: User, body: DashboardCreate) -> dict:
    dashboards = DashboardRepository(db)
    widgets = WidgetRepository(db)

    with atomic(db):
        dashboard = dashboards.insert(
            user_id=user.id,
            dashboard_name=body.dashboard_name.strip(),
            layout_config=body.layout_config or {},
            is_default=False,
        )
        for widget in DEFAULT_WIDGETS:
            widgets.insert(dashboard_id=dashboard.id, is_visible=True, **copy.deepcopy(widget))

    logger.info("Dashboard created id=%s user=%s", dashboard.id, user.id)
    return get_dashboard(db, dashboard.id, user)


def update_dashboard(db: Session, dashboard_id: int, user: User, body: DashboardUpdate) -> dict:
    values = body.model_dump(exclude_unset=True)
    if not values:
        raise ValidationError("No fields to update")

    dashboards = DashboardRepository(db)
    dashboard = _owned(db, dashboard_id, user)

    if "dashboard_name" in values:
        if values["dashboard_name"] is None:
            raise ValidationError(
                "Validation failed",
                details=[{"field": "dashboardName", "message": "must not be null"}],
            )
        values["dashboard_name"] = values["dashboard_name"].strip()
    values = {k: v for k, v in values.items() if v is not None}
    if not values:
        raise ValidationError("No fields to update")

    with atomic(db):
        if values.get("is_default"):
            # other defaults go first: one default per user
            dashboards.clear_default(user.id, except_id=dashboard.id)
            db.flush()
        dashboards.update(dashboard, values)

    db.refresh(dashboard)
    return _dump(DashboardOut.model_validate(dashboard))


def delete_dashboard(db: Session, dashboard_id: int, user: User) -> None:
    dashboard = _owned(db, dashboard_id, user)
    with atomic(db):
        # widgets go with it (relationship cascade)
        DashboardRepository(db).delete(dashboard)
    logger.info("Dashboard deleted id=%s user=%s", dashboard_id, user.id)


# ---------- widgets ----------

def add_widget(db: Session, dashboard_id: int, user: User, body: WidgetCreate) -> dict:
    dashboard = _owned(db, dashboard_id, user)
    with atomic(db):
        widget = WidgetRepository(db).insert(dashboard_id=dashboard.id, **body.model_dump())
    db.refresh(widget)
    return _dump(WidgetOut.model_validate(widget))


def _owned_widget(db: Session, dashboard_id: int, widget_id: int, user: User) -> DashboardWidget:
    dashboard = _owned(db, dashboard_id, user)
    widget = WidgetRepository(db).get_in_dashboard(widget_id, dashboard.id)
    if not widget:
        raise _widget_404()
    return widget


def update_widget(db: Session, dashboard_id: int, widget_id: int, user: User, body: WidgetUpdate) -> dict:
    values = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if not values:
        raise ValidationError("No fields to update")

    widget = _owned_widget(db, dashboard_id, widget_id, user)
    with atomic(db):
        WidgetRepository(db).update(widget, values)
    db.refresh(widget)
    return _dump(WidgetOut.model_validate(widget))


def delete_widget(db: Session, dashboard_id: int, widget_id: int, user: User) -> None:
    widget = _owned_widget(db, dashboard_id, widget_id, user)
    with atomic(db):
        WidgetRepository(db).delete(widget)


# ---------- widget data ----------

def _data_source(widget: DashboardWidget) -> Optional[str]:
    config = widget.config or {}
    source = config.get("dataSource")
    if not source and widget.widget_type == SUMMARY_CARD:
        return "summary"
    return source


def _widget_period(raw) -> Period:
    value = str(raw or Period.DAILY.value).strip().lower()
    try:
        return Period(value)
    except ValueError:
        # anything besides daily/weekly reads as monthly
        return Period.MONTHLY


def _widget_limit(raw) -> int:
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return WIDGET_LIMIT_DEFAULT
    return min(max(limit, 1), WIDGET_LIMIT_MAX)


def _aging_branch(db: Session, config: dict, branch_id: Optional[int]) -> Optional[str]:
    if branch_id is None:
        return config.get("branch")
    branch = BranchRepository(db).get(branch_id)
    if not branch:
        raise NotFound("Branch not found")
    return branch.branch_code


def get_widget_data(
    db: Session,
    widget_id: int,
    user: User,
    window: Optional[Window] = None,
    branch_id: Optional[int] = None,
):
    """Data for one widget, picked by its stored ``config.dataSource``.

    ``branch_id`` narrows every per-branch source. ``branch_comparison``
    always ranks all active branches, so it ignores it. ``aging`` falls back
    to the stored ``config.branch`` code when no branch is requested.
    """
    widget = WidgetRepository(db).get_owned(widget_id, user.id)
    if not widget:
        raise _widget_404()

    config = widget.config or {}
    source = _data_source(widget)

    if source == "summary":
        return reporting.transaction_totals(db, window, branch_id)

    if source == "performance_trends":
        period = _widget_period(config.get("period"))
        dfrom, dto = window_dates(*(window or last_days_window(30)))
        return reporting.performance_trends(db, period, dfrom, dto, branch_id)

    if source == "branch_comparison":
        return reporting.branch_comparison(db, window, limit=_widget_limit(config.get("limit")))

    if source == "collection_by_type":
        return reporting.collection_by_type(db, window, branch_id)

    if source == "aging":
        return reporting.aging_buckets(db, _aging_branch(db, config, branch_id))

    logger.info("Widget %s asks for unknown data source %r", widget.id, source)
    return {"message": NOT_IMPLEMENTED_DATA_SOURCE}
