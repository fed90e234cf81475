from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from osoul.constants import WIDGET_MAX_HEIGHT, WIDGET_MAX_WIDTH
from osoul.schemas.common import CamelModel


# ---------- Dashboards ----------

class DashboardCreate(CamelModel):
    dashboard_name: str = Field(..., min_length=1, max_length=255)
    layout_config: Dict[str, Any] = Field(default_factory=dict)


class DashboardUpdate(CamelModel):
    dashboard_name: Optional[str] = Field(None, min_length=1, max_length=255)
    layout_config: Optional[Dict[str, Any]] = None
    is_default: Optional[bool] = None


class WidgetOut(CamelModel):
    id: int
    dashboard_id: int
    widget_type: str
    widget_title: str
    position_x: int
    position_y: int
    width: int
    height: int
    config: Dict[str, Any] = Field(default_factory=dict)
    is_visible: bool = True


class DashboardOut(CamelModel):
    id: int
    user_id: int
    dashboard_name: str
    layout_config: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DashboardListItem(DashboardOut):
    widget_count: int = 0


class DashboardDetail(DashboardOut):
    widgets: List[WidgetOut] = Field(default_factory=list)


# ---------- Widgets ----------

class WidgetCreate(CamelModel):
    widget_type: str = Field(..., min_length=1, max_length=50)
    widget_title: str = Field(..., min_length=1, max_length=255)
    position_x: int = Field(0, ge=0)
    position_y: int = Field(0, ge=0)
    width: int = Field(3, ge=1, le=WIDGET_MAX_WIDTH)
    height: int = Field(2, ge=1, le=WIDGET_MAX_HEIGHT)
    config: Dict[str, Any] = Field(default_factory=dict)
    is_visible: bool = True


class WidgetUpdate(CamelModel):
    widget_type: Optional[str] = Field(None, min_length=1, max_length=50)
    widget_title: Optional[str] = Field(None, min_length=1, max_length=255)
    position_x: Optional[int] = Field(None, ge=0)
    position_y: Optional[int] = Field(None, ge=0)
    width: Optional[int] = Field(None, ge=1, le=WIDGET_MAX_WIDTH)
    height: Optional[int] = Field(None, ge=1, le=WIDGET_MAX_HEIGHT)
    config: Optional[Dict[str, Any]] = None
    is_visible: Optional[bool] = None
