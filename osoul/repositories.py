"""
Per-entity repositories over a SQLAlchemy session.

Each repository exposes the same typed operations (find / get / insert /
update / delete) plus the few entity-specific lookups the routes need.
None of them commits: the caller owns the unit of work (see `atomic`).
"""
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from osoul.database.db import Base
from osoul.models.models import (
    Branch,
    DashboardWidget,
    User,
    UserDashboard,
)

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    model: Type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def get(self, obj_id: int) -> Optional[ModelT]:
        return self.db.get(self.model, obj_id)

    def find(self, order_by=None, **filters: Any) -> List[ModelT]:
        q = self.db.query(self.model)
        for name, value in filters.items():
            if value is not None:
                q = q.filter(getattr(self.model, name) == value)
        if order_by is not None:
            q = q.order_by(order_by)
        return q.all()

    def insert(self, **values: Any) -> ModelT:
        obj = self.model(**values)
        self.db.add(obj)
        self.db.flush()
        return obj

    def update(self, obj: ModelT, values: Dict[str, Any]) -> ModelT:
        for key, value in values.items():
            setattr(obj, key, value)
        self.db.add(obj)
        self.db.flush()
        return obj

    def delete(self, obj: ModelT) -> None:
        self.db.delete(obj)
        self.db.flush()


class UserRepository(Repository[User]):
    model = User

    def get_by_email(self, email: str) -> Optional[User]:
        normalized = (email or "").strip().lower()
        return (
            self.db.query(User)
            .filter(func.lower(User.email) == normalized)
            .first()
        )

    def with_legacy_password(self) -> List[User]:
        return self.db.query(User).filter(User.legacy_password.isnot(None)).all()


class BranchRepository(Repository[Branch]):
    model = Branch

    def get_by_code(self, code: str) -> Optional[Branch]:
        return self.db.query(Branch).filter(Branch.branch_code == code).first()

    def list(self, is_active: Optional[bool] = None) -> List[Branch]:
        return self.find(order_by=Branch.branch_name.asc(), is_active=is_active)


class DashboardRepository(Repository[UserDashboard]):
    model = UserDashboard

    def get_owned(self, dashboard_id: int, user_id: int) -> Optional[UserDashboard]:
        return (
            self.db.query(UserDashboard)
            .filter(UserDashboard.id == dashboard_id, UserDashboard.user_id == user_id)
            .first()
        )

    def list_with_widget_count(self, user_id: int):
        return (
            self.db.query(UserDashboard, func.count(DashboardWidget.id).label("widget_count"))
            .outerjoin(DashboardWidget, DashboardWidget.dashboard_id == UserDashboard.id)
            .filter(UserDashboard.user_id == user_id)
            .group_by(UserDashboard.id)
            .order_by(UserDashboard.is_default.desc(), UserDashboard.created_at.desc(), UserDashboard.id.desc())
            .all()
        )

    def clear_default(self, user_id: int, except_id: Optional[int] = None) -> None:
        stmt = update(UserDashboard).where(UserDashboard.user_id == user_id)
        if except_id is not None:
            stmt = stmt.where(UserDashboard.id != except_id)
        self.db.execute(stmt.values(is_default=False).execution_options(synchronize_session="fetch"))


class WidgetRepository(Repository[DashboardWidget]):
    model = DashboardWidget

    def get_in_dashboard(self, widget_id: int, dashboard_id: int) -> Optional[DashboardWidget]:
        return (
            self.db.query(DashboardWidget)
            .filter(DashboardWidget.id == widget_id, DashboardWidget.dashboard_id == dashboard_id)
            .first()
        )

    def get_owned(self, widget_id: int, user_id: int) -> Optional[DashboardWidget]:
        return (
            self.db.query(DashboardWidget)
            .join(UserDashboard, UserDashboard.id == DashboardWidget.dashboard_id)
            .filter(DashboardWidget.id == widget_id, UserDashboard.user_id == user_id)
            .first()
        )

    def for_dashboard(self, dashboard_id: int) -> List[DashboardWidget]:
        return (
            self.db.query(DashboardWidget)
            .filter(DashboardWidget.dashboard_id == dashboard_id)
            .order_by(DashboardWidget.position_y.asc(), DashboardWidget.position_x.asc(), DashboardWidget.id.asc())
            .all()
        )

