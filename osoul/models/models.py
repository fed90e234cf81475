from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from osoul.constants import ACCOUNT_DELINQUENT, CaseStatus, TRANSACTION_COMPLETED
from osoul.database.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _full_name(first: str | None, last: str | None) -> str:
    return f"{first or ''} {last or ''}".strip()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # bcrypt hash; legacy rows may only carry the plain text column
    password_hash = Column(String(255), nullable=True)
    legacy_password = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default="viewer")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    dashboards = relationship("UserDashboard", back_populates="user")

    @property
    def full_name(self) -> str:
        return _full_name(self.first_name, self.last_name)


class Branch(Base):
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True)
    branch_code = Column(String(20), unique=True, nullable=False, index=True)
    branch_name = Column(String(255), nullable=False)
    region = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    manager = relationship("User", lazy="joined")

    @property
    def manager_name(self) -> str | None:
        return self.manager.full_name if self.manager else None


class CollectionTransaction(Base):
    __tablename__ = "collection_transactions"

    id = Column(Integer, primary_key=True, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    transaction_date = Column(DateTime(timezone=True), nullable=False, index=True)
    customer_id = Column(String(50), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    account_number = Column(String(50), nullable=True)
    transaction_type = Column(String(50), nullable=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(String(50), nullable=True)
    collector_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    reference_number = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=TRANSACTION_COMPLETED, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    branch = relationship("Branch")
    collector = relationship("User")


class CollectionTarget(Base):
    __tablename__ = "collection_targets"

    id = Column(Integer, primary_key=True, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)
    target_month = Column(Integer, nullable=False)
    target_year = Column(Integer, nullable=False)
    target_amount = Column(Float, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("branch_id", "target_month", "target_year", name="uq_collection_targets_branch_period"),
    )


class CollectorTarget(Base):
    __tablename__ = "collector_targets"

    id = Column(Integer, primary_key=True, index=True)
    collector_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    target_month = Column(Integer, nullable=False)
    target_year = Column(Integer, nullable=False)
    target_amount = Column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("collector_id", "target_month", "target_year", name="uq_collector_targets_period"),
    )


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False, index=True)
    last_name = Column(String(100), nullable=False, index=True)
    first_name_ar = Column(String(100), nullable=True)
    last_name_ar = Column(String(100), nullable=True)
    national_id = Column(String(20), nullable=True, index=True)
    risk_category = Column(String(20), nullable=True)
    phone = Column(String(30), nullable=True)

    @property
    def full_name(self) -> str:
        return _full_name(self.first_name, self.last_name)

    @property
    def full_name_ar(self) -> str:
        return _full_name(self.first_name_ar, self.last_name_ar)


class FinanceAccount(Base):
    __tablename__ = "finance_accounts"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    product_type = Column(String(50), nullable=True)
    outstanding_amount = Column(Float, nullable=False, default=0)
    monthly_installment = Column(Float, nullable=True)
    dpd = Column(Integer, nullable=False, default=0)
    bucket = Column(String(20), nullable=True)
    branch_code = Column(String(20), nullable=True, index=True)
    account_status = Column(String(20), nullable=False, default=ACCOUNT_DELINQUENT, index=True)

    customer = relationship("Customer")


class CollectionCase(Base):
    __tablename__ = "collection_cases"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("finance_accounts.id"), nullable=False, unique=True)
    case_status = Column(String(20), nullable=False, default=CaseStatus.NEW.value, index=True)
    priority_level = Column(String(20), nullable=True)
    total_outstanding = Column(Float, nullable=False, default=0)
    assigned_collector_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    last_payment_date = Column(DateTime(timezone=True), nullable=True)
    last_contact_date = Column(DateTime(timezone=True), nullable=True)
    next_action_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    customer = relationship("Customer", lazy="joined")
    account = relationship("FinanceAccount", lazy="joined")
    collector = relationship("User", lazy="joined")
    activities = relationship(
        "CollectionActivity",
        back_populates="case",
        order_by="CollectionActivity.activity_datetime.desc()",
    )


class CollectionActivity(Base):
    __tablename__ = "collection_activities"

    id = Column(Integer, primary_key=True, index=True)
    case_id = Column(Integer, ForeignKey("collection_cases.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("finance_accounts.id"), nullable=True)
    collector_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    activity_type = Column(String(30), nullable=True)
    activity_result = Column(String(50), nullable=True)
    activity_datetime = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    promise_amount = Column(Float, nullable=True)
    promise_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    case = relationship("CollectionCase", back_populates="activities")
    collector = relationship("User", lazy="joined")


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("finance_accounts.id"), nullable=False, index=True)
    payment_date = Column(DateTime(timezone=True), nullable=False, index=True)
    payment_amount = Column(Float, nullable=False)
    payment_method = Column(String(50), nullable=True)
    collected_by = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    receipt_number = Column(String(100), nullable=True)
    transaction_status = Column(String(20), nullable=False, default=TRANSACTION_COMPLETED)

    account = relationship("FinanceAccount")


class PromiseToPay(Base):
    __tablename__ = "promise_to_pay"

    id = Column(Integer, primary_key=True, index=True)
    case_id = Column(Integer, ForeignKey("collection_cases.id"), nullable=True)
    account_id = Column(Integer, ForeignKey("finance_accounts.id"), nullable=False, index=True)
    collector_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    promise_date = Column(Date, nullable=False, index=True)
    promise_amount = Column(Float, nullable=False)
    kept_flag = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class UserDashboard(Base):
    __tablename__ = "user_dashboards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    dashboard_name = Column(String(255), nullable=False)
    layout_config = Column(JSON, nullable=False, default=dict)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    user = relationship("User", back_populates="dashboards")
    # Widgets never outlive their dashboard
    widgets = relationship(
        "DashboardWidget",
        back_populates="dashboard",
        cascade="all, delete-orphan",
        order_by=lambda: [DashboardWidget.position_y, DashboardWidget.position_x],
    )


class DashboardWidget(Base):
    __tablename__ = "dashboard_widgets"

    id = Column(Integer, primary_key=True, index=True)
    dashboard_id = Column(
        Integer,
        ForeignKey("user_dashboards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    widget_type = Column(String(50), nullable=False)
    widget_title = Column(String(255), nullable=False)
    position_x = Column(Integer, nullable=False, default=0)
    position_y = Column(Integer, nullable=False, default=0)
    width = Column(Integer, nullable=False, default=3)
    height = Column(Integer, nullable=False, default=2)
    config = Column(JSON, nullable=False, default=dict)
    is_visible = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    dashboard = relationship("UserDashboard", back_populates="widgets")
