# osoul/tests/conftest.py
import os
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from osoul.config import Settings
from osoul.constants import ACCOUNT_DELINQUENT, Role
from osoul.database.db import Base, get_db
from osoul.main import create_app
from osoul.models import models  # noqa: F401  (registers tables on Base)
from osoul.models.models import (
    Branch,
    CollectionCase,
    CollectionTransaction,
    Customer,
    FinanceAccount,
    User,
)
from osoul.services.reporting import bucket_for
from osoul.utils.auth import create_access_token, hash_password

# SQLite file; in-memory databases don't survive across connections
TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///./test_unit.db")
PASSWORD = "secret123"


# ---------- ENGINE (session-scoped) ----------
@pytest.fixture(scope="session")
def engine():
    eng = create_engine(TEST_DB_URL, future=True, echo=False)
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


# ---------- DB (function-scoped) ----------
@pytest.fixture
def db(engine):
    """Fresh tables per test so UNIQUE columns (email, branch code) never collide."""
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ---------- App + get_db override ----------
@pytest.fixture
def app(db):
    application = create_app(Settings(database_url=TEST_DB_URL))

    def _get_db():
        yield db

    application.dependency_overrides[get_db] = _get_db
    yield application
    application.dependency_overrides.clear()
    application.state.db.dispose()


@pytest.fixture
def client(app):
    return TestClient(app)


# ---------- Users ----------
@pytest.fixture
def make_user(db):
    def _make(email, role=Role.VIEWER, password=PASSWORD, first="Test", last="User", **extra):
        user = User(
            email=email,
            password_hash=hash_password(password) if password else None,
            first_name=first,
            last_name=last,
            role=role.value if isinstance(role, Role) else role,
            **extra,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@test.local", Role.ADMIN, first="Admin")


@pytest.fixture
def viewer(make_user):
    return make_user("viewer@test.local", Role.VIEWER, first="Viewer")


@pytest.fixture
def collector(make_user):
    return make_user("collector@test.local", Role.COLLECTOR, first="Ahmed", last="Ali")


@pytest.fixture
def headers_for(app):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user, app.state.settings)}"}
    return _headers


@pytest.fixture
def auth_headers(admin, headers_for):
    return headers_for(admin)


# ---------- Domain factories ----------
@pytest.fixture
def make_branch(db):
    def _make(code="BR001", name="Riyadh Main Branch", region="Central", city="Riyadh", **extra):
        branch = Branch(branch_code=code, branch_name=name, region=region, city=city, **extra)
        db.add(branch)
        db.commit()
        db.refresh(branch)
        return branch
    return _make


@pytest.fixture
def make_transaction(db):
    def _make(branch, amount, when, customer_id="CUST0001", **extra):
        if isinstance(when, date) and not isinstance(when, datetime):
            when = datetime(when.year, when.month, when.day, 10, 0, tzinfo=timezone.utc)
        tx = CollectionTransaction(
            branch_id=branch.id,
            transaction_date=when,
            customer_id=customer_id,
            customer_name="Abdullah Al-Rashid",
            transaction_type=extra.pop("transaction_type", "Cash"),
            amount=amount,
            **extra,
        )
        db.add(tx)
        db.commit()
        return tx
    return _make


@pytest.fixture
def make_case(db):
    """Customer + delinquent account + case in one go."""
    def _make(
        first="Abdullah",
        last="Al-Rashid",
        outstanding=10000.0,
        dpd=0,
        status="new",
        branch_code="BR001",
        product="Personal Finance",
        collector=None,
        created_at=None,
        last_payment_days_ago=None,
    ):
        customer = Customer(
            first_name=first,
            last_name=last,
            first_name_ar="عبدالله",
            last_name_ar="الراشد",
            national_id="1012345678",
        )
        db.add(customer)
        db.flush()
        account = FinanceAccount(
            customer_id=customer.id,
            product_type=product,
            outstanding_amount=outstanding,
            monthly_installment=500.0,
            dpd=dpd,
            bucket=bucket_for(dpd),
            branch_code=branch_code,
            account_status=ACCOUNT_DELINQUENT,
        )
        db.add(account)
        db.flush()
        now = datetime.now(timezone.utc)
        case = CollectionCase(
            customer_id=customer.id,
            account_id=account.id,
            case_status=status,
            priority_level="high",
            total_outstanding=outstanding,
            assigned_collector_id=collector.id if collector else None,
            created_at=created_at or now,
            last_payment_date=(
                now - timedelta(days=last_payment_days_ago) if last_payment_days_ago is not None else None
            ),
        )
        db.add(case)
        db.commit()
        db.refresh(case)
        return case
    return _make
