# osoul/seeds/seed_demo.py
"""
Demo data for local development:

    python -m osoul.seeds.seed_demo

Users (password123): admin@osoul.com, manager@osoul.com,
collector1@osoul.com, collector2@osoul.com, viewer@osoul.com.
Everything is written in one unit of work; re-running is a no-op once the
admin user exists.
"""
from __future__ import annotations

import copy
import logging
import random
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from osoul.config import Settings
from osoul.constants import ACCOUNT_DELINQUENT, DEFAULT_WIDGETS, CaseStatus, Role
from osoul.database.db import Database, atomic
from osoul.models.models import (
    Branch,
    CollectionActivity,
    CollectionCase,
    CollectionTarget,
    CollectionTransaction,
    CollectorTarget,
    Customer,
    DashboardWidget,
    FinanceAccount,
    PaymentTransaction,
    PromiseToPay,
    User,
    UserDashboard,
)
from osoul.services.reporting import bucket_for
from osoul.utils.auth import hash_password

# ==== LOGGING ====
logging.basicConfig(level=logging.INFO, format="%(levelname)s %(asctime)s %(message)s")
log = logging.getLogger("seed")

# =========================
#       CONSTANTS
# =========================
DEMO_PASSWORD = "password123"
DAYS_OF_HISTORY = 90
RANDOM_SEED = 2024

USERS = [
    ("admin@osoul.com", "Admin", "User", Role.ADMIN),
    ("manager@osoul.com", "Manager", "User", Role.MANAGER),
    ("collector1@osoul.com", "Ahmed", "Ali", Role.COLLECTOR),
    ("collector2@osoul.com", "Mohammed", "Hassan", Role.COLLECTOR),
    ("viewer@osoul.com", "Viewer", "User", Role.VIEWER),
]

BRANCHES = [
    ("BR001", "Riyadh Main Branch", "Central", "Riyadh"),
    ("BR002", "Jeddah Branch", "Western", "Jeddah"),
    ("BR003", "Dammam Branch", "Eastern", "Dammam"),
    ("BR004", "Riyadh North Branch", "Central", "Riyadh"),
    ("BR005", "Mecca Branch", "Western", "Mecca"),
]

TRANSACTION_TYPES = ["Cash", "Check", "Bank Transfer", "Credit Card"]
PAYMENT_METHODS = ["In Person", "Online", "Mobile App", "ATM"]
PRODUCT_TYPES = ["Personal Finance", "Auto Finance", "Home Finance", "Credit Card"]
ACTIVITY_TYPES = ["Call", "Visit", "SMS", "Email"]
ACTIVITY_RESULTS = ["Contacted", "No Answer", "Promise to Pay", "Refused"]

CUSTOMERS = [
    ("Abdullah", "Al-Rashid", "عبدالله", "الراشد"),
    ("Fatima", "Al-Zahrani", "فاطمة", "الزهراني"),
    ("Omar", "Al-Harbi", "عمر", "الحربي"),
    ("Aisha", "Al-Qahtani", "عائشة", "القحطاني"),
    ("Khalid", "Al-Otaibi", "خالد", "العتيبي"),
    ("Nora", "Al-Maliki", "نورة", "المالكي"),
    ("Hassan", "Al-Shehri", "حسن", "الشهري"),
    ("Maryam", "Al-Dosari", "مريم", "الدوسري"),
    ("Yousef", "Al-Ghamdi", "يوسف", "الغامدي"),
    ("Sara", "Al-Mutairi", "سارة", "المطيري"),
    ("Ibrahim", "Al-Omari", "إبراهيم", "العمري"),
    ("Layla", "Al-Shahrani", "ليلى", "الشهراني"),
]


def _at(day: date, rng: random.Random) -> datetime:
    return datetime.combine(day, time(hour=rng.randint(8, 17), minute=rng.randint(0, 59)), tzinfo=timezone.utc)


# =========================
#       SEED STEPS
# =========================

def seed_users(db: Session) -> dict:
    hashed = hash_password(DEMO_PASSWORD)
    users = {}
    for email, first, last, role in USERS:
        user = User(email=email, password_hash=hashed, first_name=first, last_name=last, role=role.value)
        db.add(user)
        users[email] = user
    db.flush()
    log.info("Users: %d", len(users))
    return users


def seed_branches(db: Session, manager: User) -> list:
    branches = [
        Branch(branch_code=code, branch_name=name, region=region, city=city, manager_id=manager.id)
        for code, name, region, city in BRANCHES
    ]
    db.add_all(branches)
    db.flush()
    log.info("Branches: %d", len(branches))
    return branches


def seed_transactions(db: Session, branches: list, collectors: list, rng: random.Random, today: date) -> int:
    count = 0
    for offset in range(DAYS_OF_HISTORY):
        day = today - timedelta(days=offset)
        for branch in branches:
            for j in range(rng.randint(5, 15)):
                first, last, _, _ = rng.choice(CUSTOMERS)
                db.add(CollectionTransaction(
                    branch_id=branch.id,
                    transaction_date=_at(day, rng),
                    customer_id=f"CUST{rng.randint(0, 999):04d}",
                    customer_name=f"{first} {last}",
                    account_number=f"ACC{rng.randint(0, 9999):05d}",
                    transaction_type=rng.choice(TRANSACTION_TYPES),
                    amount=round(rng.uniform(1000, 10000), 2),
                    payment_method=rng.choice(PAYMENT_METHODS),
                    collector_id=rng.choice(collectors).id,
                    reference_number=f"REF{day:%Y%m%d}{branch.id:02d}{j:03d}",
                ))
                count += 1
    db.flush()
    log.info("Collection transactions: %d", count)
    return count


def seed_targets(db: Session, branches: list, collectors: list, admin: User, rng: random.Random, year: int) -> None:
    for branch in branches:
        for month in range(1, 13):
            db.add(CollectionTarget(
                branch_id=branch.id,
                target_month=month,
                target_year=year,
                target_amount=round(rng.uniform(1_000_000, 1_500_000), 2),
                created_by=admin.id,
            ))
    for collector in collectors:
        for month in range(1, 13):
            db.add(CollectorTarget(
                collector_id=collector.id,
                target_month=month,
                target_year=year,
                target_amount=round(rng.uniform(120_000, 180_000), 2),
            ))
    db.flush()
    log.info("Targets for %d", year)


def seed_portfolio(db: Session, branches: list, collectors: list, rng: random.Random, today: date) -> None:
    """Customers, delinquent accounts, one case per account, activities, payments and PTPs."""
    n_cases = 0
    for i, (first, last, first_ar, last_ar) in enumerate(CUSTOMERS):
        customer = Customer(
            first_name=first,
            last_name=last,
            first_name_ar=first_ar,
            last_name_ar=last_ar,
            national_id=f"10{i:08d}",
            risk_category=rng.choice(["Low", "Medium", "High"]),
            phone=f"+9665{rng.randint(10000000, 99999999)}",
        )
        db.add(customer)
        db.flush()

        for _ in range(rng.randint(1, 2)):
            dpd = rng.choice([0, rng.randint(1, 30), rng.randint(31, 90), rng.randint(91, 400)])
            outstanding = round(rng.uniform(5_000, 250_000), 2)
            account = FinanceAccount(
                customer_id=customer.id,
                product_type=rng.choice(PRODUCT_TYPES),
                outstanding_amount=outstanding,
                monthly_installment=round(outstanding / rng.choice([12, 24, 36, 60]), 2),
                dpd=dpd,
                bucket=bucket_for(dpd),
                branch_code=rng.choice(branches).branch_code,
                account_status=ACCOUNT_DELINQUENT,
            )
            db.add(account)
            db.flush()

            collector = rng.choice(collectors)
            last_payment = _at(today - timedelta(days=max(dpd, 1)), rng)
            case = CollectionCase(
                customer_id=customer.id,
                account_id=account.id,
                case_status=rng.choice([s.value for s in CaseStatus]),
                priority_level=rng.choice(["low", "medium", "high"]),
                total_outstanding=outstanding,
                assigned_collector_id=collector.id,
                last_payment_date=last_payment,
                last_contact_date=_at(today - timedelta(days=rng.randint(0, 10)), rng),
                next_action_date=today + timedelta(days=rng.randint(1, 14)),
                created_at=_at(today - timedelta(days=rng.randint(0, DAYS_OF_HISTORY)), rng),
            )
            db.add(case)
            db.flush()
            n_cases += 1

            for k in range(rng.randint(1, 4)):
                day = today - timedelta(days=rng.randint(0, 29))
                result = rng.choice(ACTIVITY_RESULTS)
                promise = round(rng.uniform(500, 5000), 2) if result == "Promise to Pay" else None
                db.add(CollectionActivity(
                    case_id=case.id,
                    account_id=account.id,
                    collector_id=collector.id,
                    activity_type=rng.choice(ACTIVITY_TYPES),
                    activity_result=result,
                    activity_datetime=_at(day, rng),
                    promise_amount=promise,
                    promise_date=day + timedelta(days=7) if promise else None,
                    notes=f"Follow-up #{k + 1}",
                ))
                if promise:
                    db.add(PromiseToPay(
                        case_id=case.id,
                        account_id=account.id,
                        collector_id=collector.id,
                        promise_date=day + timedelta(days=7),
                        promise_amount=promise,
                        kept_flag=rng.random() < 0.6,
                        created_at=_at(day, rng),
                    ))

            for k in range(rng.randint(0, 3)):
                day = today - timedelta(days=rng.randint(0, 59))
                db.add(PaymentTransaction(
                    account_id=account.id,
                    payment_date=_at(day, rng),
                    payment_amount=round(rng.uniform(500, 8000), 2),
                    payment_method=rng.choice(PAYMENT_METHODS),
                    collected_by=collector.id,
                    receipt_number=f"RCT{account.id:05d}{k}",
                ))
    db.flush()
    log.info("Collection cases: %d", n_cases)


def seed_dashboard(db: Session, admin: User) -> None:
    dashboard = UserDashboard(user_id=admin.id, dashboard_name="Main Dashboard", layout_config={}, is_default=True)
    db.add(dashboard)
    db.flush()
    for widget in DEFAULT_WIDGETS:
        db.add(DashboardWidget(dashboard_id=dashboard.id, **copy.deepcopy(widget)))
    db.flush()
    log.info("Default dashboard for %s", admin.email)


def run(db: Session) -> None:
    if db.query(User).filter(User.email == USERS[0][0]).first():
        log.info("Demo data already present, nothing to do")
        return

    rng = random.Random(RANDOM_SEED)
    today = datetime.now(timezone.utc).date()

    with atomic(db):
        users = seed_users(db)
        admin = users["admin@osoul.com"]
        collectors = [u for u in users.values() if u.role == Role.COLLECTOR.value]
        branches = seed_branches(db, users["manager@osoul.com"])
        seed_transactions(db, branches, collectors, rng, today)
        seed_targets(db, branches, collectors, admin, rng, today.year)
        seed_portfolio(db, branches, collectors, rng, today)
        seed_dashboard(db, admin)
    log.info("Seeding done")


def main() -> None:
    settings = Settings.from_env()
    database = Database(settings.database_url)
    database.create_all()
    db = database.session()
    try:
        run(db)
    finally:
        db.close()
        database.dispose()


if __name__ == "__main__":
    main()
