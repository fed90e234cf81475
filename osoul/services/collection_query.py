# osoul/services/collection_query.py
"""
Read side of collection cases: filtered/paginated listings, case detail,
the per-day activity report and branch stats. Every function takes an open
session and returns plain dicts already shaped for the JSON response.
"""
from collections import Counter
from datetime import date, datetime
from typing import Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from osoul.constants import (
    CASE_STATUS_ALIASES,
    TRANSACTION_COMPLETED,
    UNASSIGNED_COLLECTOR,
    UNKNOWN_COLLECTOR,
)
from osoul.errors import NotFound, ValidationError
from osoul.models.models import (
    CollectionActivity,
    CollectionCase,
    CollectionTransaction,
    Customer,
    FinanceAccount,
    PaymentTransaction,
)
from osoul.utils.money import format_sar, money_fields
from osoul.utils.pagination import Page
from osoul.utils.time_windows import as_aware_utc, date_window, utcnow

# sortBy value -> columns; anything else is rejected
SORT_COLUMNS = {
    "created_date": (CollectionCase.created_at,),
    "total_outstanding": (CollectionCase.total_outstanding,),
    "priority": (CollectionCase.priority_level,),
    "status": (CollectionCase.case_status,),
    "last_payment_date": (CollectionCase.last_payment_date,),
    "next_action_date": (CollectionCase.next_action_date,),
    "dpd": (FinanceAccount.dpd,),
    "customer_name": (Customer.first_name, Customer.last_name),
}
SORT_ORDERS = {"asc", "desc"}
RECENT_PAYMENTS_LIMIT = 10


# ---------- helpers ----------

def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_aware_utc(value).isoformat()
    return value.isoformat()


def case_number(case_id: int) -> str:
    return f"CASE{case_id:05d}"


def days_overdue(last_payment_date: Optional[datetime], now: Optional[datetime] = None) -> int:
    if last_payment_date is None:
        return 0
    now = now or utcnow()
    return max((now - as_aware_utc(last_payment_date)).days, 0)


def _collector_name(user, default: str) -> str:
    return user.full_name if user else default


_STATUS_ALIASES = {alias.lower(): values for alias, values in CASE_STATUS_ALIASES.items()}


def _status_values(status: Optional[str]):
    status = (status or "").strip().lower()
    if not status or status == "all":
        return None
    if status in _STATUS_ALIASES:
        return _STATUS_ALIASES[status]
    return [status]


def _sort_clauses(sort_by: str, sort_order: str):
    errors = []
    if sort_by not in SORT_COLUMNS:
        errors.append({"field": "sortBy", "message": f"must be one of {sorted(SORT_COLUMNS)}"})
    if sort_order not in SORT_ORDERS:
        errors.append({"field": "sortOrder", "message": "must be asc or desc"})
    if errors:
        raise ValidationError("Invalid sort", details=errors)

    columns = SORT_COLUMNS[sort_by]
    ordered = [c.asc() if sort_order == "asc" else c.desc() for c in columns]
    # stable pages
    ordered.append(CollectionCase.id.asc())
    return ordered


# ---------- view models ----------

def case_list_item(case: CollectionCase, now: Optional[datetime] = None) -> dict:
    customer = case.customer
    account = case.account
    return {
        "id": case.id,
        "caseNumber": case_number(case.id),
        "accountId": case.account_id,
        "customerInfo": {
            "id": customer.id if customer else None,
            "name": customer.full_name if customer else "",
            "nameAr": customer.full_name_ar if customer else "",
            "nationalId": customer.national_id if customer else None,
            "riskCategory": customer.risk_category if customer else None,
        },
        "accountInfo": {
            "productType": account.product_type if account else None,
            **money_fields("outstandingAmount", account.outstanding_amount if account else 0),
            **money_fields("monthlyInstallment", account.monthly_installment if account else 0),
            "dpd": (account.dpd or 0) if account else 0,
            "bucket": account.bucket if account else None,
        },
        "caseInfo": {
            "status": case.case_status,
            "priority": case.priority_level,
            **money_fields("totalOutstanding", case.total_outstanding),
            "lastPaymentDate": _iso(case.last_payment_date),
            "lastContactDate": _iso(case.last_contact_date),
            "nextActionDate": _iso(case.next_action_date),
            "assignedCollector": _collector_name(case.collector, UNASSIGNED_COLLECTOR),
            "createdDate": _iso(case.created_at),
            "daysOverdue": days_overdue(case.last_payment_date, now),
        },
    }


# ---------- listings ----------

def list_cases(
    db: Session,
    page: Page,
    status: Optional[str] = None,
    search: Optional[str] = None,
    branch: Optional[str] = None,
    window: Optional[Tuple[datetime, datetime]] = None,
    sort_by: str = "created_date",
    sort_order: str = "desc",
) -> dict:
    order = _sort_clauses(sort_by, sort_order)

    q = (
        db.query(CollectionCase)
        .join(Customer, Customer.id == CollectionCase.customer_id)
        .join(FinanceAccount, FinanceAccount.id == CollectionCase.account_id)
    )

    statuses = _status_values(status)
    if statuses:
        q = q.filter(CollectionCase.case_status.in_(statuses))

    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Customer.first_name.ilike(like),
            Customer.last_name.ilike(like),
            Customer.first_name_ar.ilike(like),
            Customer.last_name_ar.ilike(like),
            Customer.national_id.ilike(like),
        ))

    if branch and branch != "all":
        q = q.filter(FinanceAccount.branch_code == branch)

    if window:
        start, end_excl = window
        q = q.filter(CollectionCase.created_at >= start, CollectionCase.created_at < end_excl)

    # Summary over the whole filtered set, not only this page
    total, total_outstanding = q.with_entities(
        func.count(CollectionCase.id),
        func.coalesce(func.sum(CollectionCase.total_outstanding), 0.0),
    ).one()
    status_rows = (
        q.with_entities(CollectionCase.case_status, func.count(CollectionCase.id))
        .group_by(CollectionCase.case_status)
        .all()
    )

    cases = q.order_by(*order).offset(page.offset).limit(page.limit).all()
    now = utcnow()
    accounts = [case_list_item(c, now) for c in cases]

    total = int(total or 0)
    total_outstanding = float(total_outstanding or 0)
    return {
        "accounts": accounts,
        "pagination": page.meta(total),
        "summary": {
            "totalCases": total,
            "totalOutstanding": format_sar(total_outstanding),
            "totalOutstandingRaw": total_outstanding,
            "statusCounts": {(s or "unknown"): int(n) for s, n in status_rows},
        },
    }


def get_case_detail(db: Session, case_id: int) -> dict:
    case = db.get(CollectionCase, case_id)
    if not case:
        raise NotFound("Collection account not found")

    customer = case.customer
    account = case.account
    now = utcnow()

    payments = (
        db.query(PaymentTransaction)
        .filter(PaymentTransaction.account_id == case.account_id)
        .order_by(PaymentTransaction.payment_date.desc(), PaymentTransaction.id.desc())
        .limit(RECENT_PAYMENTS_LIMIT)
        .all()
    )

    return {
        "id": case.id,
        "caseNumber": case_number(case.id),
        "customerInfo": {
            "id": customer.id,
            "firstName": customer.first_name,
            "lastName": customer.last_name,
            "firstNameAr": customer.first_name_ar,
            "lastNameAr": customer.last_name_ar,
            "name": customer.full_name,
            "nameAr": customer.full_name_ar,
            "nationalId": customer.national_id,
            "riskCategory": customer.risk_category,
            "phone": customer.phone,
        } if customer else None,
        "accountInfo": {
            "id": account.id,
            "customerId": account.customer_id,
            "productType": account.product_type,
            **money_fields("outstandingAmount", account.outstanding_amount),
            **money_fields("monthlyInstallment", account.monthly_installment),
            "dpd": account.dpd or 0,
            "bucket": account.bucket,
            "branchCode": account.branch_code,
            "accountStatus": account.account_status,
        } if account else None,
        "caseInfo": {
            "id": case.id,
            "accountId": case.account_id,
            "status": case.case_status,
            "priority": case.priority_level,
            **money_fields("totalOutstanding", case.total_outstanding),
            "lastPaymentDate": _iso(case.last_payment_date),
            "lastContactDate": _iso(case.last_contact_date),
            "nextActionDate": _iso(case.next_action_date),
            "assignedCollector": _collector_name(case.collector, UNASSIGNED_COLLECTOR),
            "createdDate": _iso(case.created_at),
            "daysOverdue": days_overdue(case.last_payment_date, now),
        },
        # relationship is ordered most recent first
        "activities": [
            {
                "id": a.id,
                "activityType": a.activity_type,
                "activityResult": a.activity_result,
                "activityDatetime": _iso(a.activity_datetime),
                "notes": a.notes,
                "promiseDate": _iso(a.promise_date),
                **money_fields("promiseAmount", a.promise_amount),
                "collectorName": _collector_name(a.collector, UNKNOWN_COLLECTOR),
            }
            for a in case.activities
        ],
        "recentPayments": [
            {
                "id": p.id,
                "paymentDate": _iso(p.payment_date),
                **money_fields("paymentAmount", p.payment_amount),
                "paymentMethod": p.payment_method,
                "receiptNumber": p.receipt_number,
                "transactionStatus": p.transaction_status,
            }
            for p in payments
        ],
    }


# ---------- daily report ----------

def daily_report(db: Session, day: date, collector_id: Optional[int] = None) -> dict:
    start, end_excl = date_window(day, day)

    aq = (
        db.query(CollectionActivity)
        .options(joinedload(CollectionActivity.case))
        .filter(CollectionActivity.activity_datetime >= start)
        .filter(CollectionActivity.activity_datetime < end_excl)
    )
    if collector_id is not None:
        aq = aq.filter(CollectionActivity.collector_id == collector_id)
    activities = aq.order_by(CollectionActivity.activity_datetime.asc(), CollectionActivity.id.asc()).all()

    pq = (
        db.query(PaymentTransaction)
        .options(joinedload(PaymentTransaction.account).joinedload(FinanceAccount.customer))
        .filter(PaymentTransaction.transaction_status == TRANSACTION_COMPLETED)
        .filter(PaymentTransaction.payment_date >= start)
        .filter(PaymentTransaction.payment_date < end_excl)
    )
    if collector_id is not None:
        pq = pq.filter(PaymentTransaction.collected_by == collector_id)
    payments = pq.order_by(PaymentTransaction.payment_date.asc(), PaymentTransaction.id.asc()).all()

    total_collected = sum(float(p.payment_amount or 0) for p in payments)
    promises = [a for a in activities if (a.promise_amount or 0) > 0]
    total_promised = sum(float(a.promise_amount or 0) for a in activities)

    def _case_customer(activity):
        return activity.case.customer if activity.case else None

    def _payment_customer(payment):
        return payment.account.customer if payment.account else None

    return {
        "date": day.isoformat(),
        "collector": collector_id if collector_id is not None else "all",
        "summary": {
            "totalActivities": len(activities),
            "totalPayments": len(payments),
            "totalAmountCollected": format_sar(total_collected),
            "totalAmountCollectedRaw": total_collected,
            "promisesToPay": len(promises),
            "totalPromiseAmount": format_sar(total_promised),
            "totalPromiseAmountRaw": total_promised,
        },
        "breakdown": {
            "activitiesByType": dict(Counter(a.activity_type or "unknown" for a in activities)),
            "activitiesByResult": dict(Counter(a.activity_result or "unknown" for a in activities)),
            "paymentMethods": dict(Counter(p.payment_method or "unknown" for p in payments)),
        },
        "activities": [
            {
                "id": a.id,
                "type": a.activity_type,
                "result": a.activity_result,
                "datetime": _iso(a.activity_datetime),
                "customerName": _case_customer(a).full_name if _case_customer(a) else "",
                "customerNameAr": _case_customer(a).full_name_ar if _case_customer(a) else "",
                "collectorName": _collector_name(a.collector, UNKNOWN_COLLECTOR),
                "promiseAmount": a.promise_amount,
                "notes": a.notes,
            }
            for a in activities
        ],
        "payments": [
            {
                "id": p.id,
                **money_fields("amount", p.payment_amount),
                "method": p.payment_method,
                "customerName": _payment_customer(p).full_name if _payment_customer(p) else "",
                "customerNameAr": _payment_customer(p).full_name_ar if _payment_customer(p) else "",
                "receiptNumber": p.receipt_number,
            }
            for p in payments
        ],
    }


# ---------- branch stats ----------

def branch_stats(db: Session, branch_id: int, window: Optional[Tuple[datetime, datetime]] = None) -> dict:
    q = db.query(
        func.count(CollectionTransaction.id),
        func.coalesce(func.sum(CollectionTransaction.amount), 0.0),
        func.coalesce(func.avg(CollectionTransaction.amount), 0.0),
        func.count(func.distinct(CollectionTransaction.customer_id)),
    ).filter(
        CollectionTransaction.branch_id == branch_id,
        CollectionTransaction.status == TRANSACTION_COMPLETED,
    )
    if window:
        start, end_excl = window
        q = q.filter(
            CollectionTransaction.transaction_date >= start,
            CollectionTransaction.transaction_date < end_excl,
        )

    count, total, avg, customers = q.one()
    return {
        "branchId": branch_id,
        "transactionCount": int(count or 0),
        **money_fields("totalCollected", total),
        **money_fields("averageTransaction", avg),
        "uniqueCustomers": int(customers or 0),
    }
