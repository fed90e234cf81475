# osoul/services/reporting.py
"""
Aggregations behind /dashboard, /reports and the dashboard widgets.

Grouping is done in SQL on plain columns (day, month, dpd, foreign keys) and
the result is folded into periods / buckets / quarters in Python, so the same
code runs on PostgreSQL and on the SQLite test database. All money values are
floats in SAR; percentages are rounded to 2 decimals and are 0 whenever the
denominator is 0.
"""
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, case, extract, func
from sqlalchemy.orm import Session

from osoul.constants import (
    ACCOUNT_DELINQUENT,
    ACTIVE_CASE_STATUSES,
    AGING_BUCKETS,
    NPL_DPD_THRESHOLD,
    Period,
    Role,
    TRANSACTION_COMPLETED,
)
from osoul.models.models import (
    Branch,
    CollectionCase,
    CollectionTarget,
    CollectionTransaction,
    CollectorTarget,
    FinanceAccount,
    PaymentTransaction,
    PromiseToPay,
    User,
)
from osoul.utils.money import money_fields
from osoul.utils.time_windows import (
    as_aware_utc,
    as_date,
    date_window,
    default_trend_range,
    last_days_window,
    period_label,
    period_series,
    previous_window,
    truncate,
    window_dates,
)

Window = Tuple[datetime, datetime]

T = CollectionTransaction


# ===========================
# Ratios
# ===========================

def pct(numerator, denominator, digits: int = 2) -> float:
    numerator = float(numerator or 0)
    denominator = float(denominator or 0)
    if denominator == 0:
        return 0.0
    return round(numerator / denominator * 100, digits)


def growth(current, previous, digits: int = 2) -> float:
    """Growth from zero is reported as 100."""
    current = float(current or 0)
    previous = float(previous or 0)
    if previous == 0:
        return 100.0
    return round((current - previous) / previous * 100, digits)


def safe_div(numerator, denominator, digits: int = 2) -> float:
    denominator = float(denominator or 0)
    if denominator == 0:
        return 0.0
    return round(float(numerator or 0) / denominator, digits)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return as_aware_utc(dt).isoformat() if dt else None


# ===========================
# Collection transactions
# ===========================

def _completed(q, window: Optional[Window] = None, branch_id: Optional[int] = None):
    q = q.filter(T.status == TRANSACTION_COMPLETED)
    if window:
        start, end_excl = window
        q = q.filter(T.transaction_date >= start, T.transaction_date < end_excl)
    if branch_id is not None:
        q = q.filter(T.branch_id == branch_id)
    return q


def transaction_totals(db: Session, window: Optional[Window] = None, branch_id: Optional[int] = None) -> dict:
    count, total, avg, customers, branches, collectors = _completed(
        db.query(
            func.count(T.id),
            func.coalesce(func.sum(T.amount), 0.0),
            func.coalesce(func.avg(T.amount), 0.0),
            func.count(func.distinct(T.customer_id)),
            func.count(func.distinct(T.branch_id)),
            func.count(func.distinct(T.collector_id)),
        ),
        window,
        branch_id,
    ).one()
    return {
        "totalTransactions": int(count or 0),
        **money_fields("totalCollected", total),
        **money_fields("avgTransaction", round(float(avg or 0), 2)),
        "uniqueCustomers": int(customers or 0),
        "activeBranches": int(branches or 0),
        "activeCollectors": int(collectors or 0),
    }


def period_comparison(db: Session, window: Window, branch_id: Optional[int] = None) -> dict:
    """Current window against the equal-length window right before it."""
    prev_window = previous_window(*window)
    current = transaction_totals(db, window, branch_id)
    previous = transaction_totals(db, prev_window, branch_id)
    prev_start, prev_end = window_dates(*prev_window)
    return {
        "transactionGrowth": growth(current["totalTransactions"], previous["totalTransactions"]),
        "collectionGrowth": growth(current["totalCollected"], previous["totalCollected"]),
        "previousPeriod": {
            "startDate": prev_start.isoformat(),
            "endDate": prev_end.isoformat(),
            "totalTransactions": previous["totalTransactions"],
            "totalCollected": previous["totalCollected"],
        },
    }


def transaction_summary(db: Session, window: Optional[Window] = None, branch_id: Optional[int] = None) -> dict:
    return {
        "summary": transaction_totals(db, window, branch_id),
        "periodComparison": period_comparison(db, window, branch_id) if window else None,
    }


def performance_trends(
    db: Session,
    period: Period,
    dfrom: date,
    dto: date,
    branch_id: Optional[int] = None,
) -> List[dict]:
    """One point per period in [dfrom, dto], zero-filled."""
    day = func.date(T.transaction_date)
    rows = (
        _completed(
            db.query(day, T.customer_id, func.count(T.id), func.coalesce(func.sum(T.amount), 0.0)),
            date_window(dfrom, dto),
            branch_id,
        )
        .group_by(day, T.customer_id)
        .all()
    )

    counts: Dict[date, int] = defaultdict(int)
    totals: Dict[date, float] = defaultdict(float)
    customers: Dict[date, set] = defaultdict(set)
    for raw_day, customer_id, n, amount in rows:
        key = truncate(as_date(raw_day), period)
        counts[key] += int(n or 0)
        totals[key] += float(amount or 0)
        customers[key].add(customer_id)

    out = []
    for start in period_series(dfrom, dto, period):
        n = counts.get(start, 0)
        total = round(totals.get(start, 0.0), 2)
        out.append({
            "period": period_label(start, period),
            "periodDate": start.isoformat(),
            "transactionCount": n,
            "totalCollected": total,
            "avgTransaction": safe_div(total, n),
            "uniqueCustomers": len(customers.get(start, ())),
        })
    return out


def collection_by_type(db: Session, window: Optional[Window] = None, branch_id: Optional[int] = None) -> List[dict]:
    rows = (
        _completed(
            db.query(T.transaction_type, func.count(T.id), func.coalesce(func.sum(T.amount), 0.0)),
            window,
            branch_id,
        )
        .group_by(T.transaction_type)
        .all()
    )
    grand_total = sum(float(r[2] or 0) for r in rows)
    out = [
        {
            "transactionType": ttype or "unknown",
            "transactionCount": int(n or 0),
            **money_fields("totalCollected", total),
            "percentage": pct(total, grand_total),
        }
        for ttype, n, total in rows
    ]
    out.sort(key=lambda r: r["totalCollected"], reverse=True)
    return out


# ===========================
# Branches
# ===========================

def branch_comparison(
    db: Session,
    window: Optional[Window] = None,
    region: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    """Active branches ranked by collected total (dense rank, highest first)."""
    join_cond = [T.branch_id == Branch.id, T.status == TRANSACTION_COMPLETED]
    if window:
        start, end_excl = window
        join_cond += [T.transaction_date >= start, T.transaction_date < end_excl]

    total_expr = func.coalesce(func.sum(T.amount), 0.0)
    q = (
        db.query(
            Branch.id,
            Branch.branch_name,
            Branch.branch_code,
            Branch.region,
            Branch.city,
            func.count(T.id).label("transaction_count"),
            total_expr.label("total_collected"),
            func.coalesce(func.avg(T.amount), 0.0).label("avg_transaction"),
            func.count(func.distinct(T.customer_id)).label("unique_customers"),
            func.count(func.distinct(func.date(T.transaction_date))).label("active_days"),
            func.dense_rank().over(order_by=total_expr.desc()).label("collection_rank"),
        )
        .select_from(Branch)
        .outerjoin(T, and_(*join_cond))
        .filter(Branch.is_active.is_(True))
    )
    if region:
        q = q.filter(Branch.region == region)
    q = (
        q.group_by(Branch.id, Branch.branch_name, Branch.branch_code, Branch.region, Branch.city)
        .order_by(total_expr.desc(), Branch.branch_name.asc())
    )
    if limit:
        q = q.limit(limit)

    out = []
    for r in q.all():
        total = float(r.total_collected or 0)
        out.append({
            "branchId": r.id,
            "branchName": r.branch_name,
            "branchCode": r.branch_code,
            "region": r.region,
            "city": r.city,
            "transactionCount": int(r.transaction_count or 0),
            **money_fields("totalCollected", total),
            "avgTransaction": round(float(r.avg_transaction or 0), 2),
            "uniqueCustomers": int(r.unique_customers or 0),
            "activeDays": int(r.active_days or 0),
            "collectionRank": int(r.collection_rank),
            "dailyAverage": safe_div(total, r.active_days),
        })
    return out


def top_performers(db: Session, window: Window, limit: int = 10) -> dict:
    start, end_excl = window
    in_window = [
        T.status == TRANSACTION_COMPLETED,
        T.transaction_date >= start,
        T.transaction_date < end_excl,
    ]
    total_expr = func.coalesce(func.sum(T.amount), 0.0)

    branches = (
        db.query(Branch.id, Branch.branch_name, Branch.branch_code, total_expr, func.count(T.id))
        .select_from(Branch)
        .join(T, T.branch_id == Branch.id)
        .filter(*in_window)
        .group_by(Branch.id, Branch.branch_name, Branch.branch_code)
        .order_by(total_expr.desc(), Branch.branch_name.asc())
        .limit(limit)
        .all()
    )
    collectors = (
        db.query(User.id, User.first_name, User.last_name, User.email,
                 total_expr, func.count(T.id), func.coalesce(func.avg(T.amount), 0.0))
        .select_from(User)
        .join(T, T.collector_id == User.id)
        .filter(*in_window)
        .group_by(User.id, User.first_name, User.last_name, User.email)
        .order_by(total_expr.desc(), User.id.asc())
        .limit(limit)
        .all()
    )
    return {
        "topBranches": [
            {
                "branchId": bid,
                "branchName": name,
                "branchCode": code,
                **money_fields("totalCollected", total),
                "transactionCount": int(n or 0),
            }
            for bid, name, code, total, n in branches
        ],
        "topCollectors": [
            {
                "collectorId": uid,
                "collectorName": f"{first or ''} {last or ''}".strip(),
                "email": email,
                **money_fields("totalCollected", total),
                "transactionCount": int(n or 0),
                "avgTransaction": round(float(avg or 0), 2),
            }
            for uid, first, last, email, total, n, avg in collectors
        ],
    }


# ===========================
# Monthly / quarterly
# ===========================

def _year_rows(db: Session, year: int, branch_id: Optional[int] = None):
    """
    (month, branch, customer) groups for one calendar year; distinct
    customers per month/quarter are rebuilt from these.
    """
    month = extract("month", T.transaction_date)
    return (
        _completed(
            db.query(
                month.label("month"),
                Branch.id,
                Branch.branch_name,
                Branch.branch_code,
                T.customer_id,
                func.count(T.id),
                func.coalesce(func.sum(T.amount), 0.0),
                func.min(T.transaction_date),
                func.max(T.transaction_date),
            ).select_from(T).join(Branch, Branch.id == T.branch_id),
            date_window(date(year, 1, 1), date(year, 12, 31)),
            branch_id,
        )
        .group_by(month, Branch.id, Branch.branch_name, Branch.branch_code, T.customer_id)
        .all()
    )


def _branch_targets(db: Session, year: int, branch_id: Optional[int] = None) -> Dict[Tuple[int, int], float]:
    q = db.query(CollectionTarget).filter(CollectionTarget.target_year == year)
    if branch_id is not None:
        q = q.filter(CollectionTarget.branch_id == branch_id)
    return {(t.branch_id, t.target_month): float(t.target_amount or 0) for t in q.all()}


def _fold_year(db: Session, year: int, branch_id: Optional[int], period_of) -> Dict[Tuple[int, int], dict]:
    groups: Dict[Tuple[int, int], dict] = {}
    for month, bid, bname, bcode, customer_id, n, amount, first_dt, last_dt in _year_rows(db, year, branch_id):
        key = (period_of(int(month)), bid)
        g = groups.setdefault(key, {
            "branchId": bid,
            "branchName": bname,
            "branchCode": bcode,
            "count": 0,
            "total": 0.0,
            "customers": set(),
            "first": None,
            "last": None,
        })
        g["count"] += int(n or 0)
        g["total"] += float(amount or 0)
        g["customers"].add(customer_id)
        first_dt, last_dt = as_aware_utc(first_dt), as_aware_utc(last_dt)
        g["first"] = first_dt if g["first"] is None else min(g["first"], first_dt)
        g["last"] = last_dt if g["last"] is None else max(g["last"], last_dt)
    return groups


def _comparison_row(g: dict, target: float) -> dict:
    total = round(g["total"], 2)
    return {
        "branchId": g["branchId"],
        "branchName": g["branchName"],
        "branchCode": g["branchCode"],
        "transactionCount": g["count"],
        **money_fields("totalCollected", total),
        "avgTransaction": safe_div(total, g["count"]),
        "uniqueCustomers": len(g["customers"]),
        "targetAmount": target,
        "achievementPercentage": pct(total, target),
    }


def monthly_comparison(db: Session, year: int, branch_id: Optional[int] = None) -> Dict[str, List[dict]]:
    """Keyed by month number as a string ("1".."12"); months without data are absent."""
    targets = _branch_targets(db, year, branch_id)
    groups = _fold_year(db, year, branch_id, lambda m: m)

    out: Dict[str, List[dict]] = {}
    for (month, bid), g in sorted(groups.items(), key=lambda kv: (kv[0][0], kv[1]["branchName"] or "")):
        row = {"month": month, **_comparison_row(g, targets.get((bid, month), 0.0))}
        out.setdefault(str(month), []).append(row)
    return out


def _quarter(month: int) -> int:
    return (month - 1) // 3 + 1


def quarterly_comparison(db: Session, year: int, branch_id: Optional[int] = None) -> Dict[str, List[dict]]:
    """Keyed "Q1".."Q4"; the quarter target is the sum of its month targets."""
    targets: Dict[Tuple[int, int], float] = defaultdict(float)
    for (bid, month), amount in _branch_targets(db, year, branch_id).items():
        targets[(bid, _quarter(month))] += amount
    groups = _fold_year(db, year, branch_id, _quarter)

    out: Dict[str, List[dict]] = {}
    for (quarter, bid), g in sorted(groups.items(), key=lambda kv: (kv[0][0], kv[1]["branchName"] or "")):
        row = {
            "quarter": quarter,
            **_comparison_row(g, targets.get((bid, quarter), 0.0)),
            "quarterStart": _iso(g["first"]),
            "quarterEnd": _iso(g["last"]),
        }
        out.setdefault(f"Q{quarter}", []).append(row)
    return out


# ===========================
# Portfolio (finance accounts)
# ===========================

def _accounts_in_branch(q, branch_code: Optional[str]):
    if branch_code and branch_code != "all":
        q = q.filter(FinanceAccount.branch_code == branch_code)
    return q


def bucket_for(dpd: Optional[int]) -> str:
    dpd = max(int(dpd or 0), 0)
    for label, low, high in AGING_BUCKETS:
        if dpd >= low and (high is None or dpd <= high):
            return label
    return AGING_BUCKETS[-1][0]


def aging_buckets(db: Session, branch_code: Optional[str] = None) -> List[dict]:
    """All six buckets, fixed order, percentages of the filtered outstanding total."""
    rows = (
        _accounts_in_branch(
            db.query(
                FinanceAccount.dpd,
                func.count(FinanceAccount.id),
                func.coalesce(func.sum(FinanceAccount.outstanding_amount), 0.0),
            ).filter(FinanceAccount.account_status == ACCOUNT_DELINQUENT),
            branch_code,
        )
        .group_by(FinanceAccount.dpd)
        .all()
    )

    counts: Dict[str, int] = defaultdict(int)
    amounts: Dict[str, float] = defaultdict(float)
    for dpd, n, amount in rows:
        label = bucket_for(dpd)
        counts[label] += int(n or 0)
        amounts[label] += float(amount or 0)
    grand_total = sum(amounts.values())

    return [
        {
            "bucket": label,
            "count": counts.get(label, 0),
            **money_fields("amount", round(amounts.get(label, 0.0), 2)),
            "percentage": pct(amounts.get(label, 0.0), grand_total),
        }
        for label, _, _ in AGING_BUCKETS
    ]


def product_npf(db: Session, branch_code: Optional[str] = None) -> List[dict]:
    npl_expr = func.coalesce(func.sum(
        case((FinanceAccount.dpd > NPL_DPD_THRESHOLD, FinanceAccount.outstanding_amount), else_=0.0)
    ), 0.0)
    rows = (
        _accounts_in_branch(
            db.query(
                FinanceAccount.product_type,
                npl_expr,
                func.coalesce(func.sum(FinanceAccount.outstanding_amount), 0.0),
            ),
            branch_code,
        )
        .group_by(FinanceAccount.product_type)
        .all()
    )
    out = [
        {
            "product": product or "unknown",
            **money_fields("amount", npl),
            "npf": pct(npl, outstanding),
        }
        for product, npl, outstanding in rows
    ]
    out.sort(key=lambda r: (-r["npf"], r["product"]))
    return out


def portfolio_summary(
    db: Session,
    branch_code: Optional[str] = None,
    window: Optional[Window] = None,
) -> dict:
    """Dashboard KPIs; collections and PTPs default to the last 30 days."""
    window = window or last_days_window(30)
    start, end_excl = window
    dfrom, dto = window_dates(start, end_excl)

    npl_expr = func.coalesce(func.sum(
        case((FinanceAccount.dpd > NPL_DPD_THRESHOLD, FinanceAccount.outstanding_amount), else_=0.0)
    ), 0.0)
    accounts, outstanding, avg_dpd, npl = _accounts_in_branch(
        db.query(
            func.count(FinanceAccount.id),
            func.coalesce(func.sum(FinanceAccount.outstanding_amount), 0.0),
            func.coalesce(func.avg(FinanceAccount.dpd), 0.0),
            npl_expr,
        ).filter(FinanceAccount.account_status == ACCOUNT_DELINQUENT),
        branch_code,
    ).one()

    active_cases = _accounts_in_branch(
        db.query(func.count(CollectionCase.id))
        .select_from(CollectionCase)
        .join(FinanceAccount, FinanceAccount.id == CollectionCase.account_id)
        .filter(CollectionCase.case_status.in_(ACTIVE_CASE_STATUSES)),
        branch_code,
    ).scalar()

    collected, accounts_collected = _accounts_in_branch(
        db.query(
            func.coalesce(func.sum(PaymentTransaction.payment_amount), 0.0),
            func.count(func.distinct(PaymentTransaction.account_id)),
        )
        .select_from(PaymentTransaction)
        .join(FinanceAccount, FinanceAccount.id == PaymentTransaction.account_id)
        .filter(PaymentTransaction.transaction_status == TRANSACTION_COMPLETED)
        .filter(PaymentTransaction.payment_date >= start, PaymentTransaction.payment_date < end_excl),
        branch_code,
    ).one()

    ptps, kept = _accounts_in_branch(
        db.query(
            func.count(PromiseToPay.id),
            func.coalesce(func.sum(case((PromiseToPay.kept_flag.is_(True), 1), else_=0)), 0),
        )
        .select_from(PromiseToPay)
        .join(FinanceAccount, FinanceAccount.id == PromiseToPay.account_id)
        .filter(PromiseToPay.promise_date >= dfrom, PromiseToPay.promise_date <= dto),
        branch_code,
    ).one()

    outstanding = float(outstanding or 0)
    collected = float(collected or 0)
    return {
        **money_fields("totalOutstanding", outstanding),
        **money_fields("totalCollected", collected),
        "collectionRate": pct(collected, outstanding),
        "activeAccounts": int(accounts or 0),
        "accountsCollected": int(accounts_collected or 0),
        "activeCases": int(active_cases or 0),
        "promisesToPay": int(ptps or 0),
        "ptpKept": int(kept or 0),
        "ptpKeptRate": pct(kept, ptps),
        "avgDPD": int(round(float(avg_dpd or 0))),
        **money_fields("nplAmount", npl),
        "nplRatio": pct(npl, outstanding),
        "startDate": dfrom.isoformat(),
        "endDate": dto.isoformat(),
    }


def collection_trends(
    db: Session,
    period: Period,
    target: float,
    branch_code: Optional[str] = None,
    dfrom: Optional[date] = None,
    dto: Optional[date] = None,
) -> List[dict]:
    """Payments, paying accounts and PTPs per period; zero-filled."""
    if dfrom is None or dto is None:
        dfrom, dto = default_trend_range(period)
    start, end_excl = date_window(dfrom, dto)

    day = func.date(PaymentTransaction.payment_date)
    pay_rows = _accounts_in_branch(
        db.query(day, PaymentTransaction.account_id, func.coalesce(func.sum(PaymentTransaction.payment_amount), 0.0))
        .select_from(PaymentTransaction)
        .join(FinanceAccount, FinanceAccount.id == PaymentTransaction.account_id)
        .filter(PaymentTransaction.transaction_status == TRANSACTION_COMPLETED)
        .filter(PaymentTransaction.payment_date >= start, PaymentTransaction.payment_date < end_excl),
        branch_code,
    ).group_by(day, PaymentTransaction.account_id).all()

    ptp_rows = _accounts_in_branch(
        db.query(PromiseToPay.promise_date, func.count(PromiseToPay.id))
        .select_from(PromiseToPay)
        .join(FinanceAccount, FinanceAccount.id == PromiseToPay.account_id)
        .filter(PromiseToPay.promise_date >= dfrom, PromiseToPay.promise_date <= dto),
        branch_code,
    ).group_by(PromiseToPay.promise_date).all()

    collected: Dict[date, float] = defaultdict(float)
    accounts: Dict[date, set] = defaultdict(set)
    for raw_day, account_id, amount in pay_rows:
        key = truncate(as_date(raw_day), period)
        collected[key] += float(amount or 0)
        accounts[key].add(account_id)

    ptps: Dict[date, int] = defaultdict(int)
    for promise_day, n in ptp_rows:
        ptps[truncate(as_date(promise_day), period)] += int(n or 0)

    return [
        {
            "date": period_label(p, period),
            "collected": round(collected.get(p, 0.0), 2),
            "accounts": len(accounts.get(p, ())),
            "ptp": ptps.get(p, 0),
            "target": target,
        }
        for p in period_series(dfrom, dto, period)
    ]


# ===========================
# Collectors
# ===========================

def collector_performance(
    db: Session,
    default_target: float,
    branch_code: Optional[str] = None,
    window: Optional[Window] = None,
) -> List[dict]:
    """
    Per active collector: assigned cases, collected in the window, PTPs
    created in the window and the target of the window's last month.
    """
    window = window or last_days_window(30)
    start, end_excl = window
    _, last_day = window_dates(start, end_excl)

    cq = db.query(User).filter(User.role == Role.COLLECTOR.value, User.is_active.is_(True))
    if branch_code and branch_code != "all":
        in_branch = (
            db.query(CollectionCase.id)
            .join(FinanceAccount, FinanceAccount.id == CollectionCase.account_id)
            .filter(CollectionCase.assigned_collector_id == User.id)
            .filter(FinanceAccount.branch_code == branch_code)
            .exists()
        )
        cq = cq.filter(in_branch)
    collectors = cq.order_by(User.id.asc()).all()
    if not collectors:
        return []
    ids = [c.id for c in collectors]

    cases = {
        cid: (int(n or 0), float(amount or 0))
        for cid, n, amount in db.query(
            CollectionCase.assigned_collector_id,
            func.count(CollectionCase.id),
            func.coalesce(func.sum(CollectionCase.total_outstanding), 0.0),
        )
        .filter(CollectionCase.assigned_collector_id.in_(ids))
        .group_by(CollectionCase.assigned_collector_id)
        .all()
    }

    collected = {
        cid: float(amount or 0)
        for cid, amount in db.query(
            PaymentTransaction.collected_by,
            func.coalesce(func.sum(PaymentTransaction.payment_amount), 0.0),
        )
        .filter(PaymentTransaction.collected_by.in_(ids))
        .filter(PaymentTransaction.transaction_status == TRANSACTION_COMPLETED)
        .filter(PaymentTransaction.payment_date >= start, PaymentTransaction.payment_date < end_excl)
        .group_by(PaymentTransaction.collected_by)
        .all()
    }

    ptps = {
        cid: (int(n or 0), int(kept or 0))
        for cid, n, kept in db.query(
            PromiseToPay.collector_id,
            func.count(PromiseToPay.id),
            func.coalesce(func.sum(case((PromiseToPay.kept_flag.is_(True), 1), else_=0)), 0),
        )
        .filter(PromiseToPay.collector_id.in_(ids))
        .filter(PromiseToPay.created_at >= start, PromiseToPay.created_at < end_excl)
        .group_by(PromiseToPay.collector_id)
        .all()
    }

    targets = {
        t.collector_id: float(t.target_amount or 0)
        for t in db.query(CollectorTarget)
        .filter(CollectorTarget.collector_id.in_(ids))
        .filter(CollectorTarget.target_month == last_day.month, CollectorTarget.target_year == last_day.year)
        .all()
    }

    out = []
    for c in collectors:
        n_cases, assigned = cases.get(c.id, (0, 0.0))
        obtained, kept = ptps.get(c.id, (0, 0))
        amount = round(collected.get(c.id, 0.0), 2)
        target = targets.get(c.id, default_target)
        out.append({
            "collectorId": c.id,
            "name": c.full_name,
            "cases": n_cases,
            "assignedAmount": round(assigned, 2),
            "collected": amount,
            "target": target,
            "achievementPercentage": pct(amount, target),
            "ptpObtained": obtained,
            "ptpKept": kept,
            "ptpRate": pct(kept, obtained),
        })
    out.sort(key=lambda r: (-r["collected"], r["collectorId"]))
    return out


# ===========================
# Exports
# ===========================

def export_rows(
    db: Session,
    report_type: str,
    window: Optional[Window] = None,
    branch_id: Optional[int] = None,
) -> List[dict]:
    """Flat rows (one dict per line) for csv / xlsx / json exports."""
    if report_type == "transactions":
        q = db.query(T, Branch.branch_code, Branch.branch_name).join(Branch, Branch.id == T.branch_id)
        if window:
            start, end_excl = window
            q = q.filter(T.transaction_date >= start, T.transaction_date < end_excl)
        if branch_id is not None:
            q = q.filter(T.branch_id == branch_id)
        return [
            {
                "id": t.id,
                "transactionDate": _iso(t.transaction_date),
                "branchCode": code,
                "branchName": name,
                "customerId": t.customer_id,
                "customerName": t.customer_name,
                "accountNumber": t.account_number,
                "transactionType": t.transaction_type,
                "amount": float(t.amount or 0),
                "paymentMethod": t.payment_method,
                "collectorId": t.collector_id,
                "referenceNumber": t.reference_number,
                "status": t.status,
            }
            for t, code, name in q.order_by(T.transaction_date.asc(), T.id.asc()).all()
        ]

    if report_type == "summary":
        totals = transaction_totals(db, window, branch_id)
        return [{k: v for k, v in totals.items() if not k.endswith("Formatted")}]

    # comparison
    rows = branch_comparison(db, window or last_days_window(30))
    if branch_id is not None:
        rows = [r for r in rows if r["branchId"] == branch_id]
    return [{k: v for k, v in r.items() if not k.endswith("Formatted")} for r in rows]
