# osoul/tests/test_dashboard.py
from datetime import date, datetime, timedelta, timezone

import pytest

from osoul.models.models import CollectorTarget, PaymentTransaction, PromiseToPay

BASE = "/api/v1/dashboard"
MARCH = {"startDate": "2024-03-01", "endDate": "2024-03-31"}


@pytest.fixture
def portfolio(db, make_case, collector):
    """Two branches, four accounts spread over the aging buckets."""
    cases = [
        make_case(first="Current", dpd=0, outstanding=4000.0, branch_code="BR001", collector=collector),
        make_case(first="Early", dpd=20, outstanding=2000.0, branch_code="BR001", product="Auto Finance"),
        make_case(first="Late", dpd=120, outstanding=3000.0, branch_code="BR002", collector=collector),
        make_case(first="Written", dpd=400, outstanding=1000.0, branch_code="BR002", status="closed",
                  product="Auto Finance"),
    ]
    day = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
    db.add_all([
        PaymentTransaction(account_id=cases[0].account_id, payment_date=day, payment_amount=600.0,
                           collected_by=collector.id),
        PaymentTransaction(account_id=cases[2].account_id, payment_date=day + timedelta(days=1),
                           payment_amount=400.0, collected_by=collector.id),
        # outside March
        PaymentTransaction(account_id=cases[2].account_id, payment_date=day + timedelta(days=40),
                           payment_amount=999.0, collected_by=collector.id),
        PromiseToPay(case_id=cases[0].id, account_id=cases[0].account_id, collector_id=collector.id,
                     promise_date=date(2024, 3, 15), promise_amount=500.0, kept_flag=True, created_at=day),
        PromiseToPay(case_id=cases[2].id, account_id=cases[2].account_id, collector_id=collector.id,
                     promise_date=date(2024, 3, 16), promise_amount=500.0, kept_flag=False, created_at=day),
    ])
    db.commit()
    return cases


def test_aging_buckets_always_all_six(client, auth_headers):
    rows = client.get(f"{BASE}/aging", headers=auth_headers).json()
    assert [r["bucket"] for r in rows] == ["Current", "1-30", "31-60", "61-90", "91-180", "180+"]
    assert all(r["percentage"] == 0 and r["count"] == 0 for r in rows)


def test_aging_buckets_split_outstanding(client, auth_headers, portfolio):
    rows = {r["bucket"]: r for r in client.get(f"{BASE}/aging", headers=auth_headers).json()}
    assert rows["Current"]["amount"] == 4000.0
    assert rows["1-30"]["count"] == 1
    assert rows["91-180"]["percentage"] == 30.0
    assert rows["180+"]["percentage"] == 10.0
    assert rows["31-60"]["count"] == 0
    assert sum(r["percentage"] for r in rows.values()) == pytest.approx(100.0)

    only_br2 = client.get(f"{BASE}/aging", params={"branch": "BR002"}, headers=auth_headers).json()
    assert sum(r["count"] for r in only_br2) == 2


def test_summary_kpis(client, auth_headers, portfolio):
    r = client.get(f"{BASE}/summary", params=MARCH, headers=auth_headers)
    assert r.status_code == 200, r.text
    kpi = r.json()
    assert kpi["totalOutstanding"] == 10000.0
    assert kpi["totalCollected"] == 1000.0
    assert kpi["collectionRate"] == 10.0
    assert kpi["activeAccounts"] == 4
    assert kpi["accountsCollected"] == 2
    assert kpi["activeCases"] == 3
    assert kpi["promisesToPay"] == 2
    assert kpi["ptpKept"] == 1
    assert kpi["ptpKeptRate"] == 50.0
    assert kpi["nplAmount"] == 4000.0
    assert kpi["nplRatio"] == 40.0
    assert kpi["avgDPD"] == 135
    assert (kpi["startDate"], kpi["endDate"]) == ("2024-03-01", "2024-03-31")


def test_summary_empty_portfolio_has_zero_ratios(client, auth_headers):
    kpi = client.get(f"{BASE}/summary", headers=auth_headers).json()
    assert kpi["collectionRate"] == 0
    assert kpi["nplRatio"] == 0
    assert kpi["ptpKeptRate"] == 0


def test_trends_weekly_are_gap_filled(client, auth_headers, portfolio):
    r = client.get(f"{BASE}/trends/weekly", params=MARCH, headers=auth_headers)
    assert r.status_code == 200, r.text
    points = r.json()
    # 2024-03-01 is a Friday: the first ISO week starts on Feb 26
    assert points[0]["date"] == "2024-W09"
    assert len(points) == 5
    assert sum(p["collected"] for p in points) == 1000.0
    assert sum(p["ptp"] for p in points) == 2
    assert all(p["target"] == 400000.0 for p in points)


def test_trends_unknown_period(client, auth_headers):
    r = client.get(f"{BASE}/trends/yearly", headers=auth_headers)
    assert r.status_code == 400


def test_collector_performance(client, db, auth_headers, portfolio, collector):
    db.add(CollectorTarget(collector_id=collector.id, target_month=3, target_year=2024, target_amount=2000.0))
    db.commit()
    rows = client.get(f"{BASE}/collector-performance", params=MARCH, headers=auth_headers).json()
    assert len(rows) == 1
    row = rows[0]
    assert row["name"] == "Ahmed Ali"
    assert row["cases"] == 2
    assert row["assignedAmount"] == 7000.0
    assert row["collected"] == 1000.0
    assert row["target"] == 2000.0
    assert row["achievementPercentage"] == 50.0
    assert row["ptpObtained"] == 2
    assert row["ptpRate"] == 50.0


def test_collector_performance_default_target(client, auth_headers, portfolio):
    rows = client.get(f"{BASE}/collector-performance", params=MARCH, headers=auth_headers).json()
    assert rows[0]["target"] == 150000.0


def test_product_npf_sorted_by_ratio(client, auth_headers, portfolio):
    rows = client.get(f"{BASE}/product-npf", headers=auth_headers).json()
    assert [r["product"] for r in rows] == ["Personal Finance", "Auto Finance"]
    personal, auto = rows
    assert personal["amount"] == 3000.0
    assert personal["npf"] == pytest.approx(42.86)
    assert auto["npf"] == pytest.approx(33.33)
