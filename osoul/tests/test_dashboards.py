# osoul/tests/test_dashboards.py
from datetime import date

from fastapi.testclient import TestClient

from osoul.constants import DEFAULT_WIDGETS, NOT_IMPLEMENTED_DATA_SOURCE
from osoul.models.models import DashboardWidget, UserDashboard
from osoul.repositories import WidgetRepository

BASE = "/api/v1/dashboards"


def _create(client, headers, name="Ops"):
    r = client.post(BASE, json={"dashboardName": name, "layoutConfig": {"cols": 12}}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_create_seeds_default_widgets(client, auth_headers):
    dash = _create(client, auth_headers)
    assert dash["dashboardName"] == "Ops"
    assert dash["isDefault"] is False
    assert dash["layoutConfig"] == {"cols": 12}
    assert len(dash["widgets"]) == len(DEFAULT_WIDGETS)
    assert dash["widgets"][0]["widgetTitle"] == "Total Collections"


def test_list_counts_widgets(client, auth_headers):
    _create(client, auth_headers)
    rows = client.get(BASE, headers=auth_headers).json()
    assert len(rows) == 1
    assert rows[0]["widgetCount"] == len(DEFAULT_WIDGETS)


def test_only_one_default_per_user(client, auth_headers):
    first = _create(client, auth_headers, "First")
    second = _create(client, auth_headers, "Second")

    client.put(f"{BASE}/{first['id']}", json={"isDefault": True}, headers=auth_headers)
    r = client.put(f"{BASE}/{second['id']}", json={"isDefault": True}, headers=auth_headers)
    assert r.status_code == 200, r.text

    rows = client.get(BASE, headers=auth_headers).json()
    defaults = [d["id"] for d in rows if d["isDefault"]]
    assert defaults == [second["id"]]
    # default listed first
    assert rows[0]["id"] == second["id"]


def test_empty_update_is_400(client, auth_headers):
    dash = _create(client, auth_headers)
    r = client.put(f"{BASE}/{dash['id']}", json={}, headers=auth_headers)
    assert r.status_code == 400


def test_null_name_is_400(client, auth_headers):
    dash = _create(client, auth_headers)
    r = client.put(f"{BASE}/{dash['id']}", json={"dashboardName": None}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "dashboardName"

    r = client.put(f"{BASE}/{dash['id']}", json={"layoutConfig": None, "isDefault": None}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "No fields to update"}
    assert client.get(f"{BASE}/{dash['id']}", headers=auth_headers).json()["dashboardName"] == "Ops"


def test_dashboards_are_private(client, auth_headers, viewer, headers_for):
    dash = _create(client, auth_headers)
    other = headers_for(viewer)
    assert client.get(f"{BASE}/{dash['id']}", headers=other).status_code == 404
    assert client.delete(f"{BASE}/{dash['id']}", headers=other).status_code == 404
    assert client.get(BASE, headers=other).json() == []


def test_delete_cascades_widgets(client, db, auth_headers):
    dash = _create(client, auth_headers)
    r = client.delete(f"{BASE}/{dash['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert client.get(f"{BASE}/{dash['id']}", headers=auth_headers).status_code == 404
    assert db.query(DashboardWidget).filter(DashboardWidget.dashboard_id == dash["id"]).count() == 0


def test_create_rolls_back_on_widget_failure(app, db, auth_headers, monkeypatch):
    original = WidgetRepository.insert
    calls = []

    def failing_insert(self, **values):
        calls.append(values)
        if len(calls) == 3:
            raise RuntimeError("disk full")
        return original(self, **values)

    monkeypatch.setattr(WidgetRepository, "insert", failing_insert)
    r = TestClient(app, raise_server_exceptions=False).post(
        BASE, json={"dashboardName": "Ops"}, headers=auth_headers
    )
    assert r.status_code == 500
    assert db.query(UserDashboard).count() == 0
    assert db.query(DashboardWidget).count() == 0


# ---------- widgets ----------

def test_add_update_delete_widget(client, auth_headers):
    dash = _create(client, auth_headers)
    r = client.post(
        f"{BASE}/{dash['id']}/widgets",
        json={"widgetType": "pie_chart", "widgetTitle": "By type", "positionY": 6, "width": 4, "height": 3,
              "config": {"dataSource": "collection_by_type"}},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    widget = r.json()
    assert widget["dashboardId"] == dash["id"]
    assert widget["isVisible"] is True

    r = client.put(f"{BASE}/{dash['id']}/widgets/{widget['id']}", json={"widgetTitle": "Mix"},
                   headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["widgetTitle"] == "Mix"
    assert r.json()["width"] == 4

    r = client.delete(f"{BASE}/{dash['id']}/widgets/{widget['id']}", headers=auth_headers)
    assert r.status_code == 200
    detail = client.get(f"{BASE}/{dash['id']}", headers=auth_headers).json()
    assert len(detail["widgets"]) == len(DEFAULT_WIDGETS)


def test_widget_size_limits(client, auth_headers):
    dash = _create(client, auth_headers)
    r = client.post(f"{BASE}/{dash['id']}/widgets",
                    json={"widgetType": "kpi", "widgetTitle": "Too wide", "width": 13},
                    headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "width"

    widget_id = dash["widgets"][0]["id"]
    r = client.put(f"{BASE}/{dash['id']}/widgets/{widget_id}", json={"height": 0}, headers=auth_headers)
    assert r.status_code == 400


def test_widget_of_other_dashboard_is_404(client, auth_headers):
    a = _create(client, auth_headers, "A")
    b = _create(client, auth_headers, "B")
    widget_id = a["widgets"][0]["id"]
    r = client.put(f"{BASE}/{b['id']}/widgets/{widget_id}", json={"widgetTitle": "x"}, headers=auth_headers)
    assert r.status_code == 404
    assert r.json() == {"error": "Widget not found"}


# ---------- widget data ----------

def _widget(dash, title):
    return next(w for w in dash["widgets"] if w["widgetTitle"] == title)


def test_summary_card_data(client, auth_headers, make_branch, make_transaction):
    branch = make_branch()
    make_transaction(branch, 250.0, date(2024, 3, 2))
    make_transaction(branch, 750.0, date(2024, 3, 3))
    dash = _create(client, auth_headers)
    widget = _widget(dash, "Total Collections")

    r = client.get(f"{BASE}/widgets/{widget['id']}/data",
                   params={"startDate": "2024-03-01", "endDate": "2024-03-31"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["totalCollected"] == 1000.0
    assert r.json()["totalTransactions"] == 2


def test_trend_and_branch_widgets(client, auth_headers, make_branch, make_transaction):
    branch = make_branch()
    make_transaction(branch, 100.0, date(2024, 3, 2))
    dash = _create(client, auth_headers)
    params = {"startDate": "2024-03-01", "endDate": "2024-03-05"}

    trend = client.get(f"{BASE}/widgets/{_widget(dash, 'Collection Trends')['id']}/data",
                       params=params, headers=auth_headers).json()
    assert len(trend) == 5
    assert trend[1]["totalCollected"] == 100.0

    branches = client.get(f"{BASE}/widgets/{_widget(dash, 'Branch Comparison')['id']}/data",
                          params=params, headers=auth_headers).json()
    assert branches[0]["branchCode"] == "BR001"


def test_unknown_data_source_placeholder(client, auth_headers):
    dash = _create(client, auth_headers)
    widget = client.post(f"{BASE}/{dash['id']}/widgets",
                         json={"widgetType": "map", "widgetTitle": "Map", "config": {"dataSource": "geo"}},
                         headers=auth_headers).json()
    r = client.get(f"{BASE}/widgets/{widget['id']}/data", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"message": NOT_IMPLEMENTED_DATA_SOURCE}


def test_widget_data_of_other_user_is_404(client, auth_headers, viewer, headers_for):
    dash = _create(client, auth_headers)
    r = client.get(f"{BASE}/widgets/{dash['widgets'][0]['id']}/data", headers=headers_for(viewer))
    assert r.status_code == 404


def test_collection_by_type_widget(client, auth_headers, make_branch, make_transaction):
    branch = make_branch()
    make_transaction(branch, 300.0, date(2024, 3, 2), transaction_type="Cash")
    make_transaction(branch, 100.0, date(2024, 3, 2), transaction_type="Check")
    dash = _create(client, auth_headers)
    widget = client.post(f"{BASE}/{dash['id']}/widgets",
                         json={"widgetType": "pie_chart", "widgetTitle": "Mix",
                               "config": {"dataSource": "collection_by_type"}},
                         headers=auth_headers).json()

    rows = client.get(f"{BASE}/widgets/{widget['id']}/data", headers=auth_headers).json()
    assert [(r["transactionType"], r["percentage"]) for r in rows] == [("Cash", 75.0), ("Check", 25.0)]


def _add(client, headers, dash, config, widget_type="chart"):
    r = client.post(f"{BASE}/{dash['id']}/widgets",
                    json={"widgetType": widget_type, "widgetTitle": "Custom", "config": config},
                    headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_unknown_stored_period_reads_as_monthly(client, auth_headers, make_branch, make_transaction):
    branch = make_branch()
    make_transaction(branch, 100.0, date(2024, 3, 2))
    make_transaction(branch, 50.0, date(2024, 3, 20))
    dash = _create(client, auth_headers)
    widget = _add(client, auth_headers, dash, {"dataSource": "performance_trends", "period": "month"})

    r = client.get(f"{BASE}/widgets/{widget['id']}/data",
                   params={"startDate": "2024-03-01", "endDate": "2024-03-31"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert [(p["period"], p["totalCollected"]) for p in r.json()] == [("2024-03", 150.0)]


def test_branch_widget_limit_is_coerced(client, auth_headers, make_branch, make_transaction):
    make_transaction(make_branch("BR001"), 100.0, date(2024, 3, 2))
    make_transaction(make_branch("BR002", name="Jeddah Branch"), 200.0, date(2024, 3, 2))
    dash = _create(client, auth_headers)

    words = _add(client, auth_headers, dash, {"dataSource": "branch_comparison", "limit": "ten"})
    r = client.get(f"{BASE}/widgets/{words['id']}/data", headers=auth_headers)
    assert r.status_code == 200, r.text
    assert len(r.json()) == 2

    negative = _add(client, auth_headers, dash, {"dataSource": "branch_comparison", "limit": -5})
    rows = client.get(f"{BASE}/widgets/{negative['id']}/data", headers=auth_headers).json()
    assert [b["branchCode"] for b in rows] == ["BR002"]


def test_aging_widget_prefers_requested_branch(client, auth_headers, make_branch, make_case):
    make_branch("BR001")
    other = make_branch("BR002", name="Jeddah Branch")
    make_case(branch_code="BR001", dpd=10, outstanding=1000.0)
    make_case(branch_code="BR002", dpd=45, outstanding=500.0)
    dash = _create(client, auth_headers)
    widget = _add(client, auth_headers, dash, {"dataSource": "aging", "branch": "BR001"})
    url = f"{BASE}/widgets/{widget['id']}/data"

    stored = {b["bucket"]: b["count"] for b in client.get(url, headers=auth_headers).json()}
    assert stored["1-30"] == 1 and stored["31-60"] == 0

    requested = client.get(url, params={"branchId": other.id}, headers=auth_headers).json()
    counts = {b["bucket"]: b["count"] for b in requested}
    assert counts["1-30"] == 0 and counts["31-60"] == 1

    assert client.get(url, params={"branchId": 9999}, headers=auth_headers).status_code == 404
