# osoul/tests/test_branches.py
from datetime import datetime, timezone

BASE = "/api/v1/branches"


def _create(client, headers, code="BR010", name="Jeddah Branch", **extra):
    payload = {"branchCode": code, "branchName": name, "region": "Western", "city": "Jeddah", **extra}
    return client.post(BASE, json=payload, headers=headers)


def test_create_and_get_branch(client, auth_headers, admin):
    r = _create(client, auth_headers, managerId=admin.id)
    assert r.status_code == 201, r.text
    created = r.json()
    assert created["branchCode"] == "BR010"
    assert created["isActive"] is True
    assert created["managerName"] == "Admin User"

    r2 = client.get(f"{BASE}/{created['id']}", headers=auth_headers)
    assert r2.status_code == 200
    assert r2.json()["branchName"] == "Jeddah Branch"


def test_duplicate_code_conflicts(client, auth_headers):
    assert _create(client, auth_headers).status_code == 201
    r = _create(client, auth_headers, name="Another")
    assert r.status_code == 409
    assert r.json()["error"] == "Branch code already exists"


def test_unknown_manager_is_rejected(client, auth_headers):
    r = _create(client, auth_headers, managerId=9999)
    assert r.status_code == 400


def test_viewer_cannot_create(client, viewer, headers_for):
    r = _create(client, headers_for(viewer))
    assert r.status_code == 403


def test_partial_update_keeps_other_fields(client, auth_headers):
    branch_id = _create(client, auth_headers).json()["id"]
    r = client.put(f"{BASE}/{branch_id}", json={"city": "Mecca"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["city"] == "Mecca"
    assert body["branchName"] == "Jeddah Branch"
    assert body["region"] == "Western"


def test_empty_update_is_400(client, auth_headers):
    branch_id = _create(client, auth_headers).json()["id"]
    r = client.put(f"{BASE}/{branch_id}", json={}, headers=auth_headers)
    assert r.status_code == 400


def test_missing_branch_is_404(client, auth_headers):
    r = client.get(f"{BASE}/4242", headers=auth_headers)
    assert r.status_code == 404
    assert r.json() == {"error": "Branch not found"}


def test_delete_is_soft_and_filterable(client, auth_headers):
    keep = _create(client, auth_headers, code="BR011").json()["id"]
    gone = _create(client, auth_headers, code="BR012").json()["id"]

    r = client.delete(f"{BASE}/{gone}", headers=auth_headers)
    assert r.status_code == 200
    assert "deactivated" in r.json()["message"]

    # still readable by id
    assert client.get(f"{BASE}/{gone}", headers=auth_headers).json()["isActive"] is False

    active = client.get(BASE, params={"isActive": "true"}, headers=auth_headers).json()
    assert [b["id"] for b in active] == [keep]

    everything = client.get(BASE, headers=auth_headers).json()
    assert {b["id"] for b in everything} == {keep, gone}


def test_branch_stats(client, auth_headers, make_branch, make_transaction):
    branch = make_branch()
    when = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc)
    make_transaction(branch, 1000.0, when, customer_id="C1")
    make_transaction(branch, 3000.0, when, customer_id="C1")
    make_transaction(branch, 2000.0, when, customer_id="C2", status="pending")

    r = client.get(f"{BASE}/{branch.id}/stats", headers=auth_headers)
    assert r.status_code == 200, r.text
    stats = r.json()
    assert stats["branchCode"] == "BR001"
    assert stats["transactionCount"] == 2
    assert stats["totalCollected"] == 4000.0
    assert stats["averageTransaction"] == 2000.0
    assert stats["uniqueCustomers"] == 1
