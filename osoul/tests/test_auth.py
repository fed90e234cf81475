# osoul/tests/test_auth.py
from osoul.constants import Role
from osoul.utils.auth import verify_credentials

PASSWORD = "secret123"  # what the user fixtures are created with


def _login(client, email, password):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def test_login_success(client, admin):
    r = _login(client, "admin@test.local", PASSWORD)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["token"]
    assert data["user"]["email"] == "admin@test.local"
    assert data["user"]["firstName"] == "Admin"
    assert data["user"]["role"] == "admin"


def test_login_email_is_case_insensitive(client, admin):
    r = _login(client, "ADMIN@test.local", PASSWORD)
    assert r.status_code == 200, r.text


def test_login_wrong_password_and_unknown_user_look_the_same(client, admin):
    wrong = _login(client, "admin@test.local", "nope")
    unknown = _login(client, "ghost@test.local", PASSWORD)
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"error": "Invalid credentials"}


def test_login_inactive_user(client, make_user):
    make_user("gone@test.local", Role.COLLECTOR, is_active=False)
    r = _login(client, "gone@test.local", PASSWORD)
    assert r.status_code == 401


def test_login_missing_field_is_400(client):
    r = client.post("/api/v1/auth/login", json={"email": "a@b.c"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation failed"
    assert any(d["field"] == "password" for d in body["details"])


def test_me_requires_token(client):
    r = client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert "error" in r.json()


def test_me_with_garbage_token(client):
    r = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid or expired token"


def test_me_returns_current_user(client, viewer, headers_for):
    r = client.get("/api/v1/auth/me", headers=headers_for(viewer))
    assert r.status_code == 200, r.text
    assert r.json()["user"]["id"] == viewer.id


def test_token_of_deactivated_user_is_rejected(client, db, viewer, headers_for):
    headers = headers_for(viewer)
    viewer.is_active = False
    db.commit()
    r = client.get("/api/v1/auth/me", headers=headers)
    assert r.status_code == 401


# ---------- register ----------

def test_register_requires_admin(client, viewer, headers_for):
    payload = {"email": "new@test.local", "password": "abcdef", "firstName": "New", "lastName": "User"}
    r = client.post("/api/v1/auth/register", json=payload, headers=headers_for(viewer))
    assert r.status_code == 403
    assert r.json()["error"] == "Insufficient permissions"


def test_register_then_login(client, auth_headers):
    payload = {
        "email": "New@Test.local",
        "password": "abcdef",
        "firstName": "New",
        "lastName": "User",
        "role": "collector",
    }
    r = client.post("/api/v1/auth/register", json=payload, headers=auth_headers)
    assert r.status_code == 201, r.text
    assert r.json()["user"]["email"] == "new@test.local"
    assert r.json()["user"]["role"] == "collector"

    assert _login(client, "new@test.local", "abcdef").status_code == 200


def test_register_duplicate_email(client, auth_headers, viewer):
    payload = {"email": "viewer@test.local", "password": "abcdef", "firstName": "X", "lastName": "Y"}
    r = client.post("/api/v1/auth/register", json=payload, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["error"] == "User already exists"


def test_register_rejects_unknown_role_and_short_password(client, auth_headers):
    payload = {"email": "x@test.local", "password": "123", "firstName": "X", "lastName": "Y", "role": "root"}
    r = client.post("/api/v1/auth/register", json=payload, headers=auth_headers)
    assert r.status_code == 400
    fields = {d["field"] for d in r.json()["details"]}
    assert {"password", "role"} <= fields


# ---------- password change ----------

def test_change_password(client, viewer, headers_for):
    headers = headers_for(viewer)
    bad = client.put(
        "/api/v1/auth/password",
        json={"currentPassword": "wrong", "newPassword": "newpass1"},
        headers=headers,
    )
    assert bad.status_code == 401
    assert bad.json()["error"] == "Current password is incorrect"

    ok = client.put(
        "/api/v1/auth/password",
        json={"currentPassword": PASSWORD, "newPassword": "newpass1"},
        headers=headers,
    )
    assert ok.status_code == 200, ok.text
    assert _login(client, "viewer@test.local", "newpass1").status_code == 200
    assert _login(client, "viewer@test.local", PASSWORD).status_code == 401


# ---------- password policies ----------

def test_strict_policy_ignores_plain_text(client, make_user):
    make_user("old@test.local", Role.VIEWER, password=None, legacy_password="plain-pass")
    assert _login(client, "old@test.local", "plain-pass").status_code == 401


def test_legacy_policy_accepts_plain_text(client, app, make_user, monkeypatch):
    monkeypatch.setattr(app.state.settings, "password_policy", "legacy")
    make_user("old@test.local", Role.VIEWER, password=None, legacy_password="plain-pass")
    assert _login(client, "old@test.local", "plain-pass").status_code == 200
    assert _login(client, "old@test.local", "other").status_code == 401


def test_legacy_fallback_only_without_stored_credentials(app, make_user, monkeypatch):
    settings = app.state.settings
    monkeypatch.setattr(settings, "password_policy", "legacy")

    bare = make_user("bare@test.local", Role.VIEWER, password=None)
    assert verify_credentials(bare, settings.legacy_fallback_password, settings)

    hashed = make_user("hashed@test.local", Role.VIEWER)
    assert not verify_credentials(hashed, settings.legacy_fallback_password, settings)
    assert verify_credentials(hashed, PASSWORD, settings)
