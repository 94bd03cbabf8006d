from datetime import timedelta

from jose import jwt

from sustainability_dashboard.api import auth
from sustainability_dashboard.core.config import settings
from sustainability_dashboard.models.common import now_utc

PASSWORD = "password123"


def test_login_success_returns_token_and_public_user(client, make_user, fake_db):
    user, _ = make_user(role="analyst", email="ana@example.com")

    r = client.post("/api/auth/login", json={"email": "ANA@example.com", "password": PASSWORD})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Login successful"
    assert body["data"]["user"]["email"] == "ana@example.com"
    assert body["data"]["user"]["_id"] == str(user["_id"])
    assert "password" not in body["data"]["user"]

    payload = jwt.decode(body["data"]["token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["sub"] == str(user["_id"])

    stored = fake_db.users._docs[user["_id"]]
    assert stored["lastLogin"] is not None


def test_login_wrong_password_and_unknown_email_look_the_same(client, make_user):
    make_user(email="ana@example.com")

    wrong = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope-nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"success": False, "error": "Invalid credentials"}


def test_login_deactivated_account(client, make_user):
    make_user(email="gone@example.com", is_active=False)
    r = client.post("/api/auth/login", json={"email": "gone@example.com", "password": PASSWORD})
    assert r.status_code == 401
    assert r.json()["error"] == "Account is deactivated"


def test_login_validation_error_uses_envelope(client):
    r = client.post("/api/auth/login", json={"email": "not-an-email", "password": PASSWORD})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_me_requires_bearer_token(client, make_user):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Token abc"}).status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_me_returns_current_user(client, make_user):
    user, headers = make_user(role="viewer", name="Vera")
    r = client.get("/api/auth/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Vera"
    assert r.json()["data"]["role"] == "viewer"
    assert "password" not in r.json()["data"]


def test_expired_token_rejected(client, make_user):
    user, _ = make_user()
    token = jwt.encode(
        {"sub": str(user["_id"]), "exp": now_utc() - timedelta(minutes=1)},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_token_for_deactivated_or_deleted_user_rejected(client, make_user, fake_db):
    user, headers = make_user()
    fake_db.users._docs[user["_id"]]["isActive"] = False
    r = client.get("/api/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["error"] == "User account is deactivated"

    del fake_db.users._docs[user["_id"]]
    r = client.get("/api/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["error"] == "User not found"


def test_register_is_admin_only(client, make_user):
    payload = {"email": "new@example.com", "name": "New", "password": "longenough"}

    assert client.post("/api/auth/register", json=payload).status_code == 401

    _, analyst_headers = make_user(role="analyst")
    r = client.post("/api/auth/register", json=payload, headers=analyst_headers)
    assert r.status_code == 403
    assert r.json()["error"] == "User role is not authorized to access this route"


def test_register_creates_user_with_hashed_password(client, make_user, fake_db):
    _, headers = make_user(role="admin")
    r = client.post(
        "/api/auth/register",
        json={
            "email": "New@Example.com",
            "name": "  New Person ",
            "password": "longenough",
            "role": "head_of_sustainability",
            "department": "Sustainability",
        },
        headers=headers,
    )
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["email"] == "new@example.com"
    assert data["name"] == "New Person"
    assert data["role"] == "head_of_sustainability"
    assert data["isActive"] is True
    assert "password" not in data

    stored = next(d for d in fake_db.users._docs.values() if d["email"] == "new@example.com")
    assert stored["password"] != "longenough"
    assert auth.verify_password("longenough", stored["password"])


def test_register_rejects_duplicates_and_bad_input(client, make_user):
    _, headers = make_user(role="admin", email="admin@example.com")

    dup = client.post(
        "/api/auth/register",
        json={"email": "admin@example.com", "name": "Again", "password": "longenough"},
        headers=headers,
    )
    assert dup.status_code == 400
    assert dup.json()["error"] == "User already exists"

    short = client.post(
        "/api/auth/register",
        json={"email": "x@example.com", "name": "X", "password": "short"},
        headers=headers,
    )
    assert short.status_code == 400

    blank = client.post(
        "/api/auth/register",
        json={"email": "y@example.com", "name": "   ", "password": "longenough"},
        headers=headers,
    )
    assert blank.status_code == 400
    assert blank.json()["error"] == "Name is required"

    bad_role = client.post(
        "/api/auth/register",
        json={"email": "z@example.com", "name": "Z", "password": "longenough", "role": "superuser"},
        headers=headers,
    )
    assert bad_role.status_code == 400


def test_update_profile(client, make_user, fake_db):
    user, headers = make_user(name="Old Name")
    r = client.put(
        "/api/auth/profile",
        json={"name": " New Name ", "department": "Utilities"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "New Name"
    assert r.json()["data"]["department"] == "Utilities"
    assert r.json()["data"]["unit"] == "Plant A"
    assert fake_db.users._docs[user["_id"]]["name"] == "New Name"

    empty = client.put("/api/auth/profile", json={"name": "  "}, headers=headers)
    assert empty.status_code == 400
    assert empty.json()["error"] == "Name cannot be empty"


def test_change_password(client, make_user):
    _, headers = make_user(email="pw@example.com")

    wrong = client.put(
        "/api/auth/change-password",
        json={"currentPassword": "not-it", "newPassword": "brand-new-pass"},
        headers=headers,
    )
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "Current password is incorrect"

    ok = client.put(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "brand-new-pass"},
        headers=headers,
    )
    assert ok.status_code == 200

    old = client.post("/api/auth/login", json={"email": "pw@example.com", "password": PASSWORD})
    assert old.status_code == 401
    new = client.post("/api/auth/login", json={"email": "pw@example.com", "password": "brand-new-pass"})
    assert new.status_code == 200


def test_list_users_admin_only(client, make_user):
    make_user(role="viewer")
    _, analyst_headers = make_user(role="analyst")
    _, admin_headers = make_user(role="admin")

    assert client.get("/api/auth/users", headers=analyst_headers).status_code == 403

    r = client.get("/api/auth/users", headers=admin_headers)
    assert r.status_code == 200
    users = r.json()["data"]
    assert len(users) == 3
    assert all("password" not in u for u in users)
