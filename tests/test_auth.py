from datetime import datetime, timedelta, timezone

import jwt

from barangay_records.models import TransactionLog, User


def test_register_creates_user_with_hashed_password(client, db_session):
    resp = client.post(
        "/api/auth/register",
        json={"username": "clerk", "password": "Clerk123!", "full_name": "Ana Reyes"},
    )
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["username"] == "clerk"
    assert data["full_name"] == "Ana Reyes"
    assert data["role"] == "Staff"
    assert "password" not in data and "password_hash" not in data

    user = User.query.filter_by(username="clerk").one()
    assert user.password_hash != "Clerk123!"
    assert user.check_password("Clerk123!")


def test_register_rejects_duplicate_username(client, make_user):
    make_user("clerk")
    resp = client.post(
        "/api/auth/register",
        json={"username": "clerk", "password": "x", "full_name": "Other"},
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Username already taken."


def test_register_names_missing_fields(client):
    resp = client.post("/api/auth/register", json={"username": "clerk"})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Missing required field(s): password, full_name."


def test_login_returns_token_and_identity(client, app, make_user):
    make_user("clerk", "Clerk123!", role="Staff", full_name="Ana Reyes")
    resp = client.post("/api/auth/login", json={"username": "clerk", "password": "Clerk123!"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["user"]["username"] == "clerk"
    assert data["user"]["full_name"] == "Ana Reyes"

    claims = jwt.decode(data["token"], app.config["JWT_SECRET_KEY"], algorithms=["HS256"])
    assert claims["username"] == "clerk"
    assert claims["exp"] - claims["iat"] == 8 * 3600

    assert TransactionLog.query.filter_by(action="Logged in").count() == 1


def test_login_failure_does_not_reveal_usernames(client, make_user):
    make_user("clerk", "Clerk123!")
    wrong_password = client.post("/api/auth/login", json={"username": "clerk", "password": "nope"})
    unknown_user = client.post("/api/auth/login", json={"username": "ghost", "password": "nope"})

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.get_json() == unknown_user.get_json() == {"message": "Invalid username or password"}


def test_login_requires_both_fields(client):
    resp = client.post("/api/auth/login", json={"username": "clerk"})
    assert resp.status_code == 400
    assert "password" in resp.get_json()["message"]


def test_me_returns_identity(client, auth_headers):
    resp = client.get("/api/auth/me", headers=auth_headers("Staff", username="desk"))
    assert resp.status_code == 200
    assert resp.get_json()["username"] == "desk"


def test_missing_token_is_rejected(client):
    resp = client.post("/api/residents", json={"last_name": "Santos", "first_name": "Juan", "sex": "Male"})
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "No token provided"


def test_bad_and_expired_tokens_are_rejected(client, app, make_user):
    user = make_user("clerk")
    now = datetime.now(timezone.utc)
    expired = jwt.encode(
        {
            "id": user.id,
            "username": "clerk",
            "full_name": "Clerk",
            "role": "Staff",
            "iat": now - timedelta(hours=9),
            "exp": now - timedelta(hours=1),
        },
        app.config["JWT_SECRET_KEY"],
        algorithm="HS256",
    )
    for token in ("not-a-token", expired):
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid or expired token"


def test_token_without_bearer_prefix_is_accepted(client, app, make_user):
    from barangay_records.helpers import issue_token

    token = issue_token(make_user("clerk"))
    resp = client.get("/api/auth/me", headers={"Authorization": token})
    assert resp.status_code == 200


def test_list_reads_are_public(client):
    for path in ("/api/residents", "/api/households", "/api/incidents", "/api/services", "/api/officials"):
        resp = client.get(path)
        assert resp.status_code == 200
        assert resp.get_json() == []


def test_audit_logs_require_admin_role(client, auth_headers):
    assert client.get("/api/audit-logs", headers=auth_headers("Staff")).status_code == 403

    admin = auth_headers("Admin")
    client.post(
        "/api/residents",
        json={"last_name": "Santos", "first_name": "Juan", "sex": "Male"},
        headers=admin,
    )
    resp = client.get("/api/audit-logs?q=resident", headers=admin)
    assert resp.status_code == 200
    entries = resp.get_json()
    assert len(entries) == 1
    assert entries[0]["action"].startswith("Created resident #")
    assert entries[0]["username"] == "admin_user"
