from datetime import datetime, timedelta

from interview_bot.extensions import db
from interview_bot.models.notification import Notification
from interview_bot.models.user import User


def _register(client, **overrides):
    body = {"email": "Jane@Acme.io", "password": "Password123", "firstName": "Jane", "lastName": "Doe"}
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


def test_register_returns_user_and_tokens(client, app):
    resp = _register(client)
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["user"]["email"] == "jane@acme.io"
    assert data["user"]["role"] == "candidate"
    assert "passwordHash" not in data["user"]
    assert set(data["tokens"]) == {"accessToken", "refreshToken"}

    with app.app_context():
        user = User.query.filter_by(email="jane@acme.io").one()
        assert user.email_verification_token
        # welcome mail is skipped without SendGrid but still recorded
        assert Notification.query.filter_by(user_id=user.id, type="welcome").count() == 1


def test_register_downgrades_admin_role(client):
    resp = _register(client, role="admin")
    assert resp.get_json()["data"]["user"]["role"] == "candidate"


def test_register_duplicate_email(client):
    _register(client)
    resp = _register(client, email="jane@acme.io")
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "User already exists with this email"


def test_register_validation_errors(client):
    resp = _register(client, email="not-an-email", password="short")
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"email", "password"} <= fields


def test_login_and_me(client, candidate):
    resp = client.post("/api/auth/login", json={"email": candidate.email, "password": candidate.password})
    assert resp.status_code == 200
    token = resp.get_json()["data"]["tokens"]["accessToken"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["data"]["user"]["id"] == candidate.id
    assert me.get_json()["data"]["user"]["lastLogin"] is not None


def test_login_wrong_password(client, candidate):
    resp = client.post("/api/auth/login", json={"email": candidate.email, "password": "WrongPass1"})
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid credentials"


def test_token_in_query_string(client, candidate):
    token = candidate.headers["Authorization"].split()[1]
    assert client.get(f"/api/auth/me?token={token}").status_code == 200


def test_refresh_token(client):
    tokens = _register(client).get_json()["data"]["tokens"]
    resp = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["accessToken"]

    # an access token is not a refresh token
    bad = client.post("/api/auth/refresh", json={"refreshToken": tokens["accessToken"]})
    assert bad.status_code == 401
    assert bad.get_json()["message"] == "Invalid refresh token"


def test_verify_email(client, app):
    _register(client)
    with app.app_context():
        token = User.query.filter_by(email="jane@acme.io").one().email_verification_token

    assert client.post("/api/auth/verify-email", json={"token": "nope"}).status_code == 400
    resp = client.post("/api/auth/verify-email", json={"token": token})
    assert resp.status_code == 200
    with app.app_context():
        user = User.query.filter_by(email="jane@acme.io").one()
        assert user.is_email_verified
        assert user.email_verification_token is None


def test_forgot_and_reset_password(client, app, candidate):
    message = "If an account with that email exists, a password reset link has been sent"
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@acme.io"})
    assert unknown.status_code == 200
    assert unknown.get_json()["message"] == message

    resp = client.post("/api/auth/forgot-password", json={"email": candidate.email})
    assert resp.get_json()["message"] == message
    with app.app_context():
        user = db.session.get(User, candidate.id)
        token = user.password_reset_token
        assert user.password_reset_expires > datetime.utcnow() + timedelta(hours=23)

    resp = client.post("/api/auth/reset-password", json={"token": token, "password": "NewPassword1"})
    assert resp.status_code == 200
    login = client.post("/api/auth/login", json={"email": candidate.email, "password": "NewPassword1"})
    assert login.status_code == 200

    again = client.post("/api/auth/reset-password", json={"token": token, "password": "NewPassword2"})
    assert again.status_code == 400
    assert again.get_json()["message"] == "Invalid or expired reset token"


def test_forgot_password_send_failure_clears_token(client, app, candidate, monkeypatch):
    def boom(user, token):
        raise RuntimeError("smtp down")

    monkeypatch.setattr("interview_bot.services.mail.send_password_reset", boom)
    resp = client.post("/api/auth/forgot-password", json={"email": candidate.email})
    assert resp.status_code == 500
    assert resp.get_json()["message"] == "Failed to send password reset email"
    with app.app_context():
        assert db.session.get(User, candidate.id).password_reset_token is None


def test_expired_reset_token(client, app, candidate):
    with app.app_context():
        user = db.session.get(User, candidate.id)
        user.password_reset_token = "stale"
        user.password_reset_expires = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()
    resp = client.post("/api/auth/reset-password", json={"token": "stale", "password": "NewPassword1"})
    assert resp.status_code == 400


def test_change_password(client, candidate):
    wrong = client.post("/api/auth/change-password", headers=candidate.headers,
                        json={"currentPassword": "nope-nope", "newPassword": "Another123"})
    assert wrong.status_code == 400
    assert wrong.get_json()["message"] == "Current password is incorrect"

    ok = client.post("/api/auth/change-password", headers=candidate.headers,
                     json={"currentPassword": candidate.password, "newPassword": "Another123"})
    assert ok.status_code == 200
    login = client.post("/api/auth/login", json={"email": candidate.email, "password": "Another123"})
    assert login.status_code == 200


def test_logout_requires_token(client, candidate):
    assert client.post("/api/auth/logout").status_code == 401
    assert client.post("/api/auth/logout", headers=candidate.headers).status_code == 200
