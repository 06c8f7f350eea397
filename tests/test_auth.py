"""Tests for signup, login, logout and the dev email-confirmation endpoint."""

from unittest.mock import patch

PASSWORD = "Password123!"


def _signup(client, email, role="student", name="Auth User"):
    return client.post("/api/auth/signup", json={
        "email": email, "password": PASSWORD, "full_name": name, "role": role,
    })


def _login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", data={"username": email, "password": password})


class TestSignup:
    def test_signup_creates_user(self, client):
        resp = _signup(client, "auth_new@test.com", role="teacher", name="New Teacher")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["email"] == "auth_new@test.com"
        assert data["role"] == "teacher"
        assert data["email_confirmed"] is False
        assert "hashed_password" not in data

    def test_email_is_normalized(self, client):
        resp = _signup(client, "  Auth_Mixed@Test.com ")
        assert resp.status_code == 201
        assert resp.json()["email"] == "auth_mixed@test.com"

    def test_duplicate_email_rejected(self, client):
        _signup(client, "auth_dup@test.com")
        resp = _signup(client, "auth_dup@test.com")
        assert resp.status_code == 400
        assert "already registered" in resp.json()["detail"]

    def test_invalid_role_rejected(self, client):
        resp = _signup(client, "auth_admin@test.com", role="admin")
        assert resp.status_code == 422

    def test_short_password_rejected(self, client):
        resp = client.post("/api/auth/signup", json={
            "email": "auth_short@test.com", "password": "short", "full_name": "Short", "role": "student",
        })
        assert resp.status_code == 422


class TestLogin:
    def test_login_returns_token(self, client):
        _signup(client, "auth_login@test.com")
        resp = _login(client, "auth_login@test.com")
        assert resp.status_code == 200
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["access_token"]

    def test_token_carries_role_and_jti(self, client):
        from edumessage.api.deps import decode_token

        _signup(client, "auth_claims@test.com", role="parent")
        token = _login(client, "auth_claims@test.com").json()["access_token"]
        payload = decode_token(token)
        assert payload["role"] == "parent"
        assert payload["jti"]
        assert payload["exp"]

    def test_wrong_password(self, client):
        _signup(client, "auth_wrong@test.com")
        resp = _login(client, "auth_wrong@test.com", password="not-the-password")
        assert resp.status_code == 401

    def test_unknown_user(self, client):
        resp = _login(client, "auth_nobody@test.com")
        assert resp.status_code == 401

    def test_inactive_user_forbidden(self, client, db_session):
        from edumessage.models.user import User

        _signup(client, "auth_inactive@test.com")
        user = db_session.query(User).filter(User.email == "auth_inactive@test.com").first()
        user.is_active = False
        db_session.commit()

        resp = _login(client, "auth_inactive@test.com")
        assert resp.status_code == 403


class TestMeAndLogout:
    def test_me_requires_token(self, client):
        assert client.get("/api/users/me").status_code == 401

    def test_me_with_garbage_token(self, client):
        resp = client.get("/api/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_me_returns_profile(self, client):
        _signup(client, "auth_me@test.com", name="Me Myself")
        token = _login(client, "auth_me@test.com").json()["access_token"]
        resp = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["full_name"] == "Me Myself"

    def test_logout_revokes_token(self, client):
        _signup(client, "auth_logout@test.com")
        token = _login(client, "auth_logout@test.com").json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/users/me", headers=headers).status_code == 401


class TestConfirmEmail:
    def test_disabled_by_default(self, client):
        resp = client.post("/api/auth/confirm-email", json={"email": "auth_new@test.com"})
        assert resp.status_code == 403

    def test_confirms_in_development(self, client, db_session):
        from edumessage.models.user import User

        _signup(client, "auth_confirm@test.com")
        with patch("edumessage.core.config.settings.dev_api_enabled", True):
            resp = client.post("/api/auth/confirm-email", json={"email": "Auth_Confirm@test.com"})
        assert resp.status_code == 200

        user = db_session.query(User).filter(User.email == "auth_confirm@test.com").first()
        assert user.email_confirmed is True

    def test_unknown_email(self, client):
        with patch("edumessage.core.config.settings.dev_api_enabled", True):
            resp = client.post("/api/auth/confirm-email", json={"email": "auth_ghost@test.com"})
        assert resp.status_code == 404

    def test_blank_email(self, client):
        with patch("edumessage.core.config.settings.dev_api_enabled", True):
            resp = client.post("/api/auth/confirm-email", json={"email": "   "})
        assert resp.status_code == 400

    def test_forbidden_outside_development(self, client):
        with patch("edumessage.core.config.settings.dev_api_enabled", True), \
                patch("edumessage.core.config.settings.environment", "production"):
            resp = client.post("/api/auth/confirm-email", json={"email": "auth_new@test.com"})
        assert resp.status_code == 403
