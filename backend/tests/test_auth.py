"""
Authentication tests: login, cookie and bearer sessions, logout,
password rules and multi-company accounts.
"""

import pytest

from zonecount.models import Company, SecurityEvent
from zonecount.services import auth_service, user_service
from zonecount.services.auth_service import PasswordValidationError, validate_password_strength

from conftest import PASSWORD, auth_headers, get_auth_token


class TestPasswordStrength:

    @pytest.mark.parametrize(
        "password",
        ["Sh0rt!", "password123!", "PASSWORD123!", "Password!!!", "Password123"],
    )
    def test_weak(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_strong(self):
        validate_password_strength(PASSWORD)

    def test_generated_passwords_are_strong(self):
        for _ in range(20):
            validate_password_strength(auth_service.generate_password())

    def test_verify_rejects_malformed_hash(self):
        assert auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash") is False


class TestLogin:

    def test_login_returns_token_and_cookie(self, client, admin_a, company_a):
        resp = client.post("/api/auth/login", json={"email": admin_a.email, "password": PASSWORD})

        assert resp.status_code == 200
        assert len(resp.json["token"]) == 64
        assert resp.json["company_id"] == company_a.id
        assert "MANAGE_USERS" in resp.json["permissions"]
        cookie = client.get_cookie("zonecount_session")
        assert cookie is not None
        assert cookie.value == resp.json["token"]
        assert cookie.http_only

    def test_email_is_case_insensitive(self, client, admin_a):
        assert get_auth_token(client, "  ADMIN@acme.test ") is not None

    def test_cookie_authenticates(self, client, user_a):
        client.post("/api/auth/login", json={"email": user_a.email, "password": PASSWORD})

        resp = client.get("/api/auth/me")

        assert resp.status_code == 200
        assert resp.json["user"]["name"] == "Ulrich User"
        assert "MANAGE_USERS" not in resp.json["permissions"]

    def test_wrong_password_logged(self, client, db_session, admin_a):
        resp = client.post("/api/auth/login", json={"email": admin_a.email, "password": "Wrong123!"})

        assert resp.status_code == 401
        assert db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").count() == 1

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "admin@acme.test"})
        assert resp.status_code == 400

    def test_company_id_must_be_integer(self, client, admin_a):
        resp = client.post("/api/auth/login", json={
            "email": admin_a.email, "password": PASSWORD, "company_id": "1",
        })
        assert resp.status_code == 400

    def test_inactive_company_cannot_login(self, client, db_session, admin_a, company_a):
        db_session.get(Company, company_a.id).is_active = False
        db_session.commit()

        assert get_auth_token(client, admin_a.email) is None

    def test_last_login_recorded(self, client, admin_a):
        resp = client.post("/api/auth/login", json={"email": admin_a.email, "password": PASSWORD})
        assert resp.json["user"]["last_login_at"].endswith("Z")


class TestMultiCompanyLogin:

    @pytest.fixture
    def shared_email(self, company_a, company_b):
        first, _ = user_service.register_user(company_a.id, "Sam Shared", "sam@shared.test", "user",
                                              password="FirstPass123!")
        second, _ = user_service.register_user(company_b.id, "Sam Shared", "sam@shared.test", "admin",
                                               password="SecondPass123!")
        return first, second

    def test_password_picks_the_account(self, client, shared_email):
        first, second = shared_email

        resp = client.post("/api/auth/login", json={"email": "sam@shared.test", "password": "SecondPass123!"})

        assert resp.status_code == 200
        assert resp.json["company_id"] == second.company_id

    def test_company_id_disambiguates(self, client, shared_email):
        first, second = shared_email

        wrong = client.post("/api/auth/login", json={
            "email": "sam@shared.test", "password": "FirstPass123!", "company_id": second.company_id,
        })
        right = client.post("/api/auth/login", json={
            "email": "sam@shared.test", "password": "FirstPass123!", "company_id": first.company_id,
        })

        assert wrong.status_code == 401
        assert right.status_code == 200
        assert right.json["user"]["role"] == "user"


class TestLogout:

    def test_logout_revokes_token(self, client, admin_a):
        token = get_auth_token(client, admin_a.email)
        headers = auth_headers(token)

        resp = client.post("/api/auth/logout", headers=headers)

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_logout_clears_cookie(self, client, admin_a):
        client.post("/api/auth/login", json={"email": admin_a.email, "password": PASSWORD})

        client.post("/api/auth/logout")

        assert client.get_cookie("zonecount_session") is None
        assert client.get("/api/auth/me").status_code == 401

    def test_logout_twice(self, client, admin_a):
        headers = auth_headers(get_auth_token(client, admin_a.email))
        client.post("/api/auth/logout", headers=headers)
        assert client.post("/api/auth/logout", headers=headers).status_code == 401

    def test_logout_without_token(self, client, db_session):
        assert client.post("/api/auth/logout").status_code == 401


class TestSystem:

    def test_health(self, client, db_session, company_a):
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["details"]["companies"] == 1

    def test_cli_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init"])
        second = runner.invoke(args=["system", "init"])

        assert first.exit_code == 0
        assert "PASS Created company" in first.output
        assert "already exists" in second.output
        assert db_session.query(Company).count() == 1

    def test_cors_headers_only_for_configured_origins(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "CORS_ORIGINS", ["https://scanner.acme.test"])

        allowed = client.get("/health", headers={"Origin": "https://scanner.acme.test"})
        other = client.get("/health", headers={"Origin": "http://localhost:5173"})

        assert allowed.headers["Access-Control-Allow-Origin"] == "https://scanner.acme.test"
        assert allowed.headers["Access-Control-Allow-Credentials"] == "true"
        assert "Access-Control-Allow-Origin" not in other.headers

    def test_no_cors_headers_by_default(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert "Access-Control-Allow-Origin" not in resp.headers
