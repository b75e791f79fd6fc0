"""
Authentication API tests.

Verifies:
- Login issues a bearer token; logout revokes it
- Wrong password and deactivated accounts get 401
- Lockout after repeated failures (429); the failsafe admin is exempt
- /me, /profile and /password
"""

from stockroom.models import SecurityEvent, User

from conftest import FAILSAFE_EMAIL, TEST_PASSWORD, auth_headers, get_auth_token, make_user, reload


class TestLogin:
    def test_login_success(self, client, employee):
        resp = client.post("/api/auth/login", json={"email": "EMPLOYEE@stockroom.test", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        body = resp.json
        assert len(body["token"]) == 64
        assert body["user"]["email"] == "employee@stockroom.test"
        assert body["user"]["permissions"]["can_request_handover"] is True
        assert "password_hash" not in body["user"]
        assert reload(User, employee.id).last_login_at is not None

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "x@y.com"})
        assert resp.status_code == 400
        assert "error" in resp.json

    def test_non_object_body(self, client, db_session):
        resp = client.post("/api/auth/login", json=["employee@stockroom.test", TEST_PASSWORD])
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid JSON payload"

    def test_wrong_password(self, client, employee):
        resp = client.post("/api/auth/login", json={"email": employee.email, "password": "wrong-one"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid credentials"

    def test_unknown_email(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "ghost@stockroom.test", "password": "whatever"})
        assert resp.status_code == 401

    def test_deactivated_account(self, client, db_session):
        make_user(db_session, email="off@stockroom.test", is_active=False)
        resp = client.post("/api/auth/login", json={"email": "off@stockroom.test", "password": TEST_PASSWORD})
        assert resp.status_code == 401
        assert resp.json["error"] == "Account is deactivated"

    def test_lockout_after_repeated_failures(self, client, employee):
        for _ in range(5):
            resp = client.post("/api/auth/login", json={"email": employee.email, "password": "bad-pass"})
            assert resp.status_code == 401

        resp = client.post("/api/auth/login", json={"email": employee.email, "password": TEST_PASSWORD})
        assert resp.status_code == 429
        assert resp.json["locked"] is True
        assert resp.json["retry_after_seconds"] > 0

        status = client.get(f"/api/auth/login-status?email={employee.email}")
        assert status.json["lockout"]["locked"] is True
        assert status.json["lockout"]["failed_attempts"] == 5

    def test_failsafe_never_locked(self, client, failsafe):
        for _ in range(7):
            client.post("/api/auth/login", json={"email": FAILSAFE_EMAIL, "password": "bad-pass"})
        assert get_auth_token(client, FAILSAFE_EMAIL) is not None

    def test_failed_attempts_audited(self, client, employee, db_session):
        client.post("/api/auth/login", json={"email": employee.email, "password": "bad-pass"})
        db_session.expire_all()
        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.action == employee.email
        assert event.user_id == employee.id
        assert event.success is False


class TestSession:
    def test_me(self, client, manager_headers, manager):
        resp = client.get("/api/auth/me", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["id"] == manager.id
        assert resp.json["permissions"]["can_manage_products"] is True
        assert resp.json["permissions"]["can_manage_users"] is False

    def test_me_requires_token(self, client, db_session):
        assert client.get("/api/auth/me").status_code == 401
        assert client.get("/api/auth/me", headers=auth_headers("not-a-token")).status_code == 401

    def test_logout_revokes_token(self, client, employee_headers):
        assert client.post("/api/auth/logout", headers=employee_headers).status_code == 200
        assert client.get("/api/auth/me", headers=employee_headers).status_code == 401
        assert client.post("/api/auth/logout", headers=employee_headers).status_code == 401

    def test_deactivation_kills_live_token(self, client, employee_headers, employee, db_session):
        db_session.query(User).filter_by(id=employee.id).update({"is_active": False})
        db_session.commit()
        assert client.get("/api/auth/me", headers=employee_headers).status_code == 401


class TestProfileAndPassword:
    def test_update_profile(self, client, employee_headers):
        resp = client.put("/api/auth/profile", json={"first_name": "Evelyn"}, headers=employee_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["first_name"] == "Evelyn"

    def test_profile_cannot_change_role(self, client, employee_headers):
        resp = client.put("/api/auth/profile", json={"role": "admin"}, headers=employee_headers)
        assert resp.status_code == 400

    def test_change_password(self, client, employee, employee_headers, db_session):
        resp = client.put(
            "/api/auth/password",
            json={"current_password": TEST_PASSWORD, "new_password": "another-one"},
            headers=employee_headers,
        )
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=employee_headers).status_code == 401
        assert get_auth_token(client, employee.email, "another-one") is not None

        db_session.expire_all()
        assert db_session.query(SecurityEvent).filter_by(event_type="PASSWORD_CHANGED").count() == 1

    def test_change_password_wrong_current(self, client, employee_headers):
        resp = client.put(
            "/api/auth/password",
            json={"current_password": "nope", "new_password": "another-one"},
            headers=employee_headers,
        )
        assert resp.status_code == 400

    def test_failsafe_password_change_forbidden(self, client, failsafe):
        headers = auth_headers(get_auth_token(client, FAILSAFE_EMAIL))
        resp = client.put(
            "/api/auth/password",
            json={"current_password": TEST_PASSWORD, "new_password": "another-one"},
            headers=headers,
        )
        assert resp.status_code == 403


class TestSystem:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"

    def test_login_status(self, client, db_session):
        resp = client.get("/api/auth/login-status")
        assert resp.status_code == 200
        assert resp.json["rate_limit"]["max_attempts"] == 5
        assert "lockout" not in resp.json

    def test_cors_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers.get("Access-Control-Allow-Origin") == "http://localhost:5173"
        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers
