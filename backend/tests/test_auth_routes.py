# Overview: Pytest coverage for login delegation and lockout throttling.

"""
Login Throttling Tests

TEST_CONFIG locks an email after 3 failed attempts for 15 minutes. The fake
identity service accepts the password "correct-horse" only.

Test Coverage:
- Successful delegation relays the identity payload
- Bodies that are not JSON objects are a 400
- Failed attempts are counted per (lower-cased) email, with a warning
- Lockout answers 429 without calling the identity service
- A successful login resets the failure count
- Lockout ends once the window has passed
"""

from datetime import timedelta

import pytest

from toursales.models import LoginAttempt
from toursales.services import login_throttle_service
from toursales.time_utils import utcnow


LOGIN_URL = "/api/v1/auth/login"


def _login(client, password, email="ana.rojas@example.com"):
    return client.post(LOGIN_URL, json={"email": email, "password": password})


class TestLogin:

    def test_success_relays_identity_payload(self, client, fake_provider, db_session):
        response = _login(client, "correct-horse")

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["token"] == "user-jwt"

        assert fake_provider.operations() == ["identity_token", "identity_login"]
        assert fake_provider.headers("identity_login")[0]["authorization"] == "system-token"
        assert fake_provider.bodies("identity_token")[0] == {"username": "system", "password": "system-pass"}

        attempt = db_session.query(LoginAttempt).one()
        assert attempt.success is True
        assert attempt.identifier == "ana.rojas@example.com"

    def test_wrong_password(self, client):
        response = _login(client, "nope")

        assert response.status_code == 401
        body = response.get_json()
        assert body == {
            "success": False,
            "message": "Invalid credentials",
            "warning": "2 attempts remaining before account lockout",
        }

    def test_missing_fields(self, client, fake_provider):
        response = client.post(LOGIN_URL, json={"email": "ana.rojas@example.com"})

        assert response.status_code == 400
        assert response.get_json()["success"] is False
        assert fake_provider.calls == []

    @pytest.mark.parametrize("body", [[1], "ana.rojas@example.com", 42])
    def test_body_must_be_object(self, client, fake_provider, body):
        response = client.post(LOGIN_URL, json=body)

        assert response.status_code == 400
        assert response.get_json() == {"success": False, "message": "Request body must be a JSON object"}
        assert fake_provider.calls == []

    def test_identity_unreachable_is_401(self, client, fake_provider):
        fake_provider.script("identity_token", unreachable=True)

        response = _login(client, "correct-horse")

        assert response.status_code == 401
        assert response.get_json()["message"] == "Identity service unreachable"


class TestLockout:

    def test_locks_after_max_failures(self, client, fake_provider):
        assert _login(client, "nope").status_code == 401
        assert _login(client, "nope", email="ANA.ROJAS@example.com").status_code == 401

        third = _login(client, "nope")
        assert third.status_code == 429
        assert third.get_json()["locked"] is True

        calls_before = len(fake_provider.calls)
        blocked = _login(client, "correct-horse")
        assert blocked.status_code == 429
        assert blocked.get_json()["retry_after_seconds"] > 0
        assert len(fake_provider.calls) == calls_before

    def test_lockout_status_endpoint(self, client):
        for _ in range(3):
            _login(client, "nope")

        response = client.get("/api/v1/auth/lockout-status/Ana.Rojas@example.com")

        assert response.status_code == 200
        status = response.get_json()
        assert status["locked"] is True
        assert status["failed_attempts"] == 3
        assert status["max_attempts"] == 3
        assert status["lockout_window_minutes"] == 15

    def test_success_resets_failures(self, client):
        _login(client, "nope")
        _login(client, "nope")
        assert _login(client, "correct-horse").status_code == 200

        assert login_throttle_service.get_recent_failed_attempts("ana.rojas@example.com") == 0
        assert _login(client, "nope").status_code == 401
        assert login_throttle_service.get_recent_failed_attempts("ana.rojas@example.com") == 1

    def test_lockout_expires(self, app, db_session, monkeypatch):
        for _ in range(3):
            login_throttle_service.record_failed_attempt("late@example.com")
        assert login_throttle_service.is_account_locked("late@example.com")[0] is True

        later = utcnow() + timedelta(minutes=16)
        monkeypatch.setattr(login_throttle_service, "utcnow", lambda: later)

        assert login_throttle_service.is_account_locked("late@example.com") == (False, None)


def test_cleanup_login_attempts(app, db_session):
    db_session.add(LoginAttempt(identifier="old@example.com", success=False, occurred_at=utcnow() - timedelta(days=120)))
    db_session.commit()
    login_throttle_service.record_failed_attempt("new@example.com")

    assert login_throttle_service.cleanup_login_attempts(retention_days=90) == 1
    assert db_session.query(LoginAttempt).count() == 1
