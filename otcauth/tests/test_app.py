from __future__ import annotations

import pytest

from otcauth.database import StorageError
from otcauth.issuer import RECOVERY_MESSAGE
from otcauth.models import ChallengePurpose
from otcauth_server import create_app


@pytest.fixture
def client(temp_settings, service):
    app = create_app(temp_settings, service=service)
    app.config.update(TESTING=True)
    return app.test_client()


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


@pytest.mark.parametrize(
    "path",
    ["/send-signup-otp", "/verify-signup-otp", "/send-password-otp", "/reset-password-with-otp"],
)
def test_preflight_is_no_content(client, path):
    response = client.options(
        path,
        headers={"Origin": "http://localhost:8080", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Origin"] in ("*", "http://localhost:8080")


def test_signup_flow(client, mailer, service):
    response = client.post("/send-signup-otp", json={"email": "new@example.com"})
    assert response.status_code == 200
    assert response.get_json()["success"] is True

    response = client.post(
        "/verify-signup-otp",
        json={
            "email": "new@example.com",
            "otpCode": mailer.last_code(),
            "password": "abcdef",
            "username": "newbie",
            "fullName": "New User",
        },
    )

    body = response.get_json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["user_id"] == service.identity.find_by_email("new@example.com").id


def test_signup_for_registered_email(client, registered):
    response = client.post("/send-signup-otp", json={"email": registered})

    assert response.status_code == 400
    assert response.get_json() == {
        "success": False,
        "error": "AlreadyRegistered",
        "message": "Email already registered",
    }


def test_recovery_response_is_identical_for_unknown_email(client, registered):
    known = client.post("/send-password-otp", json={"email": registered})
    unknown = client.post("/send-password-otp", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.get_json() == unknown.get_json() == {"success": True, "message": RECOVERY_MESSAGE}


def test_reset_flow(client, registered, mailer, service):
    client.post("/send-password-otp", json={"email": registered})

    response = client.post(
        "/reset-password-with-otp",
        json={"email": registered, "otp": mailer.last_code(), "newPassword": "brand-new-pass"},
    )

    assert response.status_code == 200
    assert service.identity.verify_password(registered, "brand-new-pass")


def test_reset_with_bad_code(client, registered):
    response = client.post(
        "/reset-password-with-otp",
        json={"email": registered, "code": 123456, "newPassword": "brand-new-pass"},
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "InvalidOrExpiredCode"


def test_reset_for_missing_account_is_404(client, service, clock):
    service.store.issue("gone@example.com", "424242", ChallengePurpose.PASSWORD_RESET, clock.now)

    response = client.post(
        "/reset-password-with-otp",
        json={"email": "gone@example.com", "code": "424242", "newPassword": "brand-new-pass"},
    )

    assert response.status_code == 404
    assert response.get_json()["error"] == "AccountNotFound"


def test_weak_password_message_is_specific(client):
    response = client.post(
        "/verify-signup-otp",
        json={
            "email": "new@example.com",
            "code": "123456",
            "password": "abc",
            "username": "newbie",
            "fullName": "New User",
        },
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "WeakCredential"
    assert response.get_json()["message"] == "Password must be at least 6 characters"


@pytest.mark.parametrize("data", ["not json", "[1, 2]"])
def test_non_object_body_is_rejected(client, data):
    response = client.post("/send-signup-otp", data=data, content_type="application/json")

    assert response.status_code == 400
    assert response.get_json()["error"] == "MissingFields"


def test_storage_outage_is_generic_500(client, service, monkeypatch):
    def broken(*args, **kwargs):
        raise StorageError("could not connect to server: 10.0.0.5")

    monkeypatch.setattr(service.store, "issue", broken)

    response = client.post("/send-signup-otp", json={"email": "new@example.com"})

    assert response.status_code == 500
    body = response.get_json()
    assert body["error"] == "StorageUnavailable"
    assert "10.0.0.5" not in body["message"]


def test_oversized_username_is_400(client):
    response = client.post(
        "/verify-signup-otp",
        json={
            "email": "new@example.com",
            "code": "123456",
            "password": "abcdef",
            "username": "u" * 500,
            "fullName": "New User",
        },
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "InvalidFields"
    assert response.get_json()["message"] == "username must be at most 128 characters"
