from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from identity.core.config import AppConfig
from web_api import app as default_app
from web_api import create_app


@pytest.fixture
def app(tmp_path: Path, monkeypatch) -> FastAPI:
    monkeypatch.delenv("MONGODB_URI", raising=False)
    for name in ("REDIS_URL", "SMTP_USER", "SMTP_PASSWORD", "AUTH_PRIVATE_KEY_PEM", "AUTH_PRIVATE_KEY_PATH"):
        monkeypatch.setenv(name, "")
    monkeypatch.setenv("AUTH_ENABLED", "1")
    monkeypatch.setenv("AUTH_ADMIN_USERNAME", "admin")
    monkeypatch.setenv("AUTH_ADMIN_EMAIL", "admin@test.local")
    monkeypatch.setenv("AUTH_ADMIN_PASSWORD", "admin-pass-123")
    monkeypatch.setenv("STATE_SQLITE_PATH", "state.db")
    return create_app(AppConfig.from_env(), tmp_path)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _login(client: TestClient, username: str, password: str) -> dict:
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def _exchange_token(client: TestClient, app: FastAPI, email: str, purpose: str) -> str:
    sent = client.post("/api/auth/send-otp", json={"email": email, "purpose": purpose})
    assert sent.status_code == 200, sent.text
    code = app.state.otp_store.get(email).code
    verified = client.post(
        "/api/auth/verify-otp", json={"email": email, "otp": code, "purpose": purpose}
    )
    assert verified.status_code == 200, verified.text
    return verified.json()["token"]


def test_health_endpoint_contract_function() -> None:
    route = next(
        (
            candidate
            for candidate in default_app.routes
            if isinstance(candidate, APIRoute) and candidate.path == "/api/health"
        ),
        None,
    )

    assert route is not None
    payload = route.endpoint()
    assert payload.model_dump() == {"status": "ok"}


def test_openapi_contains_auth_error_contracts() -> None:
    schema = default_app.openapi()

    login = schema["paths"]["/api/auth/login"]["post"]
    assert login["responses"]["401"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("ApiErrorResponse")
    register = schema["paths"]["/api/auth/register"]["post"]
    assert register["responses"]["201"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("UserResponse")
    assert "409" in register["responses"]


def test_register_login_logout_flow(client: TestClient, app: FastAPI) -> None:
    token = _exchange_token(client, app, "alice@test.local", "REGISTER")

    created = client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "Alice@Test.local", "password": "alice-pass-1"},
        headers={"X-Registration-Token": token},
    )
    assert created.status_code == 201, created.text
    assert created.json()["roles"] == ["ROLE_USER"]

    session = _login(client, "alice", "alice-pass-1")
    assert session["token_type"] == "Bearer"
    me = client.get("/api/users/me", headers=_bearer(session["access_token"]))
    assert me.status_code == 200
    assert me.json()["email"] == "alice@test.local"

    logout = client.post("/api/auth/logout", headers=_bearer(session["access_token"]))
    assert logout.status_code == 204

    after = client.get("/api/users/me", headers=_bearer(session["access_token"]))
    assert after.status_code == 401
    assert after.json()["error_code"] == "UNAUTHENTICATED"


def test_protected_route_requires_bearer(client: TestClient) -> None:
    response = client.get("/api/users/me")

    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTH_MISSING_TOKEN"


def test_logout_always_succeeds(client: TestClient) -> None:
    assert client.post("/api/auth/logout").status_code == 204
    assert client.post("/api/auth/logout", headers=_bearer("garbage")).status_code == 204


def test_refresh_rotation_over_http(client: TestClient) -> None:
    session = _login(client, "admin", "admin-pass-123")

    rotated = client.post("/api/auth/refresh", json={"refresh_token": session["refresh_token"]})
    replayed = client.post("/api/auth/refresh", json={"refresh_token": session["refresh_token"]})

    assert rotated.status_code == 200
    assert replayed.status_code == 401
    assert replayed.json()["error_code"] == "AUTH_TOKEN_INVALID"


def test_login_rejects_bad_password(client: TestClient) -> None:
    response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTH_INVALID_CREDENTIALS"


def test_register_without_token_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/api/auth/register",
        json={"username": "bob", "email": "bob@test.local", "password": "bob-pass-12"},
    )

    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTH_TOKEN_INVALID"


def test_send_otp_errors(client: TestClient) -> None:
    unknown = client.post(
        "/api/auth/send-otp", json={"email": "ghost@test.local", "purpose": "RESET_PASSWORD"}
    )
    taken = client.post(
        "/api/auth/send-otp", json={"email": "admin@test.local", "purpose": "REGISTER"}
    )
    invalid = client.post("/api/auth/send-otp", json={"email": "a@b.c", "purpose": "OTHER"})

    assert unknown.status_code == 404
    assert unknown.json()["error_code"] == "USER_NOT_FOUND"
    assert taken.status_code == 409
    assert taken.json()["error_code"] == "EMAIL_ALREADY_EXISTS"
    assert invalid.status_code == 422
    assert invalid.json()["error_code"] == "VALIDATION_ERROR"


def test_reset_password_flow(client: TestClient, app: FastAPI) -> None:
    token = _exchange_token(client, app, "admin@test.local", "RESET_PASSWORD")

    mismatch = client.post(
        "/api/auth/reset-password",
        json={"password": "fresh-pass-1", "confirm_password": "fresh-pass-2"},
        headers={"X-Reset-Token": token},
    )
    reset = client.post(
        "/api/auth/reset-password",
        json={"password": "fresh-pass-1", "confirm_password": "fresh-pass-1"},
        headers={"X-Reset-Token": token},
    )

    assert mismatch.status_code == 400
    assert mismatch.json()["error_code"] == "PASSWORD_MISMATCH"
    assert reset.status_code == 200
    assert _login(client, "admin", "fresh-pass-1")["access_token"]


def test_check_user_existence(client: TestClient) -> None:
    known = client.post("/api/auth/check-user-existence", json={"email": "ADMIN@test.local"})
    unknown = client.post("/api/auth/check-user-existence", json={"email": "x@test.local"})

    assert known.json() == {"exists": True}
    assert unknown.json() == {"exists": False}


def test_update_profile(client: TestClient) -> None:
    session = _login(client, "admin", "admin-pass-123")

    response = client.patch(
        "/api/users/me",
        json={"first_name": "Ada", "dob": "1990-05-17"},
        headers=_bearer(session["access_token"]),
    )

    assert response.status_code == 200
    assert response.json()["first_name"] == "Ada"
    assert response.json()["dob"] == "1990-05-17"


def test_admin_sweep_requires_admin_role(client: TestClient, app: FastAPI) -> None:
    token = _exchange_token(client, app, "carol@test.local", "REGISTER")
    client.post(
        "/api/auth/register",
        json={"username": "carol", "email": "carol@test.local", "password": "carol-pass-1"},
        headers={"X-Registration-Token": token},
    )
    user_session = _login(client, "carol", "carol-pass-1")
    admin_session = _login(client, "admin", "admin-pass-123")

    forbidden = client.post(
        "/api/admin/blacklist/sweep", headers=_bearer(user_session["access_token"])
    )
    allowed = client.post(
        "/api/admin/blacklist/sweep", headers=_bearer(admin_session["access_token"])
    )

    assert forbidden.status_code == 403
    assert forbidden.json()["error_code"] == "UNAUTHORIZED"
    assert allowed.status_code == 200
    assert allowed.json() == {"removed": 0}


def test_google_login_over_http(client: TestClient, monkeypatch) -> None:
    from identity.auth.google import GoogleIdentityVerifier, VerifiedIdentity

    monkeypatch.setattr(
        GoogleIdentityVerifier,
        "verify",
        lambda self, id_token: VerifiedIdentity(email="gina@gmail.com", given_name="Gina"),
    )

    response = client.post("/api/auth/google", json={"id_token": "anything"})

    assert response.status_code == 200
    assert response.json()["user"]["username"] == "gina@gmail.com"


def test_toggle_biometric_requires_authentication(client: TestClient) -> None:
    anonymous = client.patch("/api/users/me/biometric", json={"enabled": True})
    session = _login(client, "admin", "admin-pass-123")
    toggled = client.patch(
        "/api/users/me/biometric",
        json={"enabled": True},
        headers=_bearer(session["access_token"]),
    )

    assert anonymous.status_code == 401
    assert toggled.status_code == 200
    assert toggled.json()["is_biometric_enabled"] is True
