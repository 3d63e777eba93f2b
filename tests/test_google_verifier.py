from __future__ import annotations

import time
from typing import Any

import jwt
import pytest
import requests

from identity.auth.errors import VerificationFailed
from identity.auth.google import GoogleIdentityVerifier

CLIENT_ID = "client-123.apps.googleusercontent.com"


def _id_token(rsa_key, *, kid: str = "k1", **overrides: Any) -> str:
    now = int(time.time())
    claims: dict[str, Any] = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "iat": now,
        "exp": now + 600,
        "sub": "10987654321",
        "email": "Gina@Gmail.com",
        "email_verified": True,
        "given_name": "Gina",
        "family_name": "Lopez",
    }
    claims.update(overrides)
    return jwt.encode(claims, rsa_key, algorithm="RS256", headers={"kid": kid})


def _verifier(monkeypatch, rsa_key, fetches: list[int] | None = None) -> GoogleIdentityVerifier:
    verifier = GoogleIdentityVerifier(CLIENT_ID)

    def fake_fetch() -> dict[str, Any]:
        if fetches is not None:
            fetches.append(1)
        return {"k1": rsa_key.public_key()}

    monkeypatch.setattr(verifier, "_fetch_keys", fake_fetch)
    return verifier


def test_verify_returns_identity(monkeypatch, rsa_key) -> None:
    verifier = _verifier(monkeypatch, rsa_key)

    identity = verifier.verify(_id_token(rsa_key))

    assert identity.email == "gina@gmail.com"
    assert identity.given_name == "Gina"
    assert identity.family_name == "Lopez"


def test_verify_accepts_bare_issuer_spelling(monkeypatch, rsa_key) -> None:
    verifier = _verifier(monkeypatch, rsa_key)

    assert verifier.verify(_id_token(rsa_key, iss="accounts.google.com")).email


@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "someone-else"},
        {"iss": "https://evil.example"},
        {"email_verified": False},
        {"email": ""},
        {"exp": int(time.time()) - 10},
    ],
)
def test_verify_rejects_bad_claims(monkeypatch, rsa_key, overrides) -> None:
    verifier = _verifier(monkeypatch, rsa_key)

    with pytest.raises(VerificationFailed):
        verifier.verify(_id_token(rsa_key, **overrides))


def test_verify_caches_keys_and_refetches_for_unknown_kid(monkeypatch, rsa_key) -> None:
    fetches: list[int] = []
    verifier = _verifier(monkeypatch, rsa_key, fetches)

    verifier.verify(_id_token(rsa_key))
    verifier.verify(_id_token(rsa_key))
    assert len(fetches) == 1

    with pytest.raises(VerificationFailed):
        verifier.verify(_id_token(rsa_key, kid="rotated"))
    assert len(fetches) == 2


def test_verify_fails_when_keys_unavailable(monkeypatch, rsa_key) -> None:
    verifier = GoogleIdentityVerifier(CLIENT_ID)

    def broken_fetch() -> dict[str, Any]:
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(verifier, "_fetch_keys", broken_fetch)

    with pytest.raises(VerificationFailed):
        verifier.verify(_id_token(rsa_key))


def test_verify_requires_configured_client_and_token(rsa_key) -> None:
    with pytest.raises(VerificationFailed):
        GoogleIdentityVerifier("").verify(_id_token(rsa_key))
    with pytest.raises(VerificationFailed):
        GoogleIdentityVerifier(CLIENT_ID).verify("")
    with pytest.raises(VerificationFailed):
        GoogleIdentityVerifier(CLIENT_ID).verify("garbage")
