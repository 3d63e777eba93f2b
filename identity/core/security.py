"""Password hashing and one-time secret primitives."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets

PBKDF2_ROUNDS = 120_000
OTP_DIGITS = 6
# Marker prefix that verify_password never accepts.
UNUSABLE_PASSWORD_PREFIX = "!"


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def hash_password(password: str) -> str:
    """Hash password using PBKDF2-HMAC-SHA256 with random salt."""
    salt = os.urandom(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ROUNDS)
    return f"pbkdf2_sha256${PBKDF2_ROUNDS}${_b64url_encode(salt)}${_b64url_encode(derived)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify password against a stored PBKDF2 hash."""
    if not stored_hash or stored_hash.startswith(UNUSABLE_PASSWORD_PREFIX):
        return False
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
    except (ValueError, TypeError):
        return False

    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(derived, expected)


def unusable_password_hash() -> str:
    """Return a hash placeholder that no password can ever match.

    Used for accounts created through social sign-in, which never get a
    local password until the owner runs the reset flow.
    """
    return f"{UNUSABLE_PASSWORD_PREFIX}{secrets.token_urlsafe(32)}"


def generate_otp_code() -> str:
    """Return a uniformly random zero-padded numeric one-time code."""
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def codes_match(expected: str, candidate: str) -> bool:
    """Constant-time comparison for short numeric codes."""
    return hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))
