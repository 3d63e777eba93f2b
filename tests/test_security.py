from __future__ import annotations

from identity.core.security import (
    codes_match,
    generate_otp_code,
    hash_password,
    unusable_password_hash,
    verify_password,
)


def test_hash_and_verify_password() -> None:
    stored = hash_password("s3cret-pass")

    assert stored.startswith("pbkdf2_sha256$")
    assert verify_password("s3cret-pass", stored) is True
    assert verify_password("wrong", stored) is False
    assert hash_password("s3cret-pass") != stored


def test_verify_password_rejects_malformed_and_unusable_hashes() -> None:
    assert verify_password("x", "") is False
    assert verify_password("x", "md5$1$abc") is False
    assert verify_password("x", "pbkdf2_sha256$notanumber$a$b") is False
    assert verify_password("", unusable_password_hash()) is False


def test_generate_otp_code_is_six_digits() -> None:
    codes = {generate_otp_code() for _ in range(200)}

    assert all(len(code) == 6 and code.isdigit() for code in codes)
    assert len(codes) > 1


def test_codes_match() -> None:
    assert codes_match("012345", "012345") is True
    assert codes_match("012345", "12345") is False
