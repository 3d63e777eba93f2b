from __future__ import annotations

from identity.core.config import AppConfig


def test_from_env_defaults(monkeypatch) -> None:
    for name in (
        "AUTH_ISSUER",
        "AUTH_ACCESS_TOKEN_TTL_SECONDS",
        "AUTH_REFRESH_TOKEN_TTL_SECONDS",
        "AUTH_EXCHANGE_TOKEN_TTL_SECONDS",
        "AUTH_OTP_TTL_SECONDS",
        "AUTH_ENABLED",
        "BLACKLIST_SWEEP_INTERVAL_SECONDS",
        "REDIS_URL",
    ):
        monkeypatch.delenv(name, raising=False)

    config = AppConfig.from_env()

    assert config.auth.enabled is True
    assert config.auth.issuer == "self"
    assert config.auth.access_token_ttl_seconds == 3600
    assert config.auth.refresh_token_ttl_seconds == 7 * 24 * 3600
    assert config.auth.exchange_token_ttl_seconds == 900
    assert config.auth.otp_ttl_seconds == 300
    assert config.store.sweep_interval_seconds == 86400
    assert config.store.redis_url == ""


def test_from_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("AUTH_ENABLED", "false")
    monkeypatch.setenv("AUTH_OTP_TTL_SECONDS", "120")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.example, https://b.example")

    config = AppConfig.from_env()

    assert config.auth.enabled is False
    assert config.auth.otp_ttl_seconds == 120
    assert config.security.cors_allowed_origins == ["https://a.example", "https://b.example"]
