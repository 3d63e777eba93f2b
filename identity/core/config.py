"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class AuthConfig:
    """Token lifecycle and OTP settings."""

    enabled: bool
    issuer: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    exchange_token_ttl_seconds: int
    otp_ttl_seconds: int
    private_key_pem: str
    private_key_path: str
    default_role: str
    admin_username: str
    admin_email: str
    admin_password: str


@dataclass(frozen=True)
class StoreConfig:
    """Runtime state storage settings."""

    sqlite_path: str
    redis_url: str
    sweep_interval_seconds: int


@dataclass(frozen=True)
class GoogleConfig:
    """Google sign-in settings."""

    client_id: str


@dataclass(frozen=True)
class MailConfig:
    """Outbound SMTP settings; an empty user switches to log-only delivery."""

    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    from_email: str
    from_name: str
    timeout_seconds: int


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    store: StoreConfig
    google: GoogleConfig
    mail: MailConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        issuer = os.getenv("AUTH_ISSUER", "self").strip() or "self"
        access_ttl = int(os.getenv("AUTH_ACCESS_TOKEN_TTL_SECONDS", "3600"))
        refresh_ttl = int(os.getenv("AUTH_REFRESH_TOKEN_TTL_SECONDS", "604800"))
        exchange_ttl = int(os.getenv("AUTH_EXCHANGE_TOKEN_TTL_SECONDS", "900"))
        otp_ttl = int(os.getenv("AUTH_OTP_TTL_SECONDS", "300"))
        default_role = os.getenv("AUTH_DEFAULT_ROLE", "ROLE_USER").strip() or "ROLE_USER"
        admin_email = os.getenv("AUTH_ADMIN_EMAIL", "admin@local").strip().lower()
        admin_username = os.getenv("AUTH_ADMIN_USERNAME", "admin").strip() or "admin"
        admin_password = os.getenv("AUTH_ADMIN_PASSWORD", "").strip()

        sqlite_path = (
            os.getenv("STATE_SQLITE_PATH", "runtime/identity_state.db").strip()
            or "runtime/identity_state.db"
        )
        sweep_interval = int(os.getenv("BLACKLIST_SWEEP_INTERVAL_SECONDS", "86400"))

        smtp_user = os.getenv("SMTP_USER", "").strip()
        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024)))

        return AppConfig(
            auth=AuthConfig(
                enabled=_env_flag("AUTH_ENABLED", "1"),
                issuer=issuer,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                exchange_token_ttl_seconds=exchange_ttl,
                otp_ttl_seconds=otp_ttl,
                private_key_pem=os.getenv("AUTH_PRIVATE_KEY_PEM", "").strip(),
                private_key_path=os.getenv("AUTH_PRIVATE_KEY_PATH", "").strip(),
                default_role=default_role,
                admin_username=admin_username,
                admin_email=admin_email,
                admin_password=admin_password,
            ),
            store=StoreConfig(
                sqlite_path=sqlite_path,
                redis_url=os.getenv("REDIS_URL", "").strip(),
                sweep_interval_seconds=sweep_interval,
            ),
            google=GoogleConfig(client_id=os.getenv("GOOGLE_CLIENT_ID", "").strip()),
            mail=MailConfig(
                smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com").strip(),
                smtp_port=int(os.getenv("SMTP_PORT", "587")),
                smtp_user=smtp_user,
                smtp_password=os.getenv("SMTP_PASSWORD", ""),
                from_email=os.getenv("FROM_EMAIL", smtp_user).strip(),
                from_name=os.getenv("FROM_NAME", "Identity Service").strip(),
                timeout_seconds=int(os.getenv("SMTP_TIMEOUT", "10")),
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
            ),
        )
