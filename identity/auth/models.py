"""Pydantic models for the identity domain."""

from __future__ import annotations

from datetime import date
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field


class TokenType(StrEnum):
    """Value of the ``type`` claim."""

    ACCESS = "access"
    REFRESH = "refresh"
    REGISTRATION = "REGISTRATION_TOKEN"
    RESET_PASSWORD = "RESET_PASSWORD_TOKEN"


class OtpPurpose(StrEnum):
    """Flow a one-time code is allowed to unlock."""

    REGISTER = "REGISTER"
    RESET_PASSWORD = "RESET_PASSWORD"


def _normalize_email(value: str) -> str:
    return value.strip().lower()


NormalizedEmail = Annotated[str, Field(min_length=3), AfterValidator(_normalize_email)]


class AuthUser(BaseModel):
    """Persisted user identity record."""

    user_id: str
    username: str
    email: str
    password_hash: str
    roles: list[str] = Field(default_factory=list)
    first_name: str = ""
    last_name: str = ""
    dob: date | None = None
    is_active: bool = True
    account_verified: bool = False
    is_biometric_enabled: bool = False
    created_at: int = 0

    @property
    def scope(self) -> str:
        """Space-separated authority list embedded in issued tokens."""
        return " ".join(sorted(set(self.roles)))


class OtpEntry(BaseModel):
    """Pending one-time code for a single email."""

    email: str
    code: str
    purpose: OtpPurpose
    expires_at: float


class InvalidatedToken(BaseModel):
    """Blacklist row keyed by token id."""

    jti: str
    expires_at: int


class LoginRequest(BaseModel):
    """Login request payload; ``username`` may also be an email."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    """Refresh request payload."""

    refresh_token: str = Field(min_length=1)


class GoogleLoginRequest(BaseModel):
    """Google sign-in payload carrying the client-side ID token."""

    id_token: str = Field(min_length=1)


class SendOtpRequest(BaseModel):
    """OTP issuance request."""

    email: NormalizedEmail
    purpose: OtpPurpose


class VerifyOtpRequest(BaseModel):
    """OTP verification request."""

    email: NormalizedEmail
    otp: str = Field(min_length=1, max_length=16)
    purpose: OtpPurpose


class RegisterRequest(BaseModel):
    """Account creation payload, authorized by a registration token header."""

    username: str = Field(min_length=3, max_length=64)
    email: NormalizedEmail
    password: str = Field(min_length=8, max_length=128)
    first_name: str = ""
    last_name: str = ""
    dob: date | None = None


class ResetPasswordRequest(BaseModel):
    """Password reset payload, authorized by a reset token header."""

    password: str = Field(min_length=8, max_length=128)
    confirm_password: str = Field(min_length=8, max_length=128)
    email: str | None = None


class CheckUserExistenceRequest(BaseModel):
    """Existence check used by the sign-up screen."""

    email: NormalizedEmail


class UpdateProfileRequest(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""

    first_name: str | None = None
    last_name: str | None = None
    dob: date | None = None


class ToggleBiometricRequest(BaseModel):
    enabled: bool


class AuthSession(BaseModel):
    """Token pair plus user summary returned by login-like flows."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: dict[str, str | bool | list[str]]
