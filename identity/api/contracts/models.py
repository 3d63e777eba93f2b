"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from identity.auth.models import AuthUser


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class AuthSessionResponse(BaseModel):
    """Authentication session response payload."""

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int
    user: dict[str, str | bool | list[str]]


class MessageResponse(BaseModel):
    """Acknowledgement carrying a human-readable message."""

    message: str


class VerifyOtpResponse(BaseModel):
    """Exchange token unlocked by a verified one-time code."""

    token: str
    token_type: str
    expires_in: int


class UserExistenceResponse(BaseModel):
    exists: bool


class UserResponse(BaseModel):
    """Public user profile payload."""

    user_id: str
    username: str
    email: str
    first_name: str
    last_name: str
    dob: date | None = None
    roles: list[str]
    account_verified: bool
    is_biometric_enabled: bool = False

    @classmethod
    def from_user(cls, user: AuthUser) -> "UserResponse":
        return cls(
            user_id=user.user_id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            dob=user.dob,
            roles=sorted(set(user.roles)),
            account_verified=user.account_verified,
            is_biometric_enabled=user.is_biometric_enabled,
        )


class SweepResponse(BaseModel):
    """Result of an on-demand blacklist sweep."""

    removed: int
