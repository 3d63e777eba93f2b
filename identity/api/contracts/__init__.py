"""Public API response contracts."""

from identity.api.contracts.models import (
    ApiErrorResponse,
    AuthSessionResponse,
    HealthResponse,
    MessageResponse,
    SweepResponse,
    UserExistenceResponse,
    UserResponse,
    VerifyOtpResponse,
)

__all__ = [
    "ApiErrorResponse",
    "AuthSessionResponse",
    "HealthResponse",
    "MessageResponse",
    "SweepResponse",
    "UserExistenceResponse",
    "UserResponse",
    "VerifyOtpResponse",
]
