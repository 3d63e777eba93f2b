"""Typed identity errors raised by the auth domain and mapped at the HTTP edge."""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for business-rule failures with a stable error code."""

    status_code: int = 400
    error_code: str = "IDENTITY_ERROR"
    default_message: str = "Identity request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(IdentityError):
    status_code = 401
    error_code = "AUTH_INVALID_CREDENTIALS"
    default_message = "Invalid username or password"


class InvalidToken(IdentityError):
    status_code = 401
    error_code = "AUTH_TOKEN_INVALID"
    default_message = "Token invalid or expired"


class TokenInvalid(InvalidToken):
    """Signature, structure or issuer check failed."""


class TokenExpired(TokenInvalid):
    """Signature is valid but ``exp`` is not in the future."""

    default_message = "Token expired"


class VerificationFailed(InvalidToken):
    """Third-party identity assertion was rejected."""

    default_message = "Identity assertion could not be verified"


class Unauthenticated(IdentityError):
    status_code = 401
    error_code = "UNAUTHENTICATED"
    default_message = "Unauthenticated"


class Unauthorized(IdentityError):
    status_code = 403
    error_code = "UNAUTHORIZED"
    default_message = "You do not have permission"


class UserNotFound(IdentityError):
    status_code = 404
    error_code = "USER_NOT_FOUND"
    default_message = "User not found"


class EmailAlreadyExists(IdentityError):
    status_code = 409
    error_code = "EMAIL_ALREADY_EXISTS"
    default_message = "Email is already in use"


class UsernameAlreadyExists(IdentityError):
    status_code = 409
    error_code = "USERNAME_ALREADY_EXISTS"
    default_message = "Username is already taken"


class PasswordMismatch(IdentityError):
    status_code = 400
    error_code = "PASSWORD_MISMATCH"
    default_message = "Password and confirmation do not match"


class RoleNotFound(IdentityError):
    """Configured role is missing; indicates a broken deployment."""

    status_code = 500
    error_code = "ROLE_NOT_FOUND"
    default_message = "Role not found"


__all__ = [
    "EmailAlreadyExists",
    "IdentityError",
    "InvalidCredentials",
    "InvalidToken",
    "PasswordMismatch",
    "RoleNotFound",
    "TokenExpired",
    "TokenInvalid",
    "Unauthenticated",
    "Unauthorized",
    "UserNotFound",
    "UsernameAlreadyExists",
    "VerificationFailed",
]
