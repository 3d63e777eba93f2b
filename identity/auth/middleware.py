"""HTTP middleware and dependencies that enforce auth on protected API routes."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import Request
from fastapi.responses import JSONResponse

from identity.api.contracts import ApiErrorResponse
from identity.api.errors import ApiErrorCode, identity_error_payload
from identity.auth.errors import IdentityError, Unauthenticated, Unauthorized
from identity.auth.service import AuthService

PUBLIC_PATHS = {"/api/health"}
PUBLIC_PREFIXES = ("/api/auth/",)


def extract_bearer_token(authorization: str | None) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def is_public_path(path: str) -> bool:
    if not path.startswith("/api/"):
        return True
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def create_auth_middleware(service: AuthService) -> Callable:
    """Create middleware function that validates access tokens when enabled."""

    async def auth_middleware(request: Request, call_next: Callable):
        """Validate auth for protected API paths and attach user to request state."""
        if not service.enabled or is_public_path(request.url.path):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("authorization", ""))
        if not token:
            return JSONResponse(
                status_code=401,
                content=ApiErrorResponse(
                    error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
                    message="Missing bearer token",
                ).model_dump(),
            )

        try:
            user = service.verify_access_token(token)
        except IdentityError as exc:
            return JSONResponse(
                status_code=exc.status_code,
                content=identity_error_payload(exc),
            )

        request.state.user = user
        return await call_next(request)

    return auth_middleware


def current_user(request: Request) -> dict[str, Any]:
    """Dependency returning the claims attached by the auth middleware."""
    user = getattr(request.state, "user", None)
    if not user:
        raise Unauthenticated()
    return user


def require_role(role: str) -> Callable[[Request], dict[str, Any]]:
    """Dependency factory rejecting callers whose token lacks ``role``."""

    def dependency(request: Request) -> dict[str, Any]:
        user = current_user(request)
        if role not in user.get("roles", []):
            raise Unauthorized()
        return user

    return dependency
