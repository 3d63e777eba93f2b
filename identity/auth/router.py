"""Authentication and user profile API routers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header, Response

from identity.api.contracts import (
    ApiErrorResponse,
    AuthSessionResponse,
    MessageResponse,
    UserExistenceResponse,
    UserResponse,
    VerifyOtpResponse,
)
from identity.auth.middleware import current_user, extract_bearer_token
from identity.auth.models import (
    CheckUserExistenceRequest,
    GoogleLoginRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SendOtpRequest,
    ToggleBiometricRequest,
    UpdateProfileRequest,
    VerifyOtpRequest,
)
from identity.auth.otp import EXCHANGE_TOKEN_TYPES, OtpService
from identity.auth.service import AuthService

ERROR_401 = {401: {"model": ApiErrorResponse}}


def create_auth_router(service: AuthService, otp: OtpService) -> APIRouter:
    """Build authentication router with session, OTP and account endpoints."""
    router = APIRouter(tags=["auth"])

    @router.post(
        "/api/auth/login",
        response_model=AuthSessionResponse,
        responses=ERROR_401,
    )
    def login(req: LoginRequest) -> AuthSessionResponse:
        """Authenticate user and return token pair."""
        session = service.login(req.username, req.password)
        return AuthSessionResponse(**session.model_dump())

    @router.post(
        "/api/auth/refresh",
        response_model=AuthSessionResponse,
        responses={**ERROR_401, 404: {"model": ApiErrorResponse}},
    )
    def refresh(req: RefreshRequest) -> AuthSessionResponse:
        """Rotate refresh token and issue a new pair."""
        session = service.refresh(req.refresh_token)
        return AuthSessionResponse(**session.model_dump())

    @router.post("/api/auth/logout", status_code=204)
    def logout(authorization: str | None = Header(default=None)) -> Response:
        """Revoke the bearer token; succeeds even for unusable tokens."""
        service.logout(extract_bearer_token(authorization))
        return Response(status_code=204)

    @router.post(
        "/api/auth/google",
        response_model=AuthSessionResponse,
        responses=ERROR_401,
    )
    def google_login(req: GoogleLoginRequest) -> AuthSessionResponse:
        session = service.google_login(req.id_token)
        return AuthSessionResponse(**session.model_dump())

    @router.post(
        "/api/auth/send-otp",
        response_model=MessageResponse,
        responses={404: {"model": ApiErrorResponse}, 409: {"model": ApiErrorResponse}},
    )
    def send_otp(req: SendOtpRequest) -> MessageResponse:
        """Store a one-time code and queue its delivery."""
        otp.send(req.email, req.purpose)
        return MessageResponse(message="OTP sent successfully")

    @router.post(
        "/api/auth/verify-otp",
        response_model=VerifyOtpResponse,
        responses=ERROR_401,
    )
    def verify_otp(req: VerifyOtpRequest) -> VerifyOtpResponse:
        """Exchange a valid one-time code for a single-purpose token."""
        token = otp.verify(req.email, req.otp, req.purpose)
        return VerifyOtpResponse(
            token=token,
            token_type=str(EXCHANGE_TOKEN_TYPES[req.purpose]),
            expires_in=otp.exchange_token_ttl_seconds,
        )

    @router.post(
        "/api/auth/register",
        status_code=201,
        response_model=UserResponse,
        responses={**ERROR_401, 409: {"model": ApiErrorResponse}},
    )
    def register(
        req: RegisterRequest,
        registration_token: str = Header(default="", alias="X-Registration-Token"),
    ) -> UserResponse:
        """Create an account authorized by a registration token."""
        user = service.register(req, registration_token)
        return UserResponse.from_user(user)

    @router.post(
        "/api/auth/reset-password",
        response_model=MessageResponse,
        responses={
            **ERROR_401,
            400: {"model": ApiErrorResponse},
            404: {"model": ApiErrorResponse},
        },
    )
    def reset_password(
        req: ResetPasswordRequest,
        reset_token: str = Header(default="", alias="X-Reset-Token"),
    ) -> MessageResponse:
        service.reset_password(req, reset_token)
        return MessageResponse(message="Password reset successfully")

    @router.post(
        "/api/auth/check-user-existence",
        response_model=UserExistenceResponse,
    )
    def check_user_existence(req: CheckUserExistenceRequest) -> UserExistenceResponse:
        return UserExistenceResponse(exists=service.check_user_existence(req.email))

    return router


def create_user_router(service: AuthService) -> APIRouter:
    """Build the router for the authenticated caller's own profile."""
    router = APIRouter(tags=["users"])

    @router.get(
        "/api/users/me",
        response_model=UserResponse,
        responses=ERROR_401,
    )
    def me(user: dict[str, Any] = Depends(current_user)) -> UserResponse:
        return UserResponse.from_user(service.get_profile(user["username"]))

    @router.patch(
        "/api/users/me",
        response_model=UserResponse,
        responses=ERROR_401,
    )
    def update_me(
        req: UpdateProfileRequest,
        user: dict[str, Any] = Depends(current_user),
    ) -> UserResponse:
        """Update first name, last name or date of birth."""
        updated = service.update_profile(user["username"], req)
        return UserResponse.from_user(updated)

    @router.patch(
        "/api/users/me/biometric",
        response_model=UserResponse,
        responses=ERROR_401,
    )
    def toggle_biometric(
        req: ToggleBiometricRequest,
        user: dict[str, Any] = Depends(current_user),
    ) -> UserResponse:
        updated = service.toggle_biometric(user["username"], req.enabled)
        return UserResponse.from_user(updated)

    return router
