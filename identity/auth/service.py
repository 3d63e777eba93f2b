"""Authentication service: sessions, rotation, revocation and account flows."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable

from identity.auth.blacklist import TokenBlacklist
from identity.auth.errors import (
    EmailAlreadyExists,
    InvalidCredentials,
    InvalidToken,
    PasswordMismatch,
    RoleNotFound,
    TokenInvalid,
    Unauthenticated,
    UserNotFound,
    UsernameAlreadyExists,
)
from identity.auth.google import GoogleIdentityVerifier
from identity.auth.models import (
    AuthSession,
    AuthUser,
    RegisterRequest,
    ResetPasswordRequest,
    TokenType,
    UpdateProfileRequest,
)
from identity.auth.otp import OtpService
from identity.auth.repository import UserDirectory
from identity.auth.tokens import TokenCodec
from identity.core.config import AuthConfig
from identity.core.security import (
    hash_password,
    unusable_password_hash,
    verify_password,
)

LOGGER = logging.getLogger(__name__)


class AuthService:
    """Authentication domain service composing codec, blacklist and directory."""

    def __init__(
        self,
        *,
        directory: UserDirectory,
        codec: TokenCodec,
        blacklist: TokenBlacklist,
        otp: OtpService,
        google: GoogleIdentityVerifier,
        config: AuthConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize service dependencies."""
        self._directory = directory
        self._codec = codec
        self._blacklist = blacklist
        self._otp = otp
        self._google = google
        self._config = config
        self._clock = clock

    @property
    def enabled(self) -> bool:
        """Return whether auth checks should be enforced."""
        return self._config.enabled

    def bootstrap_admin_user(self) -> None:
        """Ensure bootstrap admin user exists from environment values."""
        if not self._config.admin_password:
            LOGGER.info("admin_bootstrap_skipped")
            return
        if self._directory.exists_by_username(self._config.admin_username):
            return
        if self._directory.exists_by_email(self._config.admin_email):
            return

        self._directory.save(
            AuthUser(
                user_id=uuid.uuid4().hex,
                username=self._config.admin_username,
                email=self._config.admin_email,
                password_hash=hash_password(self._config.admin_password),
                roles=[self._config.default_role, "ROLE_ADMIN"],
                is_active=True,
                account_verified=True,
                created_at=int(self._clock()),
            )
        )
        LOGGER.info("admin_bootstrapped", extra={"username": self._config.admin_username})

    def login(self, username: str, password: str) -> AuthSession:
        """Authenticate credentials and issue access/refresh token pair."""
        user = self._directory.find_by_username(username)
        if user is None:
            user = self._directory.find_by_email(username)
        if user is None or not user.is_active:
            LOGGER.warning("login_failed", extra={"username": username})
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            LOGGER.warning("login_failed", extra={"username": username})
            raise InvalidCredentials()

        LOGGER.info("login_succeeded", extra={"username": user.username})
        return self._issue_session(user)

    def refresh(self, refresh_token: str) -> AuthSession:
        """Validate refresh token, revoke it and rotate the token pair."""
        claims = self._verify_unrevoked(refresh_token)
        if claims.get("type") != str(TokenType.REFRESH):
            LOGGER.warning(
                "refresh_wrong_token_type",
                extra={"token_type": str(claims.get("type") or "")},
            )
            raise InvalidToken()

        user = self._directory.find_by_username(str(claims["sub"]))
        if user is None or not user.is_active:
            raise UserNotFound()

        if not self._blacklist.revoke(str(claims["jti"]), int(claims["exp"])):
            # A concurrent refresh already rotated this token.
            LOGGER.warning("refresh_token_replayed", extra={"jti": claims["jti"]})
            raise InvalidToken()
        LOGGER.info(
            "refresh_rotated", extra={"username": user.username, "jti": claims["jti"]}
        )
        return self._issue_session(user)

    def logout(self, token: str | None) -> None:
        """Revoke the presented token; never fails from the caller's view."""
        if not token:
            return
        try:
            claims = self._codec.verify_signature(token)
        except TokenInvalid:
            LOGGER.warning("logout_rejected_token")
            return

        jti = str(claims["jti"])
        # Already-expired tokens are still recorded; the sweeper reclaims them.
        self._blacklist.revoke(jti, int(claims["exp"]))
        LOGGER.info("logout_succeeded", extra={"jti": jti})

    def google_login(self, id_token: str) -> AuthSession:
        """Sign in with a Google ID token, creating the account on first use."""
        identity = self._google.verify(id_token)
        user = self._directory.find_by_email(identity.email)
        if user is None:
            self._require_default_role()
            user = self._directory.save(
                AuthUser(
                    user_id=uuid.uuid4().hex,
                    username=identity.email,
                    email=identity.email,
                    password_hash=unusable_password_hash(),
                    roles=[self._config.default_role],
                    first_name=identity.given_name,
                    last_name=identity.family_name,
                    is_active=True,
                    account_verified=True,
                    created_at=int(self._clock()),
                )
            )
            LOGGER.info("google_user_created", extra={"email": identity.email})
        if not user.is_active:
            raise InvalidCredentials()

        LOGGER.info("google_login_succeeded", extra={"email": identity.email})
        return self._issue_session(user)

    def register(self, request: RegisterRequest, registration_token: str) -> AuthUser:
        """Create an account authorized by a verified registration token."""
        if self._directory.exists_by_username(request.username):
            raise UsernameAlreadyExists()
        if self._directory.exists_by_email(request.email):
            raise EmailAlreadyExists()
        claims = self._otp.check_exchange_token(
            registration_token, TokenType.REGISTRATION, email=request.email
        )
        self._require_default_role()
        self._otp.claim_exchange_token(claims)

        user = self._directory.save(
            AuthUser(
                user_id=uuid.uuid4().hex,
                username=request.username,
                email=request.email,
                password_hash=hash_password(request.password),
                roles=[self._config.default_role],
                first_name=request.first_name,
                last_name=request.last_name,
                dob=request.dob,
                is_active=True,
                account_verified=True,
                created_at=int(self._clock()),
            )
        )
        LOGGER.info("user_registered", extra={"username": user.username})
        return user

    def reset_password(self, request: ResetPasswordRequest, reset_token: str) -> None:
        """Replace the password of the account a reset token was issued for."""
        if request.password != request.confirm_password:
            raise PasswordMismatch()
        claims = self._otp.check_exchange_token(
            reset_token, TokenType.RESET_PASSWORD, email=request.email
        )
        user = self._directory.find_by_email(str(claims["sub"]))
        if user is None:
            raise UserNotFound()
        self._otp.claim_exchange_token(claims)

        self._directory.save(
            user.model_copy(update={"password_hash": hash_password(request.password)})
        )
        LOGGER.info("password_reset", extra={"email": user.email})

    def check_user_existence(self, email: str) -> bool:
        return self._directory.exists_by_email(email)

    def get_profile(self, username: str) -> AuthUser:
        user = self._directory.find_by_username(username)
        if user is None:
            raise UserNotFound()
        return user

    def update_profile(self, username: str, request: UpdateProfileRequest) -> AuthUser:
        """Apply the provided profile fields and leave the rest unchanged."""
        user = self.get_profile(username)
        changes = request.model_dump(exclude_unset=True)
        return self._directory.save(user.model_copy(update=changes))

    def toggle_biometric(self, username: str, enabled: bool) -> AuthUser:
        user = self.get_profile(username)
        updated = self._directory.save(
            user.model_copy(update={"is_biometric_enabled": enabled})
        )
        LOGGER.info(
            "biometric_enabled" if enabled else "biometric_disabled",
            extra={"username": username},
        )
        return updated

    def verify_access_token(self, token: str) -> dict[str, Any]:
        """Validate an access token and return normalized user claims."""
        try:
            claims = self._verify_unrevoked(token)
        except InvalidToken as exc:
            raise Unauthenticated() from exc
        if claims.get("type") != str(TokenType.ACCESS):
            raise Unauthenticated()
        scope = str(claims.get("scope") or "")
        return {
            "username": str(claims["sub"]),
            "roles": scope.split(),
            "jti": str(claims["jti"]),
            "exp": int(claims["exp"]),
        }

    def _verify_unrevoked(self, token: str) -> dict[str, Any]:
        """Codec verification followed by the blacklist check."""
        claims = self._codec.verify(token)
        if self._blacklist.is_revoked(str(claims["jti"])):
            LOGGER.warning("revoked_token_presented", extra={"jti": claims["jti"]})
            raise InvalidToken()
        return claims

    def _require_default_role(self) -> None:
        if not self._directory.role_exists(self._config.default_role):
            LOGGER.error("default_role_missing %s", self._config.default_role)
            raise RoleNotFound()

    def _issue_session(self, user: AuthUser) -> AuthSession:
        """Issue fresh access and refresh tokens for given user."""
        scope = user.scope
        access_token = self._codec.issue(
            user.username,
            TokenType.ACCESS,
            self._config.access_token_ttl_seconds,
            scope=scope,
        )
        refresh_token = self._codec.issue(
            user.username,
            TokenType.REFRESH,
            self._config.refresh_token_ttl_seconds,
            scope=scope,
        )
        return AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="Bearer",
            expires_in=self._config.access_token_ttl_seconds,
            user=user_summary(user),
        )


def user_summary(user: AuthUser) -> dict[str, str | bool | list[str]]:
    """Public fields of a user returned alongside issued sessions."""
    return {
        "user_id": user.user_id,
        "username": user.username,
        "email": user.email,
        "roles": sorted(set(user.roles)),
        "account_verified": bool(user.account_verified),
        "is_biometric_enabled": bool(user.is_biometric_enabled),
    }
