"""One-time code state machine: Absent -> Pending -> (Verified | Expired).

A verified code is exchanged for a short-lived single-purpose token; that
token, never the code, is what registration and password reset accept.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Protocol

from identity.auth.blacklist import TokenBlacklist
from identity.auth.errors import (
    EmailAlreadyExists,
    InvalidCredentials,
    InvalidToken,
    UserNotFound,
)
from identity.auth.models import OtpEntry, OtpPurpose, TokenType
from identity.auth.otp_store import OtpCheck, OtpStore
from identity.auth.tokens import TokenCodec
from identity.core.security import generate_otp_code

LOGGER = logging.getLogger(__name__)

EXCHANGE_TOKEN_TYPES: dict[OtpPurpose, TokenType] = {
    OtpPurpose.REGISTER: TokenType.REGISTRATION,
    OtpPurpose.RESET_PASSWORD: TokenType.RESET_PASSWORD,
}

_unmapped = set(OtpPurpose) - set(EXCHANGE_TOKEN_TYPES)
if _unmapped:
    raise RuntimeError(f"OTP purposes without exchange token type: {sorted(_unmapped)}")


class EmailDirectory(Protocol):
    def exists_by_email(self, email: str) -> bool: ...


class Notifier(Protocol):
    def dispatch(self, email: str, code: str, purpose: OtpPurpose) -> Any: ...


class OtpService:
    """Issue, verify and exchange one-time codes keyed by email."""

    def __init__(
        self,
        *,
        directory: EmailDirectory,
        store: OtpStore,
        codec: TokenCodec,
        blacklist: TokenBlacklist,
        notifier: Notifier,
        otp_ttl_seconds: int = 300,
        exchange_token_ttl_seconds: int = 900,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._directory = directory
        self._store = store
        self._codec = codec
        self._blacklist = blacklist
        self._notifier = notifier
        self._otp_ttl_seconds = otp_ttl_seconds
        self._exchange_ttl_seconds = exchange_token_ttl_seconds
        self._clock = clock

    @property
    def exchange_token_ttl_seconds(self) -> int:
        return self._exchange_ttl_seconds

    def send(self, email: str, purpose: OtpPurpose) -> None:
        """Store a fresh code for ``email`` and hand it to the notifier."""
        email = email.strip().lower()
        exists = self._directory.exists_by_email(email)
        if purpose is OtpPurpose.REGISTER and exists:
            LOGGER.warning("otp_send_rejected_email_exists", extra={"email": email})
            raise EmailAlreadyExists()
        if purpose is OtpPurpose.RESET_PASSWORD and not exists:
            LOGGER.warning("otp_send_rejected_unknown_email", extra={"email": email})
            raise UserNotFound()

        code = generate_otp_code()
        entry = OtpEntry(
            email=email,
            code=code,
            purpose=purpose,
            expires_at=self._clock() + self._otp_ttl_seconds,
        )
        self._store.set(entry, self._otp_ttl_seconds)
        LOGGER.info("otp_stored", extra={"email": email, "purpose": str(purpose)})

        try:
            self._notifier.dispatch(email, code, purpose)
        except RuntimeError:
            # Executor already shut down; the stored code stays valid.
            LOGGER.exception("otp_dispatch_failed", extra={"email": email})

    def verify(self, email: str, code: str, purpose: OtpPurpose) -> str:
        """Consume a matching code and return the exchange token it unlocks."""
        email = email.strip().lower()
        outcome = self._store.consume(email, code.strip(), purpose, self._clock())
        if outcome is not OtpCheck.MATCHED:
            LOGGER.warning(
                "otp_verify_failed %s",
                outcome.value,
                extra={"email": email, "purpose": str(purpose)},
            )
            raise InvalidCredentials("Invalid or expired verification code")

        token_type = EXCHANGE_TOKEN_TYPES[purpose]
        LOGGER.info("otp_verified", extra={"email": email, "purpose": str(purpose)})
        return self._codec.issue(email, token_type, self._exchange_ttl_seconds)

    def check_exchange_token(
        self,
        token: str,
        expected_type: TokenType,
        email: str | None = None,
    ) -> dict[str, Any]:
        """Accept only an unrevoked token of ``expected_type`` for ``email``."""
        try:
            claims = self._codec.verify(token)
        except InvalidToken:
            LOGGER.warning("exchange_token_rejected", extra={"token_type": str(expected_type)})
            raise
        if claims.get("type") != str(expected_type):
            LOGGER.warning(
                "exchange_token_wrong_type",
                extra={"token_type": str(claims.get("type") or "")},
            )
            raise InvalidToken()
        subject = str(claims.get("sub") or "").strip().lower()
        if email is not None and subject != email.strip().lower():
            LOGGER.warning("exchange_token_subject_mismatch", extra={"email": email})
            raise InvalidToken()
        if self._blacklist.is_revoked(str(claims["jti"])):
            raise InvalidToken()
        return claims

    def claim_exchange_token(self, claims: dict[str, Any]) -> None:
        """Spend a checked exchange token; only the first claim of a jti succeeds."""
        if not self._blacklist.revoke(str(claims["jti"]), int(claims["exp"])):
            LOGGER.warning(
                "exchange_token_replayed",
                extra={
                    "jti": claims["jti"],
                    "token_type": str(claims.get("type") or ""),
                },
            )
            raise InvalidToken()
