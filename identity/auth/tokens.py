"""Signed token codec: claims in, compact JWS out, and back."""

from __future__ import annotations

import time
import uuid
from typing import Any, Callable

import jwt

from identity.auth.errors import TokenExpired, TokenInvalid
from identity.auth.keys import KeyMaterialProvider
from identity.auth.models import TokenType

ALGORITHM = "RS256"
REQUIRED_CLAIMS = ["iss", "iat", "exp", "sub", "type", "jti"]


class TokenCodec:
    """Issue and verify RS256 tokens for every token type the service mints."""

    def __init__(
        self,
        keys: KeyMaterialProvider,
        *,
        issuer: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._keys = keys
        self._issuer = issuer
        self._clock = clock

    def issue(
        self,
        subject: str,
        token_type: TokenType,
        ttl_seconds: int,
        *,
        scope: str | None = None,
    ) -> str:
        """Sign a new token; ``scope`` is omitted for exchange tokens."""
        now = int(self._clock())
        claims: dict[str, Any] = {
            "iss": self._issuer,
            "iat": now,
            "exp": now + int(ttl_seconds),
            "sub": subject,
            "type": str(token_type),
            "jti": str(uuid.uuid4()),
        }
        if scope is not None:
            claims["scope"] = scope
        return jwt.encode(
            claims,
            self._keys.private_key,
            algorithm=ALGORITHM,
            headers={"kid": self._keys.key_id},
        )

    def verify(self, token: str) -> dict[str, Any]:
        """Check signature, issuer and expiry; return the decoded claims."""
        claims = self.verify_signature(token)
        try:
            expires_at = int(claims["exp"])
        except (TypeError, ValueError) as exc:
            raise TokenInvalid("Invalid token: exp is not a timestamp") from exc
        if expires_at <= int(self._clock()):
            raise TokenExpired()
        return claims

    def verify_signature(self, token: str) -> dict[str, Any]:
        """Check signature, issuer and required claims but not expiry."""
        try:
            return jwt.decode(
                token,
                self._keys.public_key,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                # Time checks belong to callers, against the injected clock.
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise TokenInvalid(f"Invalid token: {exc}") from exc
