"""Google ID token verification for social sign-in.

Tokens are RS256 JWTs signed with one of Google's rotating keys; the public
certificates are fetched over HTTPS and cached for an hour.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any

import jwt
import requests
from cryptography import x509

from identity.auth.errors import VerificationFailed

LOGGER = logging.getLogger(__name__)

GOOGLE_CERTS_URL = "https://www.googleapis.com/oauth2/v1/certs"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")
KEYS_CACHE_SECONDS = 3600


@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity facts extracted from a verified assertion."""

    email: str
    given_name: str = ""
    family_name: str = ""


class GoogleIdentityVerifier:
    """Verify Google ID tokens issued for one OAuth client id."""

    def __init__(
        self,
        client_id: str,
        *,
        certs_url: str = GOOGLE_CERTS_URL,
        http_timeout_seconds: float = 10.0,
    ) -> None:
        self._client_id = client_id
        self._certs_url = certs_url
        self._timeout = http_timeout_seconds
        self._cached_keys: dict[str, Any] = {}
        self._keys_fetched_at = 0.0
        self._lock = Lock()

    def verify(self, id_token: str) -> VerifiedIdentity:
        """Return the asserted identity or raise ``VerificationFailed``."""
        if not self._client_id:
            raise VerificationFailed("Google sign-in is not configured")
        if not id_token:
            raise VerificationFailed("ID token is required")

        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.InvalidTokenError as exc:
            raise VerificationFailed(f"Malformed ID token: {exc}") from exc

        kid = header.get("kid")
        if not kid:
            raise VerificationFailed("ID token missing key id")
        if header.get("alg") != "RS256":
            raise VerificationFailed(f"Unexpected algorithm: {header.get('alg')}")

        public_key = self._public_key(kid)
        try:
            claims = jwt.decode(
                id_token,
                public_key,
                algorithms=["RS256"],
                audience=self._client_id,
                options={"verify_iss": False, "require": ["exp", "iat", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise VerificationFailed("ID token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise VerificationFailed(f"Invalid ID token: {exc}") from exc

        # Google uses two spellings of its issuer.
        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise VerificationFailed("ID token issuer is not Google")
        email = str(claims.get("email") or "").strip().lower()
        if not email:
            raise VerificationFailed("ID token does not carry an email")
        if claims.get("email_verified") in (False, "false"):
            raise VerificationFailed("Google account email is not verified")

        return VerifiedIdentity(
            email=email,
            given_name=str(claims.get("given_name") or ""),
            family_name=str(claims.get("family_name") or ""),
        )

    def _public_key(self, kid: str) -> Any:
        keys = self._public_keys()
        if kid not in keys:
            # Google may have rotated keys since the last fetch.
            keys = self._public_keys(force=True)
        if kid not in keys:
            raise VerificationFailed(f"ID token signed with unknown key: {kid}")
        return keys[kid]

    def _public_keys(self, force: bool = False) -> dict[str, Any]:
        with self._lock:
            fresh = (time.time() - self._keys_fetched_at) < KEYS_CACHE_SECONDS
            if self._cached_keys and fresh and not force:
                return self._cached_keys
            try:
                self._cached_keys = self._fetch_keys()
                self._keys_fetched_at = time.time()
            except (requests.RequestException, ValueError) as exc:
                LOGGER.error("google_certs_fetch_failed: %s", exc)
                if not self._cached_keys:
                    raise VerificationFailed("Unable to fetch Google signing keys") from exc
            return self._cached_keys

    def _fetch_keys(self) -> dict[str, Any]:
        response = requests.get(self._certs_url, timeout=self._timeout)
        response.raise_for_status()
        public_keys: dict[str, Any] = {}
        for kid, cert_pem in response.json().items():
            try:
                cert = x509.load_pem_x509_certificate(cert_pem.encode("utf-8"))
            except ValueError:
                LOGGER.warning("google_cert_parse_failed %s", kid)
                continue
            public_keys[kid] = cert.public_key()
        if not public_keys:
            raise ValueError("No valid public keys in Google response")
        return public_keys
