"""Signing key material providers for the token codec."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from identity.core.config import AuthConfig

LOGGER = logging.getLogger(__name__)

RSA_KEY_SIZE = 2048


class KeyMaterialProvider:
    """Holds one RSA keypair for the lifetime of the process."""

    def __init__(self, private_key: rsa.RSAPrivateKey) -> None:
        self._private_key = private_key
        self._public_key = private_key.public_key()
        der = self._public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        self._key_id = hashlib.sha256(der).hexdigest()[:16]

    @property
    def private_key(self) -> rsa.RSAPrivateKey:
        return self._private_key

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self._public_key

    @property
    def key_id(self) -> str:
        """Stable fingerprint of the public key, sent as the ``kid`` header."""
        return self._key_id


class EphemeralKeyProvider(KeyMaterialProvider):
    """Generates a fresh keypair; tokens do not survive a restart."""

    def __init__(self) -> None:
        super().__init__(
            rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_SIZE)
        )


class PemKeyProvider(KeyMaterialProvider):
    """Loads an externally managed private key from PEM text."""

    def __init__(self, pem: bytes, password: bytes | None = None) -> None:
        key = serialization.load_pem_private_key(pem, password=password)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ValueError("Signing key must be an RSA private key")
        super().__init__(key)

    @classmethod
    def from_file(cls, path: Path) -> "PemKeyProvider":
        return cls(path.read_bytes())


def build_key_provider(config: AuthConfig) -> KeyMaterialProvider:
    """Pick persisted key material when configured, otherwise generate one."""
    if config.private_key_pem:
        LOGGER.info("signing_key_loaded_from_env")
        return PemKeyProvider(config.private_key_pem.encode("utf-8"))
    if config.private_key_path:
        LOGGER.info("signing_key_loaded_from_file", extra={"path": config.private_key_path})
        return PemKeyProvider.from_file(Path(config.private_key_path))
    LOGGER.warning("signing_key_ephemeral")
    return EphemeralKeyProvider()
