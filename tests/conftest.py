from __future__ import annotations

from dataclasses import dataclass

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from identity.auth.keys import KeyMaterialProvider
from identity.core.config import AuthConfig


@dataclass
class FakeClock:
    now: float = 1_700_000_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def key_provider(rsa_key: rsa.RSAPrivateKey) -> KeyMaterialProvider:
    return KeyMaterialProvider(rsa_key)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(
        enabled=True,
        issuer="identity-test",
        access_token_ttl_seconds=3600,
        refresh_token_ttl_seconds=604800,
        exchange_token_ttl_seconds=900,
        otp_ttl_seconds=300,
        private_key_pem="",
        private_key_path="",
        default_role="ROLE_USER",
        admin_username="admin",
        admin_email="admin@test.local",
        admin_password="admin-pass-123",
    )
