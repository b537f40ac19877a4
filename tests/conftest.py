"""Shared fixtures: throwaway RSA keys, an in-memory transport and the app."""

from __future__ import annotations

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from vaultgate.constants import SANDBOX_BASE_URL
from vaultgate.dispatch import Dispatcher
from vaultgate.security import CredentialMinter, SigningIdentity
from vaultgate.transports.inmemory import InMemoryTransport

API_KEY = "d8d4ced2-0000-4000-8000-test0api0key"


class CountingMinter(CredentialMinter):
    """Minter that records how many assertions it produced."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls = []

    def mint(self, path, serialized_body=""):
        assertion = super().mint(path, serialized_body)
        self.calls.append(assertion)
        return assertion


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_pem(rsa_key) -> bytes:
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture
def key_file(tmp_path, private_pem):
    path = tmp_path / "secret.key"
    path.write_bytes(private_pem)
    return path


@pytest.fixture
def identity(private_pem) -> SigningIdentity:
    return SigningIdentity.from_pem(private_pem, API_KEY)


@pytest.fixture
def minter(identity) -> CountingMinter:
    return CountingMinter(identity)


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport()


@pytest.fixture
def dispatcher(transport, minter) -> Dispatcher:
    return Dispatcher(transport=transport, minter=minter, base_url=SANDBOX_BASE_URL)


@pytest.fixture
def client(dispatcher):
    from fastapi.testclient import TestClient

    from vaultgate.api import create_app
    from vaultgate.config import VaultGateConfig

    return TestClient(create_app(VaultGateConfig(), dispatcher))


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep developer environment variables out of config loading."""
    for name in (
        "FIREBLOCKS_API_KEY",
        "FIREBLOCKS_SECRET_KEY_PATH",
        "FIREBLOCKS_ENV",
        "VAULTGATE_TRANSPORT",
        "PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VAULTGATE_CONFIG", str(tmp_path / "missing-config.yaml"))


@pytest.fixture
def api_key() -> str:
    return API_KEY
