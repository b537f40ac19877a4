"""Signing identity loading and validation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..config import CredentialsConfig
from ..errors import KeyLoadError

logger = logging.getLogger(__name__)

_PEM_MARKERS = ("BEGIN PRIVATE KEY", "BEGIN RSA PRIVATE KEY")


class SigningIdentity:
    """Private RSA key plus the public API key it is registered under.

    Built once at startup and shared read-only by every outbound call.
    """

    __slots__ = ("_private_key", "_api_key")

    def __init__(self, private_key: rsa.RSAPrivateKey, api_key: str) -> None:
        if not api_key:
            raise KeyLoadError("API key is not configured")
        self._private_key = private_key
        self._api_key = api_key

    @property
    def private_key(self) -> rsa.RSAPrivateKey:
        return self._private_key

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def api_key_hint(self) -> str:
        """API key prefix safe to write to logs."""
        return f"{self._api_key[:8]}..."

    def __repr__(self) -> str:
        return f"SigningIdentity(api_key={self.api_key_hint!r})"

    @classmethod
    def from_pem(cls, pem: Union[str, bytes], api_key: str) -> "SigningIdentity":
        """Parse PEM key material into an identity."""
        if isinstance(pem, str):
            pem = pem.encode()
        pem = pem.strip()
        if not pem:
            raise KeyLoadError("Private key file is empty")
        if not any(marker.encode() in pem for marker in _PEM_MARKERS):
            raise KeyLoadError("Invalid private key format, expected a PEM private key")

        try:
            key = serialization.load_pem_private_key(pem, password=None)
        except (ValueError, TypeError) as e:
            raise KeyLoadError(f"Unable to parse private key: {e}") from e

        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyLoadError(
                f"Private key must be RSA for RS256 signing, got {type(key).__name__}"
            )
        return cls(key, api_key)

    @classmethod
    def from_file(cls, path: Union[str, Path], api_key: str) -> "SigningIdentity":
        key_path = Path(path).expanduser()
        try:
            pem = key_path.read_bytes()
        except FileNotFoundError as e:
            raise KeyLoadError(f"Private key file not found: {key_path}") from e
        except OSError as e:
            raise KeyLoadError(f"Failed to read private key {key_path}: {e}") from e
        return cls.from_pem(pem, api_key)


def load_signing_identity(credentials: CredentialsConfig) -> SigningIdentity:
    """Resolve the signing identity described by ``credentials``."""
    identity = SigningIdentity.from_file(credentials.secret_key_path, credentials.api_key)
    logger.info(
        f"Loaded signing identity {identity.api_key_hint} for {credentials.base_url}"
    )
    return identity
