"""Request assertions: short-lived JWTs bound to one outbound call."""

from __future__ import annotations

import base64
import hashlib
import secrets
import time
from typing import Callable, Optional

import jwt
from pydantic import BaseModel, Field

from ..constants import ASSERTION_TTL_SECONDS, NONCE_BYTES, SIGNING_ALGORITHM
from ..errors import SigningError
from .keys import SigningIdentity


def generate_nonce(size: int = NONCE_BYTES) -> str:
    """Return ``size`` random bytes from the OS CSPRNG, base64 encoded."""
    return base64.b64encode(secrets.token_bytes(size)).decode("ascii")


def hash_body(serialized_body: str) -> str:
    """Hex SHA-256 of the body exactly as it will be transmitted."""
    return hashlib.sha256(serialized_body.encode("utf-8")).hexdigest()


class AssertionClaims(BaseModel):
    """Claims carried by a request assertion."""

    uri: str
    nonce: str
    iat: int
    exp: int
    sub: str
    body_hash: str = Field(alias="bodyHash")

    model_config = {"populate_by_name": True}


class RequestAssertion(BaseModel):
    """A signed, single-use credential for one outbound call."""

    claims: AssertionClaims
    token: str

    @property
    def bearer(self) -> str:
        return f"Bearer {self.token}"

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.claims.exp


class CredentialMinter:
    """Creates request assertions signed with the caller's private key.

    The claims set follows the remote API's scheme: the exact request path
    (including query string) in ``uri``, a random ``nonce``, ``iat``/``exp``
    a fixed 55 seconds apart, the API key as ``sub`` and the SHA-256 of the
    serialized body as ``bodyHash``. The result is signed RS256.
    """

    def __init__(
        self,
        identity: SigningIdentity,
        clock: Callable[[], float] = time.time,
        ttl: int = ASSERTION_TTL_SECONDS,
    ) -> None:
        self._identity = identity
        self._clock = clock
        self._ttl = ttl

    @property
    def api_key(self) -> str:
        return self._identity.api_key

    def mint(self, path: str, serialized_body: str = "") -> RequestAssertion:
        """Mint a fresh assertion for ``path`` and ``serialized_body``."""
        issued_at = int(self._clock())
        claims = AssertionClaims(
            uri=path,
            nonce=generate_nonce(),
            iat=issued_at,
            exp=issued_at + self._ttl,
            sub=self._identity.api_key,
            body_hash=hash_body(serialized_body),
        )
        try:
            token = jwt.encode(
                claims.model_dump(by_alias=True),
                self._identity.private_key,
                algorithm=SIGNING_ALGORITHM,
            )
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise SigningError(f"Failed to sign request assertion: {e}") from e
        return RequestAssertion(claims=claims, token=token)
