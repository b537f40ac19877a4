"""Signing identity and request assertion minting."""

from .keys import SigningIdentity, load_signing_identity
from .tokens import (
    AssertionClaims,
    CredentialMinter,
    RequestAssertion,
    generate_nonce,
    hash_body,
)

__all__ = [
    "AssertionClaims",
    "CredentialMinter",
    "RequestAssertion",
    "SigningIdentity",
    "generate_nonce",
    "hash_body",
    "load_signing_identity",
]
