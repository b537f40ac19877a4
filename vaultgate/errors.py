"""Error taxonomy for the proxy.

Every failure that can reach a client derives from :class:`ProxyError` and
carries the HTTP status the API layer answers with.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ProxyError(Exception):
    """Base class for classified proxy failures."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = {}
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class ValidationError(ProxyError):
    """Missing or malformed input at the proxy boundary."""

    status_code = 400


class NotFoundError(ProxyError):
    status_code = 404


class ConflictError(ProxyError):
    """The resource a client asked to create already exists."""

    status_code = 409

    def __init__(self, message: str, vault_account_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.vault_account_id = vault_account_id
        if vault_account_id is not None:
            self.extra["vaultAccountId"] = vault_account_id


class SigningError(ProxyError):
    """The request assertion could not be produced."""


class TransportError(ProxyError):
    """The remote API could not be reached."""


class RemoteApiError(ProxyError):
    """The remote API answered with an error."""

    def __init__(
        self,
        message: str,
        code: Any = None,
        remote_status: Optional[int] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, status_code)
        self.code = code
        self.remote_status = remote_status


class InvalidResponseError(ProxyError):
    """The remote answer was not JSON, usually a misconfigured endpoint."""

    status_code = 502


class ConfigurationError(Exception):
    """Startup configuration is unusable."""


class KeyLoadError(ConfigurationError):
    """The signing key file is missing, empty or not an RSA private key."""
