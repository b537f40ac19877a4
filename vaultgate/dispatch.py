"""Signed request dispatcher for the remote vault API."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import VaultGateConfig
from .constants import (
    HEADER_API_KEY,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
    JSON_CONTENT_TYPE,
)
from .contracts import OutboundRequest, ProxyResult, TransportResponse
from .errors import InvalidResponseError, ProxyError, RemoteApiError, TransportError
from .security import CredentialMinter, load_signing_identity
from .transports import BaseTransport, get_transport

logger = logging.getLogger(__name__)


def serialize_body(body: Any) -> str:
    """Canonical JSON for ``body``, or an empty string when there is none.

    The returned string is both hashed into the assertion and transmitted.
    """
    if body is None:
        return ""
    return json.dumps(body, sort_keys=True, separators=(",", ":"))


class Dispatcher:
    """Single choke point that signs and sends every outbound call.

    Each call serializes its body once, mints a fresh assertion over the
    exact path and body, and sends the request through ``transport`` in a
    single attempt.
    """

    def __init__(
        self,
        transport: BaseTransport,
        minter: CredentialMinter,
        base_url: str,
        propagate_remote_status: bool = False,
    ) -> None:
        self._transport = transport
        self._minter = minter
        self._base_url = base_url.rstrip("/")
        self._propagate_remote_status = propagate_remote_status

    @classmethod
    def from_config(
        cls, config: VaultGateConfig, transport: Optional[BaseTransport] = None
    ) -> "Dispatcher":
        """Build a dispatcher from configuration.

        Raises:
            KeyLoadError: If the signing identity cannot be loaded.
        """
        identity = load_signing_identity(config.credentials)
        return cls(
            transport=transport or get_transport(config.transport.backend, config),
            minter=CredentialMinter(identity),
            base_url=config.credentials.base_url,
            propagate_remote_status=config.server.propagate_remote_status,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def transport(self) -> BaseTransport:
        return self._transport

    def build_request(
        self, method: str, path: str, body: Any = None
    ) -> OutboundRequest:
        """Serialize, sign and assemble a request without sending it.

        Raises:
            SigningError: If the assertion cannot be minted.
        """
        serialized = serialize_body(body)
        assertion = self._minter.mint(path, serialized)
        headers = {
            HEADER_AUTHORIZATION: assertion.bearer,
            HEADER_API_KEY: self._minter.api_key,
            HEADER_CONTENT_TYPE: JSON_CONTENT_TYPE,
        }
        return OutboundRequest(
            method=method.upper(),
            url=f"{self._base_url}{path}",
            path=path,
            headers=headers,
            body=serialized if body is not None else None,
        )

    async def request(self, method: str, path: str, body: Any = None) -> Any:
        """Send one signed call and return the parsed JSON payload.

        Raises:
            SigningError: If the assertion cannot be minted.
            TransportError: If the remote API cannot be reached.
            RemoteApiError: If the remote API reports an error.
            InvalidResponseError: If the remote answer is not JSON.
        """
        outbound = self.build_request(method, path, body)
        logger.debug(f"Dispatching {outbound.method} {path}")
        try:
            response = await self._transport.send(outbound)
        except ProxyError:
            raise
        except Exception as e:
            logger.warning(
                f"Transport {self._transport.name} failed on {outbound.method} {path}: {e!r}"
            )
            raise TransportError(str(e) or type(e).__name__) from e
        return self._parse_response(outbound, response)

    async def dispatch(self, method: str, path: str, body: Any = None) -> ProxyResult:
        """Like :meth:`request` but reports failures in the result instead of raising."""
        try:
            data = await self.request(method, path, body)
        except ProxyError as e:
            logger.error(f"API error: {method.upper()} {path}: {type(e).__name__}: {e}")
            return ProxyResult.failure(e)
        return ProxyResult.ok(data)

    def _parse_response(
        self, outbound: OutboundRequest, response: TransportResponse
    ) -> Any:
        text = response.text.strip()
        if not text:
            if response.ok:
                raise InvalidResponseError("Empty response from API")
            raise self._remote_error(
                f"Request failed with status code {response.status_code}",
                None,
                response.status_code,
            )

        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            if response.ok or text.lstrip().startswith("<"):
                raise self._invalid_response(outbound, text) from None
            raise self._remote_error(
                f"Request failed with status code {response.status_code}",
                None,
                response.status_code,
            ) from None

        message = payload.get("message") if isinstance(payload, dict) else None
        if not response.ok:
            if message:
                raise self._remote_error(message, payload.get("code"), response.status_code)
            raise self._remote_error(
                f"Request failed with status code {response.status_code}",
                None,
                response.status_code,
            )
        if message and payload.get("code") is not None:
            raise self._remote_error(message, payload["code"], response.status_code)
        return payload

    def _remote_error(
        self, message: str, code: Any, remote_status: int
    ) -> RemoteApiError:
        status_code = None
        if self._propagate_remote_status and remote_status >= 400:
            status_code = remote_status
        return RemoteApiError(
            message, code=code, remote_status=remote_status, status_code=status_code
        )

    def _invalid_response(self, outbound: OutboundRequest, text: str) -> InvalidResponseError:
        if text.lstrip().lower().startswith(("<!doctype html", "<html")):
            logger.error(
                f"{outbound.method} {outbound.path} returned an HTML page; "
                f"check that {self._base_url} is the API endpoint, not the web console"
            )
            return InvalidResponseError(
                "Invalid JSON response from API (received HTML, check the API base URL)"
            )
        return InvalidResponseError("Invalid JSON response from API")
