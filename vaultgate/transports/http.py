"""HTTP transport backed by httpx."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..constants import DEFAULT_TIMEOUT_SECONDS
from ..contracts import OutboundRequest, TransportResponse
from ..errors import TransportError
from .base import BaseTransport

logger = logging.getLogger(__name__)


class HttpxTransport(BaseTransport):
    """Sends requests through a shared ``httpx.AsyncClient``."""

    name = "httpx"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout = timeout
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, request: OutboundRequest) -> TransportResponse:
        if self._client is None:
            await self.connect()

        # the body string is the one that was hashed, send it byte for byte
        content = request.body.encode("utf-8") if request.body is not None else None
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=content,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            message = str(e) or type(e).__name__
            logger.warning(f"HTTP transport failure for {request.method} {request.path}: {message}")
            raise TransportError(message) from e

        return TransportResponse(status_code=response.status_code, text=response.text)
