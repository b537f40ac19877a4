"""Base transport interface for outbound API calls."""

from __future__ import annotations

import abc

from ..contracts import OutboundRequest, TransportResponse


class BaseTransport(metaclass=abc.ABCMeta):
    """Abstract base transport that moves a signed request to the remote API."""

    name: str = "base"

    async def connect(self) -> None:
        """Open long-lived resources (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Release long-lived resources (no-op by default)."""
        pass

    @abc.abstractmethod
    async def send(self, request: OutboundRequest) -> TransportResponse:
        """Send ``request`` once and return the raw response.

        Raises:
            TransportError: If the remote API could not be reached.
        """
        raise NotImplementedError
