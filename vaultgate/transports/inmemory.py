"""In-memory transport for testing."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable, Deque, List, Optional, Union

from ..contracts import OutboundRequest, TransportResponse
from .base import BaseTransport

Scripted = Union[TransportResponse, Exception]
Handler = Callable[[OutboundRequest], TransportResponse]


class InMemoryTransport(BaseTransport):
    """Records requests and answers with scripted responses.

    Queued responses are consumed first; after that ``handler`` is consulted,
    and without a handler every call answers ``200 {}``. Queued exceptions
    and exceptions raised by ``handler`` propagate to the caller.
    """

    name = "inmemory"

    def __init__(self, handler: Optional[Handler] = None) -> None:
        self.requests: List[OutboundRequest] = []
        self._handler = handler
        self._queue: Deque[Scripted] = deque()
        self._lock = asyncio.Lock()

    def queue(self, response: Scripted) -> None:
        self._queue.append(response)

    def queue_json(self, text: str, status_code: int = 200) -> None:
        self._queue.append(TransportResponse(status_code=status_code, text=text))

    async def send(self, request: OutboundRequest) -> TransportResponse:
        async with self._lock:
            self.requests.append(request)
            scripted = self._queue.popleft() if self._queue else None

        if isinstance(scripted, Exception):
            raise scripted
        if scripted is not None:
            return scripted
        if self._handler is not None:
            return self._handler(request)
        return TransportResponse(status_code=200, text="{}")
