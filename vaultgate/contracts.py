"""Core request and result contracts for the proxy."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ProxyError


class OutboundRequest(BaseModel):
    """A fully signed call to the remote API, ready for a transport."""

    method: str
    url: str
    path: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None


class TransportResponse(BaseModel):
    """Raw outcome of a transport call."""

    status_code: int
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ProxyResult(BaseModel):
    """Normalized outcome of one dispatched call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: int = 200
    exception: Optional[ProxyError] = Field(default=None, exclude=True)

    @classmethod
    def ok(cls, data: Any) -> "ProxyResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, exc: ProxyError) -> "ProxyResult":
        return cls(
            success=False,
            error=exc.message,
            status_code=exc.status_code,
            exception=exc,
        )

    def envelope(self) -> Dict[str, Any]:
        """Client-facing ``{success, data}`` / ``{success, error}`` body."""
        if self.success:
            return {"success": True, "data": self.data}
        body: Dict[str, Any] = {"success": False, "error": self.error}
        if self.exception is not None:
            body.update(self.exception.extra)
        return body
