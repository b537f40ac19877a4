"""Transport factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import VaultGateConfig, load_config
from .base import BaseTransport
from .curl import CurlTransport
from .http import HttpxTransport
from .inmemory import InMemoryTransport


def get_transport(
    backend: Optional[str] = None, config: Optional[VaultGateConfig] = None
) -> BaseTransport:
    """Factory function to get the configured transport."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("VAULTGATE_TRANSPORT")
        or config.transport.backend
    ).lower()

    if backend == "httpx":
        return HttpxTransport(timeout=config.transport.timeout)
    elif backend == "curl":
        return CurlTransport(
            binary=config.transport.curl.binary, timeout=config.transport.timeout
        )
    elif backend == "inmemory":
        return InMemoryTransport()
    else:
        raise ValueError(f"Unsupported transport backend: {backend}")


__all__ = [
    "BaseTransport",
    "CurlTransport",
    "HttpxTransport",
    "InMemoryTransport",
    "get_transport",
]
