"""FastAPI application for the vault proxy."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import VaultGateConfig, load_config
from .dispatch import Dispatcher
from .errors import ProxyError
from .routes import (
    account_router,
    asset_router,
    health_router,
    transaction_router,
    vault_router,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message, **extra}
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        details.append(f"{location}: {message}" if location else message)
    return "Invalid request: " + "; ".join(details) if details else "Invalid request"


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    logger.warning(
        f"{request.method} {request.url.path} failed with {type(exc).__name__}: {exc.message}"
    )
    return _error(exc.status_code, exc.message, **exc.extra)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, _describe_validation_error(exc))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return _error(exc.status_code, "Endpoint not found")
    return _error(exc.status_code, str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(
    config: Optional[VaultGateConfig] = None, dispatcher: Optional[Dispatcher] = None
) -> FastAPI:
    """Build the proxy application.

    The signing identity is loaded here, so a missing or broken key fails at
    startup rather than on the first request.

    Raises:
        KeyLoadError: If no ``dispatcher`` is given and the key cannot be loaded.
    """
    config = config or load_config()
    dispatcher = dispatcher or Dispatcher.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await dispatcher.transport.connect()
        logger.info(
            f"Vault proxy ready: {dispatcher.base_url} via {dispatcher.transport.name}"
        )
        yield
        await dispatcher.transport.disconnect()

    app = FastAPI(title="vaultgate", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(vault_router)
    app.include_router(transaction_router)
    app.include_router(asset_router)
    app.include_router(account_router)

    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    return app
