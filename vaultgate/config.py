from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, ValidationError

from .constants import DEFAULT_TIMEOUT_SECONDS, PRODUCTION_BASE_URL, SANDBOX_BASE_URL
from .errors import ConfigurationError


class CredentialsConfig(BaseModel):
    """Signing identity settings for the remote API."""

    api_key: str = ""
    secret_key_path: str = "fireblocks_secret.key"
    environment: str = "sandbox"

    @property
    def base_url(self) -> str:
        if self.environment.lower() == "production":
            return PRODUCTION_BASE_URL
        return SANDBOX_BASE_URL


class CurlConfig(BaseModel):
    """Configuration for the curl subprocess transport."""

    binary: str = "curl"


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["httpx", "curl"] = "httpx"
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    curl: CurlConfig = CurlConfig()


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = ["*"]
    propagate_remote_status: bool = False


class VaultGateConfig(BaseModel):
    """Top-level configuration model."""

    credentials: CredentialsConfig = CredentialsConfig()
    transport: TransportConfig = TransportConfig()
    server: ServerConfig = ServerConfig()


def load_config(path: Optional[str] = None) -> VaultGateConfig:
    """Load configuration from YAML file and the environment.

    Args:
        path: Optional path to config file. Falls back to VAULTGATE_CONFIG env
            variable or 'config.yaml' in the current directory.

    Environment variables override file values: FIREBLOCKS_API_KEY,
    FIREBLOCKS_SECRET_KEY_PATH, FIREBLOCKS_ENV, VAULTGATE_TRANSPORT and PORT.
    """

    config_path = path or os.getenv("VAULTGATE_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = VaultGateConfig(**data)
    else:
        config = VaultGateConfig()

    api_key = os.getenv("FIREBLOCKS_API_KEY")
    if api_key:
        config.credentials.api_key = api_key
    secret_key_path = os.getenv("FIREBLOCKS_SECRET_KEY_PATH")
    if secret_key_path:
        config.credentials.secret_key_path = secret_key_path
    environment = os.getenv("FIREBLOCKS_ENV")
    if environment:
        config.credentials.environment = environment

    backend = os.getenv("VAULTGATE_TRANSPORT")
    if backend:
        set_transport_backend(config, backend)
    port = os.getenv("PORT")
    if port:
        try:
            config.server.port = int(port)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got {port!r}") from None
    return config


def set_transport_backend(config: VaultGateConfig, backend: str) -> None:
    """Switch ``config`` to another transport backend, validating the name."""
    try:
        config.transport = TransportConfig.model_validate(
            {**config.transport.model_dump(), "backend": backend.strip().lower()}
        )
    except ValidationError:
        raise ConfigurationError(
            f"Unsupported transport backend: {backend!r} (expected httpx or curl)"
        ) from None
