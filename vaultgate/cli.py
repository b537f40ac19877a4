"""Command line interface for running and probing the vault proxy."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer

from vaultgate import Dispatcher, VaultGateConfig, load_config
from vaultgate.config import set_transport_backend
from vaultgate.errors import ConfigurationError, ProxyError
from vaultgate.transports import CurlTransport

app = typer.Typer(help="CLI for the vaultgate signing proxy")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", help="Logging level for vaultgate"),
) -> None:
    """vaultgate CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_path: Optional[str], transport: Optional[str] = None) -> VaultGateConfig:
    try:
        config = load_config(config_path)
        if transport:
            set_transport_backend(config, transport)
    except ConfigurationError as e:
        typer.secho(f"Invalid configuration: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return config


def _load_dispatcher(config: VaultGateConfig) -> Dispatcher:
    try:
        return Dispatcher.from_config(config)
    except ConfigurationError as e:
        typer.secho(f"Failed to load signing identity: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
    host: Optional[str] = typer.Option(None, help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default from config)"),
) -> None:
    """
    Run the proxy HTTP server.

    Loads configuration and the signing key before binding; a missing, empty
    or malformed key exits with status 1.

    Example:
        FIREBLOCKS_API_KEY=... FIREBLOCKS_SECRET_KEY_PATH=./secret.key vaultgate serve
    """
    import uvicorn

    from vaultgate.api import create_app

    config = _load_config(config_path)
    dispatcher = _load_dispatcher(config)

    application = create_app(config, dispatcher)
    uvicorn.run(application, host=host or config.server.host, port=port or config.server.port)


@app.command("check")
def check(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
    transport: Optional[str] = typer.Option(None, help="Override transport backend"),
) -> None:
    """Verify connectivity and authentication against the remote API."""
    dispatcher = _load_dispatcher(_load_config(config_path, transport))
    typer.echo(f"Testing {dispatcher.base_url} via {dispatcher.transport.name}")

    async def _probe():
        try:
            return await dispatcher.dispatch("GET", "/v1/vault/accounts_paged?limit=1")
        finally:
            await dispatcher.transport.disconnect()

    result = asyncio.run(_probe())
    if not result.success:
        typer.secho(f"API connection failed: {result.error}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho("API connection successful", fg=typer.colors.GREEN)


@app.command("render-curl")
def render_curl(
    method: str,
    path: str,
    data: Optional[str] = typer.Option(None, help="JSON request body"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """
    Print the curl command for a signed request without sending it.

    The embedded assertion expires 55 seconds after it is printed.

    Example:
        vaultgate render-curl GET /v1/vault/accounts_paged?limit=5
        vaultgate render-curl POST /v1/vault/accounts --data '{"name": "ops"}'
    """
    dispatcher = _load_dispatcher(_load_config(config_path, "curl"))
    try:
        body = json.loads(data) if data else None
    except json.JSONDecodeError as e:
        typer.secho(f"--data is not valid JSON: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    try:
        outbound = dispatcher.build_request(method, path, body)
    except ProxyError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    transport: CurlTransport = dispatcher.transport
    typer.echo(transport.render_command(outbound))


if __name__ == "__main__":
    app()
