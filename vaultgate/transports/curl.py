"""Transport that shells out to the curl command-line tool."""

from __future__ import annotations

import asyncio
import logging
import shlex
from typing import List

from ..constants import DEFAULT_TIMEOUT_SECONDS
from ..contracts import OutboundRequest, TransportResponse
from ..errors import TransportError
from .base import BaseTransport

logger = logging.getLogger(__name__)

# curl expands the \n escape, putting the status code on its own line after the body
_STATUS_FORMAT = "\\n%{http_code}"


class CurlTransport(BaseTransport):
    """Runs one ``curl`` process per request.

    The process is started from an argument array, never through a shell,
    and the body is fed on stdin, so header and body values cannot be read
    as options or shell syntax.
    """

    name = "curl"

    def __init__(
        self, binary: str = "curl", timeout: float = DEFAULT_TIMEOUT_SECONDS
    ) -> None:
        self.binary = binary
        self.timeout = timeout

    def build_command(self, request: OutboundRequest, inline_body: bool = False) -> List[str]:
        """Return the curl argv for ``request``.

        With ``inline_body`` the body is placed on the command line instead of
        being read from stdin, which is only useful for display.
        """
        argv = [self.binary, "-sS", "-X", request.method.upper()]
        for name, value in request.headers.items():
            argv += ["-H", f"{name}: {value}"]
        argv += ["--max-time", f"{self.timeout:g}", "-w", _STATUS_FORMAT]
        if request.body is not None:
            argv += ["--data-binary", request.body if inline_body else "@-"]
        argv += ["--url", request.url]
        return argv

    def render_command(self, request: OutboundRequest) -> str:
        """Shell-quoted command line equivalent to ``request``."""
        return " ".join(shlex.quote(arg) for arg in self.build_command(request, inline_body=True))

    async def send(self, request: OutboundRequest) -> TransportResponse:
        argv = self.build_command(request)
        stdin_data = request.body.encode("utf-8") if request.body is not None else None
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise TransportError(f"curl binary not found: {self.binary}") from e
        except OSError as e:
            raise TransportError(f"Failed to start curl: {e}") from e

        stdout, stderr = await process.communicate(input=stdin_data)
        error_output = stderr.decode("utf-8", errors="replace").strip()

        if process.returncode != 0:
            message = error_output or f"curl exited with status {process.returncode}"
            logger.warning(f"Curl error: {request.method} {request.path}: {message}")
            raise TransportError(message)
        if error_output:
            logger.warning(f"Curl stderr: {error_output}")

        return self.parse_output(stdout.decode("utf-8", errors="replace"))

    @staticmethod
    def parse_output(output: str) -> TransportResponse:
        """Split curl stdout into the body and the trailing status code."""
        body, _, status = output.rpartition("\n")
        try:
            status_code = int(status.strip())
        except ValueError:
            raise TransportError("Unexpected curl output, missing status code") from None
        return TransportResponse(status_code=status_code, text=body)
