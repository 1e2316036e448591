from __future__ import annotations

from typing import Any, Optional


class ScannerError(Exception):
    """Base class for every error raised by the scanner."""


class ConfigurationError(ScannerError):
    """Invalid target URL or option value; the scan never starts."""


class TransportError(ScannerError):
    """An HTTP exchange with the MCP server failed."""


class HttpStatusError(TransportError):
    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP request failed with status {status_code}: {body}")


class FramingError(TransportError):
    """An SSE response body carried no data line."""


class MalformedResponseError(TransportError):
    """The response body is not a JSON-RPC 2.0 response envelope."""


class RpcError(ScannerError):
    def __init__(self, code: int, message: str, data: Optional[Any] = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"{message} (code: {code})")


class HandshakeError(ScannerError):
    """The initialize exchange failed; the scan is aborted."""


class ScanTimeoutError(ScannerError):
    """The shared scan deadline expired."""
