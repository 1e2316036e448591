from __future__ import annotations

import logging
from typing import Any, Dict

from .errors import HandshakeError, RpcError, TransportError
from .models import JSONRPCRequest
from .session import Session
from .transport import HttpTransport

log = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-06-18"
CLIENT_NAME = "mcp-injection-scanner"
CLIENT_VERSION = "0.1.0"


def initialize_request(request_id: int) -> JSONRPCRequest:
    return JSONRPCRequest(
        id=request_id,
        method="initialize",
        params={
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": CLIENT_NAME, "version": CLIENT_VERSION},
        },
    )


class Handshake:
    def __init__(self, transport: HttpTransport, session: Session) -> None:
        self.transport = transport
        self.session = session

    def perform(self, server_url: str) -> Dict[str, Any]:
        """Run ``initialize`` then ``notifications/initialized``.

        Returns the server's initialize result. Any failure of the initialize
        call raises HandshakeError; the notification is best effort.
        """
        request = initialize_request(self.session.next_request_id())
        try:
            response = self.transport.send(server_url, request)
        except TransportError as e:
            raise HandshakeError(f"initialize request failed: {e}") from e
        if response.error is not None:
            err = RpcError(response.error.code, response.error.message, response.error.data)
            raise HandshakeError(f"initialize error: {err}") from err

        result = response.result if isinstance(response.result, dict) else {}
        info = result.get("serverInfo")
        if isinstance(info, dict):
            log.info("Connected to %s %s", info.get("name", "?"), info.get("version", ""))

        try:
            self.transport.notify(server_url, JSONRPCRequest(method="notifications/initialized"))
        except TransportError as e:
            log.warning("Failed to send initialized notification: %s", e)
        return result
