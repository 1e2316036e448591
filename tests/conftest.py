from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

SESSION_HEADER = "Mcp-Session-Id"

Reply = Union[Dict[str, Any], httpx.Response, Callable[[httpx.Request, Dict[str, Any]], httpx.Response]]


def default_replies() -> Dict[str, Reply]:
    return {
        "initialize": {
            "result": {
                "protocolVersion": "2025-06-18",
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "fake-server", "version": "1.2.3"},
            }
        },
        "tools/list": {"result": {"tools": []}},
        "prompts/list": {"result": {"prompts": []}},
        "resources/list": {"result": {"resources": []}},
    }


class FakeMcpServer:
    """Callable handler for httpx.MockTransport that answers JSON-RPC by method.

    A reply is either a dict merged into the response envelope
    (``{"result": ...}`` or ``{"error": ...}``), a ready httpx.Response, or a
    callable ``(request, body) -> httpx.Response``. Notifications get 202.
    """

    def __init__(
        self,
        replies: Optional[Dict[str, Reply]] = None,
        session_headers: Optional[Dict[str, str]] = None,
        sse: bool = False,
    ) -> None:
        self.replies = default_replies()
        self.replies.update(replies or {})
        self.session_headers = session_headers or {}
        self.sse = sse
        self.calls: List[Dict[str, Any]] = []

    @property
    def methods(self) -> List[str]:
        return [c["method"] for c in self.calls]

    def ids(self) -> List[Any]:
        return [c["id"] for c in self.calls if c["id"] is not None]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body.get("method")
        self.calls.append(
            {
                "method": method,
                "id": body.get("id"),
                "session_id": request.headers.get(SESSION_HEADER),
                "headers": request.headers,
                "body": body,
            }
        )
        headers = {}
        if method in self.session_headers:
            headers[SESSION_HEADER] = self.session_headers[method]

        reply = self.replies.get(method)
        if isinstance(reply, httpx.Response):
            return reply
        if callable(reply):
            return reply(request, body)
        if "id" not in body:
            return httpx.Response(202, headers=headers)
        if reply is None:
            reply = {"error": {"code": -32601, "message": "Method not found"}}
        payload = {"jsonrpc": "2.0", "id": body["id"], **reply}
        if self.sse:
            headers["content-type"] = "text/event-stream"
            return httpx.Response(200, text=f"event: message\ndata: {json.dumps(payload)}\n\n", headers=headers)
        return httpx.Response(200, json=payload, headers=headers)


def mock_client(server: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(server))


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def monotonic(self) -> float:
        return self.now


@pytest.fixture
def server() -> FakeMcpServer:
    return FakeMcpServer()


@pytest.fixture
def client(server: FakeMcpServer) -> httpx.Client:
    with mock_client(server) as c:
        yield c


MCP_URL = "http://mcp.example.test/mcp"
