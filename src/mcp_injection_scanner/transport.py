from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from .errors import (
    FramingError,
    HttpStatusError,
    MalformedResponseError,
    ScanTimeoutError,
    TransportError,
)
from .models import JSONRPCRequest, JSONRPCResponse
from .session import SESSION_HEADER, Session

log = logging.getLogger(__name__)

ACCEPT = "application/json, text/event-stream"
SSE_PREAMBLE = "event:"
SSE_DATA_PREFIX = "data: "
CONNECT_TIMEOUT = 3.0
DEFAULT_TIMEOUT = 30.0
BODY_SNIPPET_LIMIT = 500


def _snippet(text: str, limit: int = BODY_SNIPPET_LIMIT) -> str:
    return text if len(text) <= limit else (text[:limit] + "...")


def normalize_body(body: str) -> str:
    """Return the JSON text carried by a response body.

    Servers may answer a POST with plain JSON or with an event stream. For the
    latter only the first ``data: `` line is used; ids, retry hints, comments
    and further data lines are dropped.
    """
    if not body.startswith(SSE_PREAMBLE):
        return body
    for line in body.splitlines():
        line = line.strip()
        if line.startswith(SSE_DATA_PREFIX):
            return line[len(SSE_DATA_PREFIX):]
    raise FramingError("no data field found in SSE response")


def decode_response(body: str) -> JSONRPCResponse:
    text = normalize_body(body)
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"response is not valid JSON: {e}: {_snippet(text)}") from e
    if not isinstance(raw, dict):
        raise MalformedResponseError(f"response is not a JSON object: {_snippet(text)}")
    try:
        response = JSONRPCResponse.model_validate(raw)
    except ValidationError as e:
        raise MalformedResponseError(f"response is not a JSON-RPC envelope: {e}") from e
    if not response.has_result and response.error is None:
        raise MalformedResponseError("response carries neither result nor error")
    return response


class HttpTransport:
    """JSON-RPC over HTTP POST against a single MCP endpoint.

    ``deadline`` is an absolute ``time.monotonic()`` value shared by every call
    of a scan; each request gets whatever time is left as its timeout.
    """

    def __init__(
        self,
        session: Session,
        client: Optional[httpx.Client] = None,
        deadline: Optional[float] = None,
    ) -> None:
        self.session = session
        self.deadline = deadline
        self._owns_client = client is None
        self.client = client if client is not None else httpx.Client(follow_redirects=True)

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def _expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def _timeout(self) -> httpx.Timeout:
        if self.deadline is None:
            return httpx.Timeout(DEFAULT_TIMEOUT, connect=CONNECT_TIMEOUT)
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise ScanTimeoutError("scan deadline exceeded")
        return httpx.Timeout(remaining, connect=min(CONNECT_TIMEOUT, remaining))

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": ACCEPT}
        sid = self.session.session_id
        if sid:
            headers[SESSION_HEADER] = sid
        return headers

    def _read_body(self, resp: httpx.Response, method: str) -> str:
        chunks: List[bytes] = []
        for chunk in resp.iter_bytes():
            if self._expired():
                raise ScanTimeoutError(f"scan deadline exceeded while reading {method} response")
            chunks.append(chunk)
        return b"".join(chunks).decode(resp.charset_encoding or "utf-8", errors="replace")

    def _post(self, server_url: str, message: JSONRPCRequest) -> Tuple[httpx.Response, str]:
        body = json.dumps(message.to_payload(), ensure_ascii=False).encode("utf-8")
        timeout = self._timeout()
        log.debug("Sending %s id=%s to %s", message.method, message.id, server_url)
        try:
            # httpx timeouts bound single reads; _read_body enforces the deadline.
            with self.client.stream("POST", server_url, content=body, headers=self._headers(), timeout=timeout) as resp:
                sid = resp.headers.get(SESSION_HEADER)
                if self.session.update_session_id(sid):
                    log.debug("Captured session id %s", sid)
                text = self._read_body(resp, message.method)
        except httpx.TimeoutException as e:
            if self._expired():
                raise ScanTimeoutError(f"scan deadline exceeded during {message.method}") from e
            raise TransportError(f"HTTP request timed out: {type(e).__name__}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request failed: {type(e).__name__}: {e}") from e
        log.debug("Received status=%d for %s id=%s", resp.status_code, message.method, message.id)
        return resp, text

    def send(self, server_url: str, request: JSONRPCRequest) -> JSONRPCResponse:
        if request.is_notification:
            raise ValueError(f"{request.method} has no id; use notify() for notifications")
        resp, text = self._post(server_url, request)
        if not resp.is_success:
            raise HttpStatusError(resp.status_code, _snippet(text))
        return decode_response(text)

    def notify(self, server_url: str, notification: JSONRPCRequest) -> None:
        resp, text = self._post(server_url, notification)
        if resp.status_code >= 400:
            log.warning(
                "Notification %s returned error status %d: %s",
                notification.method,
                resp.status_code,
                _snippet(text),
            )
