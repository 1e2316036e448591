from __future__ import annotations

import threading
from typing import Optional

SESSION_HEADER = "Mcp-Session-Id"


class Session:
    """Per-scan protocol state shared by the transport and the handshake.

    Request ids start at 1 and are handed out under a lock, so concurrent
    listings still get unique, increasing ids. The session id is whatever the
    server sent last in the ``Mcp-Session-Id`` header.
    """

    def __init__(self, session_id: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._counter = 1
        self._session_id = session_id

    @property
    def session_id(self) -> Optional[str]:
        with self._lock:
            return self._session_id

    @property
    def request_counter(self) -> int:
        with self._lock:
            return self._counter

    def next_request_id(self) -> int:
        with self._lock:
            rid = self._counter
            self._counter += 1
            return rid

    def update_session_id(self, value: Optional[str]) -> bool:
        """Record a session id seen on a response. Returns True if it changed."""
        if not value:
            return False
        with self._lock:
            changed = value != self._session_id
            self._session_id = value
            return changed
