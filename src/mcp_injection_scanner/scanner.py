from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import ScanConfig, validate_target_url
from .enumerator import Enumerator
from .errors import ConfigurationError, HandshakeError, ScanTimeoutError
from .handshake import Handshake
from .models import CATEGORY_ORDER, ListingOutcome, ScanResult
from .session import Session
from .transport import HttpTransport

log = logging.getLogger(__name__)


class ScanState(str, Enum):
    idle = "idle"
    handshaking = "handshaking"
    enumerating_tools = "enumerating_tools"
    enumerating_prompts = "enumerating_prompts"
    enumerating_resources = "enumerating_resources"
    enumerating = "enumerating"
    done = "done"
    failed = "failed"


_ENUMERATING = {
    "tools": ScanState.enumerating_tools,
    "prompts": ScanState.enumerating_prompts,
    "resources": ScanState.enumerating_resources,
}


class Scanner:
    """Handshake, then list tools, prompts and resources under one deadline.

    The deadline is shared by the whole scan: running out of time at any step
    raises ScanTimeoutError and the remaining steps are skipped. Listing
    failures of any other kind only empty their own category.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        on_result: Optional[Callable[[ScanResult], None]] = None,
    ) -> None:
        self.client = client
        self.on_result = on_result
        self.state = ScanState.idle
        self.session: Optional[Session] = None

    def scan(self, config: ScanConfig) -> ScanResult:
        self.state = ScanState.idle
        started_at = datetime.now(timezone.utc)
        try:
            server_url = validate_target_url(config.url)
        except ConfigurationError:
            self.state = ScanState.failed
            raise

        session = Session(config.session_id)
        self.session = session
        deadline = time.monotonic() + config.timeout
        log.info("Connecting to MCP server at %s", server_url)
        with HttpTransport(session, client=self.client, deadline=deadline) as transport:
            try:
                self.state = ScanState.handshaking
                init_result = Handshake(transport, session).perform(server_url)
                enumerator = Enumerator(transport, session)
                if config.parallel:
                    outcomes = self._enumerate_parallel(enumerator, server_url)
                else:
                    outcomes = self._enumerate(enumerator, server_url)
            except (HandshakeError, ScanTimeoutError):
                self.state = ScanState.failed
                raise

        server_info: Dict[str, Any] = {}
        if isinstance(init_result.get("serverInfo"), dict):
            server_info = init_result["serverInfo"]
        result = ScanResult.from_outcomes(server_url, started_at, outcomes, server_info)
        self.state = ScanState.done
        if self.on_result is not None:
            self.on_result(result)
        return result

    def _enumerate(self, enumerator: Enumerator, server_url: str) -> List[ListingOutcome]:
        outcomes: List[ListingOutcome] = []
        for category in CATEGORY_ORDER:
            self.state = _ENUMERATING[category.value]
            outcomes.append(enumerator.list_category(server_url, category))
        return outcomes

    def _enumerate_parallel(self, enumerator: Enumerator, server_url: str) -> List[ListingOutcome]:
        self.state = ScanState.enumerating
        with ThreadPoolExecutor(max_workers=len(CATEGORY_ORDER), thread_name_prefix="mcp-list") as pool:
            futures = [pool.submit(enumerator.list_category, server_url, c) for c in CATEGORY_ORDER]
            return [f.result() for f in futures]


def scan_server(url: str, timeout: float = 30.0, parallel: bool = False, client: Optional[httpx.Client] = None) -> ScanResult:
    config = ScanConfig.build(url=url, timeout=timeout, parallel=parallel)
    return Scanner(client=client).scan(config)
