"""Client for the prompt-injection analysis service.

The service is a separate process; every item is posted on its own and any
failure is recorded on that item's AnalysisResult instead of being raised.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional

import httpx

from .config import ANALYZER_TIMEOUT, DEFAULT_ANALYZER_URL
from .models import AnalysisResult, CapabilityItem, CodeVerdict, InjectionVerdict

log = logging.getLogger(__name__)


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def parse_analysis(item: CapabilityItem, data: Any) -> AnalysisResult:
    if not isinstance(data, dict):
        return AnalysisResult(item=item, error="Invalid analysis reply")
    if "error" in data:
        return AnalysisResult(item=item, error=str(data["error"]))

    detection = data.get("detection")
    if not isinstance(detection, dict):
        return AnalysisResult(item=item, error="Invalid detection result")
    verdict = InjectionVerdict(
        is_injection=detection.get("is_injection") is True,
        confidence=_as_float(detection.get("confidence")),
        risk_level=_as_str(detection.get("risk_level")) or None,
    )

    code: Optional[CodeVerdict] = None
    raw_code = data.get("code_detection")
    if isinstance(raw_code, dict):
        code = CodeVerdict(
            is_code=raw_code.get("is_code") is True,
            confidence=_as_float(raw_code.get("confidence")),
            reason=_as_str(raw_code.get("reason")),
            pattern=_as_str(raw_code.get("pattern")),
        )
    return AnalysisResult(item=item, detection=verdict, code_detection=code)


class Analyzer:
    def __init__(
        self,
        url: str = DEFAULT_ANALYZER_URL,
        client: Optional[httpx.Client] = None,
        timeout: float = ANALYZER_TIMEOUT,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client if client is not None else httpx.Client()

    def __enter__(self) -> "Analyzer":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def analyze(self, item: CapabilityItem) -> AnalysisResult:
        payload = {"name": item.name, "description": item.description, "type": item.category.label}
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        log.debug("Sending analysis request: %s", payload)
        try:
            resp = self.client.post(
                self.url,
                content=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            result = AnalysisResult(item=item, error=f"HTTP request failed: {e}")
            log.warning("Analysis of %s %r failed: %s", item.category.label, item.name, result.error)
            return result

        log.debug("Received analysis response (status=%d): %s", resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError:
            reason = "Failed to parse response" if resp.is_success else f"analysis service returned status {resp.status_code}"
            result = AnalysisResult(item=item, error=reason)
        else:
            if not resp.is_success and not (isinstance(data, dict) and "error" in data):
                result = AnalysisResult(item=item, error=f"analysis service returned status {resp.status_code}")
            else:
                result = parse_analysis(item, data)
        if result.error is not None:
            log.warning("Analysis of %s %r failed: %s", item.category.label, item.name, result.error)
        return result

    def analyze_all(self, items: Iterable[CapabilityItem]) -> List[AnalysisResult]:
        return [self.analyze(item) for item in items]
