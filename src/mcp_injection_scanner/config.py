from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, ValidationError, field_validator

from .errors import ConfigurationError

DEFAULT_SCAN_TIMEOUT = 30.0
DEFAULT_ANALYZER_URL = "http://localhost:5001/analyze"
ANALYZER_TIMEOUT = 30.0


def _check_http_url(value: str, what: str) -> str:
    if not value:
        raise ValueError(f"{what} is empty")
    bad = next((ch for ch in value if ch.isspace() or ord(ch) < 32 or ord(ch) == 127), None)
    if bad is not None:
        raise ValueError(f"invalid {what} {value!r}: contains {bad!r}")
    parts = urlsplit(value)
    if parts.scheme.lower() not in ("http", "https"):
        raise ValueError(f"{what} must start with http:// or https://")
    try:
        parts.port
    except ValueError as e:
        raise ValueError(f"invalid {what} {value!r}: {e}") from e
    if not parts.hostname:
        raise ValueError(f"invalid {what} {value!r}: missing host")
    try:
        httpx.URL(value)
    except httpx.InvalidURL as e:
        raise ValueError(f"invalid {what} {value!r}: {e}") from e
    return value


def validate_target_url(url: str) -> str:
    try:
        return _check_http_url(url, "HTTP URL")
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


class ScanConfig(BaseModel):
    url: str
    timeout: float = DEFAULT_SCAN_TIMEOUT
    analyzer_url: str = DEFAULT_ANALYZER_URL
    analysis_enabled: bool = True
    parallel: bool = False
    session_id: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _url(cls, v: str) -> str:
        return _check_http_url(v, "HTTP URL")

    @field_validator("analyzer_url")
    @classmethod
    def _analyzer_url(cls, v: str) -> str:
        return _check_http_url(v, "analyzer URL")

    @field_validator("timeout")
    @classmethod
    def _timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @classmethod
    def build(cls, **values: Any) -> "ScanConfig":
        """Construct a config, reporting every validation problem as ConfigurationError."""
        try:
            return cls(**values)
        except ValidationError as e:
            problems = "; ".join(err["msg"].removeprefix("Value error, ") for err in e.errors())
            raise ConfigurationError(problems) from e
