from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    tools = "tools"
    prompts = "prompts"
    resources = "resources"

    @property
    def method(self) -> str:
        return f"{self.value}/list"

    @property
    def result_field(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Singular form used on the analysis wire ("tool", "prompt", "resource")."""
        return self.value[:-1]


CATEGORY_ORDER = (Category.tools, Category.prompts, Category.resources)


class RiskLevel(str, Enum):
    high = "HIGH"
    medium = "MEDIUM"
    low = "LOW"


# JSON-RPC 2.0 envelopes


class JSONRPCRequest(BaseModel):
    jsonrpc: str = "2.0"
    id: Optional[int] = None
    method: str
    params: Optional[Any] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.id is not None:
            payload["id"] = self.id
        payload["method"] = self.method
        if self.params is not None:
            payload["params"] = self.params
        return payload


class JSONRPCError(BaseModel):
    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCResponse(BaseModel):
    jsonrpc: str = "2.0"
    id: Optional[Any] = None
    result: Optional[Any] = None
    error: Optional[JSONRPCError] = None

    @property
    def has_result(self) -> bool:
        return "result" in self.model_fields_set


# Upstream listing records. Only name/description/uri survive the projection.


class _Upstream(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Tool(_Upstream):
    name: Optional[str] = None
    description: Optional[str] = None
    inputSchema: Optional[Any] = None


class Prompt(_Upstream):
    name: Optional[str] = None
    description: Optional[str] = None
    arguments: Optional[Any] = None


class Resource(_Upstream):
    uri: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    mimeType: Optional[str] = None


class ListToolsResult(_Upstream):
    tools: Optional[List[Tool]] = None


class ListPromptsResult(_Upstream):
    prompts: Optional[List[Prompt]] = None


class ListResourcesResult(_Upstream):
    resources: Optional[List[Resource]] = None


LIST_RESULT_MODELS = {
    Category.tools: ListToolsResult,
    Category.prompts: ListPromptsResult,
    Category.resources: ListResourcesResult,
}


class CapabilityItem(BaseModel):
    category: Category
    name: str
    description: str = ""
    uri: Optional[str] = None


class ListingOutcome(BaseModel):
    category: Category
    items: List[CapabilityItem] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, category: Category, error: str) -> "ListingOutcome":
        return cls(category=category, items=[], error=error)


class ScanResult(BaseModel):
    target: str
    started_at: datetime
    finished_at: datetime
    server_info: Dict[str, Any] = Field(default_factory=dict)
    tools: List[CapabilityItem] = Field(default_factory=list)
    prompts: List[CapabilityItem] = Field(default_factory=list)
    resources: List[CapabilityItem] = Field(default_factory=list)
    listing_errors: Dict[str, str] = Field(default_factory=dict)

    def items(self, category: Category) -> List[CapabilityItem]:
        return getattr(self, category.value)

    def all_items(self) -> List[CapabilityItem]:
        return [*self.tools, *self.prompts, *self.resources]

    @property
    def is_empty(self) -> bool:
        return not (self.tools or self.prompts or self.resources)

    @classmethod
    def from_outcomes(
        cls,
        target: str,
        started_at: datetime,
        outcomes: List[ListingOutcome],
        server_info: Optional[Dict[str, Any]] = None,
    ) -> "ScanResult":
        by_category = {o.category: o for o in outcomes}
        fields: Dict[str, Any] = {}
        errors: Dict[str, str] = {}
        for category in CATEGORY_ORDER:
            outcome = by_category.get(category)
            if outcome is None:
                fields[category.value] = []
                continue
            fields[category.value] = list(outcome.items)
            if outcome.error is not None:
                errors[category.value] = outcome.error
        return cls(
            target=target,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            server_info=server_info or {},
            listing_errors=errors,
            **fields,
        )


# Analysis collaborator verdicts


class InjectionVerdict(BaseModel):
    is_injection: bool = False
    confidence: float = 0.0
    risk_level: Optional[str] = None


class CodeVerdict(BaseModel):
    is_code: bool = False
    confidence: float = 0.0
    reason: str = ""
    pattern: str = ""


class AnalysisResult(BaseModel):
    item: CapabilityItem
    detection: Optional[InjectionVerdict] = None
    code_detection: Optional[CodeVerdict] = None
    error: Optional[str] = None

    @property
    def flagged(self) -> bool:
        if self.error is not None:
            return False
        injected = self.detection is not None and self.detection.is_injection
        coded = self.code_detection is not None and self.code_detection.is_code
        return injected or coded


class ScanReport(BaseModel):
    result: ScanResult
    analyses: List[AnalysisResult] = Field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        totals: Dict[str, int] = {c.value: len(self.result.items(c)) for c in CATEGORY_ORDER}
        totals["listing_errors"] = len(self.result.listing_errors)
        totals["injections"] = 0
        totals["banned_code"] = 0
        totals["analysis_errors"] = 0
        for a in self.analyses:
            if a.error is not None:
                totals["analysis_errors"] += 1
                continue
            if a.detection is not None and a.detection.is_injection:
                totals["injections"] += 1
            if a.code_detection is not None and a.code_detection.is_code:
                totals["banned_code"] += 1
        return totals

    def category_analyses(self, category: Category) -> List[Optional[AnalysisResult]]:
        """Analyses for one category, row by row.

        ``analyses`` follows ``result.all_items()`` order; rows past its end
        map to None.
        """
        offset = 0
        for c in CATEGORY_ORDER:
            if c is category:
                break
            offset += len(self.result.items(c))
        count = len(self.result.items(category))
        found: List[Optional[AnalysisResult]] = list(self.analyses[offset : offset + count])
        return found + [None] * (count - len(found))
