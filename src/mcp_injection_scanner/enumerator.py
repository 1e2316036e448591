from __future__ import annotations

import logging
from typing import Any, List

from pydantic import ValidationError

from .errors import TransportError
from .models import LIST_RESULT_MODELS, CapabilityItem, Category, JSONRPCRequest, ListingOutcome
from .session import Session
from .transport import HttpTransport

log = logging.getLogger(__name__)


def project_items(category: Category, result: Any) -> List[CapabilityItem]:
    """Decode a ``*/list`` result and keep only name, description and uri.

    Raises ValueError or pydantic.ValidationError when the payload does not
    have the expected shape.
    """
    if not isinstance(result, dict):
        raise ValueError(f"{category.method} result is not an object: {type(result).__name__}")
    parsed = LIST_RESULT_MODELS[category].model_validate(result)
    records = getattr(parsed, category.result_field) or []
    items: List[CapabilityItem] = []
    for record in records:
        items.append(
            CapabilityItem(
                category=category,
                name=record.name or "",
                description=record.description or "",
                uri=(record.uri or "") if category is Category.resources else None,
            )
        )
    return items


class Enumerator:
    """Lists one capability category at a time.

    Failures never escape ``list_category``: they come back as a failed
    ListingOutcome with no items so the other categories still run.
    ScanTimeoutError is the exception; it aborts the scan.
    """

    def __init__(self, transport: HttpTransport, session: Session) -> None:
        self.transport = transport
        self.session = session

    def list_category(self, server_url: str, category: Category) -> ListingOutcome:
        request = JSONRPCRequest(id=self.session.next_request_id(), method=category.method)
        try:
            response = self.transport.send(server_url, request)
        except TransportError as e:
            log.warning("Failed to list %s: %s", category.value, e)
            return ListingOutcome.failure(category, str(e))

        if response.error is not None:
            log.warning("%s list error: %s (code: %d)", category.label.capitalize(), response.error.message, response.error.code)
            return ListingOutcome.failure(category, f"{response.error.message} (code: {response.error.code})")

        try:
            items = project_items(category, response.result)
        except (ValueError, ValidationError) as e:
            log.warning("Failed to decode %s result: %s", category.value, e)
            return ListingOutcome.failure(category, f"invalid {category.method} result: {e}")

        log.info("Retrieved %d %s", len(items), category.value)
        return ListingOutcome(category=category, items=items)

    def list_tools(self, server_url: str) -> ListingOutcome:
        return self.list_category(server_url, Category.tools)

    def list_prompts(self, server_url: str) -> ListingOutcome:
        return self.list_category(server_url, Category.prompts)

    def list_resources(self, server_url: str) -> ListingOutcome:
        return self.list_category(server_url, Category.resources)
