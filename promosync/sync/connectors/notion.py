"""
Notion Content Source Connector.

Reads entity pages from Notion databases over the public REST API. Every
HTTP request first takes a permit from the shared rate limiter.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from promosync.config.settings import NotionSettings
from promosync.exceptions import (
    NonRetryableSyncError,
    RetryableSyncError,
    SyncConfigurationError,
    is_retryable_status,
)
from promosync.sync.connectors.base import ContentSourceClient, RawPage
from promosync.sync.gateway.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def flatten_property(prop: Any) -> Any:
    """Reduce a Notion property object to a plain Python value."""
    if not isinstance(prop, Mapping):
        return prop

    prop_type = prop.get("type")
    value = prop.get(prop_type) if prop_type else None

    if prop_type in ("title", "rich_text"):
        return "".join(part.get("plain_text", "") for part in value or [])
    if prop_type in ("select", "status"):
        return value.get("name") if value else None
    if prop_type == "multi_select":
        return [option.get("name") for option in value or []]
    if prop_type == "relation":
        return [rel.get("id") for rel in value or []]
    if prop_type == "date":
        return value.get("start") if value else None
    if prop_type == "people":
        return [person.get("name") or person.get("id") for person in value or []]
    if prop_type in ("formula", "rollup"):
        if isinstance(value, Mapping):
            inner_type = value.get("type")
            inner = value.get(inner_type)
            if inner_type == "array":
                return [flatten_property(item) for item in inner or []]
            if inner_type == "date":
                return inner.get("start") if inner else None
            return inner
        return value
    if prop_type == "unique_id":
        if not value:
            return None
        prefix = value.get("prefix")
        return f"{prefix}-{value.get('number')}" if prefix else value.get("number")
    # number, checkbox, url, email, phone_number, created_time, ...
    return value


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a ``Retry-After`` header; HTTP-date values are not supported."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        logger.debug(f"Ignoring unparseable Retry-After header: {value!r}")
        return None
    return max(0.0, seconds)


def page_from_notion(payload: Mapping[str, Any]) -> RawPage:
    properties = {
        name: flatten_property(prop)
        for name, prop in (payload.get("properties") or {}).items()
    }
    return RawPage(
        id=payload["id"],
        properties=properties,
        url=payload.get("url"),
        last_edited=payload.get("last_edited_time"),
    )


class NotionContentClient(ContentSourceClient):
    """Content source client for Notion databases."""

    def __init__(
        self,
        config: NotionSettings,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.config = config
        self.rate_limiter = rate_limiter
        self._client = httpx.Client(
            base_url=config.api_url.rstrip("/") + "/v1",
            timeout=config.timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {config.notion_token or ''}",
                "Notion-Version": config.api_version,
                "Content-Type": "application/json",
            },
        )

    def is_configured(self) -> bool:
        return bool(self.config.notion_token)

    def database_id(self, entity_type: str) -> str:
        database_id = self.config.database_ids.get(entity_type)
        if not database_id:
            raise SyncConfigurationError(f"No Notion database configured for {entity_type}")
        return database_id

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if self.rate_limiter is not None:
            self.rate_limiter.acquire()

        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RetryableSyncError(f"Timeout calling Notion {method} {path}: {e}") from e
        except httpx.TransportError as e:
            raise RetryableSyncError(f"Network error calling Notion {method} {path}: {e}") from e

        if response.status_code == 404:
            return response
        if response.status_code >= 400:
            message = f"Notion {method} {path} failed: {response.status_code} - {response.text[:200]}"
            if is_retryable_status(response.status_code):
                raise RetryableSyncError(
                    message,
                    status_code=response.status_code,
                    retry_after=parse_retry_after(response.headers.get("Retry-After")),
                )
            raise NonRetryableSyncError(message, status_code=response.status_code)
        return response

    def fetch_all(self, entity_type: str) -> List[RawPage]:
        database_id = self.database_id(entity_type)
        pages: List[RawPage] = []
        body: Dict[str, Any] = {"page_size": self.config.page_size}

        while True:
            response = self._request("POST", f"/databases/{database_id}/query", json=body)
            if response.status_code == 404:
                raise NonRetryableSyncError(
                    f"Notion database for {entity_type} not found", status_code=404
                )
            payload = response.json()
            pages.extend(page_from_notion(item) for item in payload.get("results", []))

            if not payload.get("has_more") or not payload.get("next_cursor"):
                break
            body["start_cursor"] = payload["next_cursor"]

        logger.info(f"Retrieved {len(pages)} {entity_type} pages from Notion")
        return pages

    def fetch_one(self, entity_type: str, page_id: str) -> Optional[RawPage]:
        response = self._request("GET", f"/pages/{page_id}")
        if response.status_code == 404:
            logger.info(f"Notion page {page_id} ({entity_type}) not found")
            return None
        return page_from_notion(response.json())

    def close(self) -> None:
        self._client.close()


__all__ = ["flatten_property", "parse_retry_after", "page_from_notion", "NotionContentClient"]
