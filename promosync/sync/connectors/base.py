"""
Base Connector Module.

Defines the content-source client interface and the raw page adapter that
confines schema-less property access to this boundary.
"""

import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = frozenset({"", "n/a", "unknown", "none", "null", "-"})
_RELATION_PLACEHOLDER = re.compile(r"^\d+\s+relations?$", re.IGNORECASE)


def is_placeholder(value: Any) -> bool:
    """
    True for values that stand for "no data".

    Covers ``None``, blank strings, "N/A"-style markers and relation counts
    such as "3 relations" that a client emits when it could not resolve the
    related pages.
    """
    if value is None:
        return True
    if isinstance(value, str):
        text = value.strip()
        return text.lower() in PLACEHOLDER_VALUES or bool(_RELATION_PLACEHOLDER.match(text))
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


@dataclass
class RawPage:
    """A source record: an id plus an untyped map of named properties."""
    id: str
    properties: Dict[str, Any] = field(default_factory=dict)
    url: Optional[str] = None
    last_edited: Optional[str] = None

    def raw(self, name: str) -> Any:
        value = self.properties.get(name)
        return None if is_placeholder(value) else value

    def text(self, name: str) -> Optional[str]:
        value = self.raw(name)
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value if not is_placeholder(v))
        text = str(value).strip()
        return None if is_placeholder(text) else text

    def number(self, name: str) -> Optional[float]:
        value = self.raw(name)
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.replace(",", "").strip())
            except ValueError:
                logger.debug(f"Page {self.id}: property {name!r} is not a number: {value!r}")
        return None

    def integer(self, name: str) -> Optional[int]:
        value = self.number(name)
        return int(value) if value is not None else None

    def boolean(self, name: str) -> Optional[bool]:
        value = self.raw(name)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "yes", "1", "on", "active"):
                return True
            if lowered in ("false", "no", "0", "off", "inactive"):
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        return None

    def date(self, name: str) -> Optional[date]:
        value = self.raw(name)
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
            except ValueError:
                logger.warning(f"Page {self.id}: invalid date in {name!r}: {value!r}")
        return None

    def relation_ids(self, name: str) -> List[str]:
        """Ids of related pages; a placeholder count yields an empty list."""
        value = self.raw(name)
        if value is None:
            return []
        if isinstance(value, str):
            value = [part for part in value.split(",")]
        if not isinstance(value, (list, tuple)):
            value = [value]
        ids = []
        for item in value:
            if isinstance(item, Mapping):
                item = item.get("id")
            if not is_placeholder(item):
                ids.append(str(item).strip())
        return ids

    def names(self, name: str) -> List[str]:
        """Multi-value text property as a list."""
        return self.relation_ids(name)

    def is_placeholder(self, name: str) -> bool:
        return is_placeholder(self.properties.get(name))


class ContentSourceClient(ABC):
    """Interface of the external content source."""

    @abstractmethod
    def fetch_all(self, entity_type: str) -> List[RawPage]:
        """Fetch every page of an entity type."""

    @abstractmethod
    def fetch_one(self, entity_type: str, page_id: str) -> Optional[RawPage]:
        """Fetch a single page; ``None`` when it does not exist."""

    def is_configured(self) -> bool:
        """Whether credentials and endpoints needed for fetching are present."""
        return True

    def close(self) -> None:
        pass


class InMemoryContentSource(ContentSourceClient):
    """Content source backed by dictionaries; pages can be replaced between runs."""

    def __init__(self, pages: Optional[Mapping[str, Iterable[RawPage]]] = None):
        self._pages: Dict[str, Dict[str, RawPage]] = {}
        self._lock = threading.Lock()
        self.fetch_counts: Dict[str, int] = {}
        for entity_type, entity_pages in (pages or {}).items():
            self.set_pages(entity_type, entity_pages)

    def set_pages(self, entity_type: str, pages: Iterable[RawPage]) -> None:
        with self._lock:
            self._pages[entity_type] = {page.id: page for page in pages}

    def put_page(self, entity_type: str, page: RawPage) -> None:
        with self._lock:
            self._pages.setdefault(entity_type, {})[page.id] = page

    def fetch_all(self, entity_type: str) -> List[RawPage]:
        with self._lock:
            self.fetch_counts[entity_type] = self.fetch_counts.get(entity_type, 0) + 1
            return list(self._pages.get(entity_type, {}).values())

    def fetch_one(self, entity_type: str, page_id: str) -> Optional[RawPage]:
        with self._lock:
            return self._pages.get(entity_type, {}).get(page_id)


__all__ = [
    "PLACEHOLDER_VALUES",
    "is_placeholder",
    "RawPage",
    "ContentSourceClient",
    "InMemoryContentSource",
]
