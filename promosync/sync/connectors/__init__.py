"""
Content Source Connectors Module.

Client interface, raw page adapter and the Notion implementation.
"""

from .base import (
    ContentSourceClient,
    InMemoryContentSource,
    RawPage,
    is_placeholder,
)
from .notion import NotionContentClient, flatten_property, page_from_notion

__all__ = [
    "ContentSourceClient",
    "InMemoryContentSource",
    "RawPage",
    "is_placeholder",
    "NotionContentClient",
    "flatten_property",
    "page_from_notion",
]
