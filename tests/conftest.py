"""
Shared pytest fixtures for the promosync test suite.

Fixture Categories:
- Configuration: Settings with fast retries and a content source token
- Sources: in-memory content source and page builders
- Engine: repositories and a fully wired orchestrator
"""

from typing import Any, Callable, Dict, Optional

import pytest

from promosync.config.settings import (
    CircuitBreakerSettings,
    HealthSettings,
    NotionSettings,
    RetrySettings,
    SchedulerSettings,
    Settings,
    SyncSettings,
)
from promosync.database.repositories import build_memory_repositories
from promosync.sync.connectors.base import InMemoryContentSource, RawPage
from promosync.sync.orchestrator import SyncOrchestrator


# =============================================================================
# Configuration
# =============================================================================


def _settings(**overrides: Any) -> Settings:
    config = Settings(
        notion=NotionSettings(
            notion_token="secret-test-token",
            api_url="https://notion.test",
            database_ids={"wrestlers": "db-wrestlers"},
        ),
        sync=SyncSettings(
            enabled=True,
            disabled_entities=[],
            batch_size=4,
            max_workers=2,
            max_error_ratio=0.5,
        ),
        retry=RetrySettings(
            max_attempts=3,
            initial_delay=0.0,
            max_delay=0.0,
            jitter=False,
            entity_max_attempts={},
        ),
        circuit_breaker=CircuitBreakerSettings(
            failure_threshold=5,
            recovery_timeout=60.0,
            success_threshold=0.6,
            evaluation_window=3,
        ),
        scheduler=SchedulerSettings(enabled=False, interval_seconds=3600, initial_delay_seconds=0),
        health=HealthSettings(failure_alert_threshold=2, history_size=50, stale_after_hours=24),
    )
    for section, values in overrides.items():
        target = getattr(config, section)
        for name, value in values.items():
            setattr(target, name, value)
    return config


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """
    Settings factory.

    Keyword arguments are section names mapping to attribute overrides,
    e.g. ``make_settings(sync={"enabled": False})``.
    """
    return _settings


@pytest.fixture
def test_settings() -> Settings:
    return _settings()


# =============================================================================
# Sources
# =============================================================================


@pytest.fixture
def content_source() -> InMemoryContentSource:
    return InMemoryContentSource()


@pytest.fixture
def page() -> Callable[..., RawPage]:
    """Build a RawPage: ``page("w-1", Name="Ace")``."""

    def build(page_id: str, url: Optional[str] = None, **properties: Any) -> RawPage:
        props: Dict[str, Any] = {name.replace("_", " "): value for name, value in properties.items()}
        return RawPage(id=page_id, properties=props, url=url)

    return build


# =============================================================================
# Engine
# =============================================================================


@pytest.fixture
def repositories():
    return build_memory_repositories()


@pytest.fixture
def make_orchestrator(content_source, repositories) -> Callable[..., SyncOrchestrator]:
    """Orchestrator over the in-memory source and repositories with no-op backoff sleeps."""

    def build(
        config: Optional[Settings] = None,
        client=None,
        clock: Optional[Callable[[], float]] = None
    ) -> SyncOrchestrator:
        kwargs: Dict[str, Any] = {"sleep": lambda seconds: None}
        if clock is not None:
            kwargs["breaker_clock"] = clock
        return SyncOrchestrator.create(
            client or content_source,
            repositories,
            config or _settings(),
            **kwargs,
        )

    return build


@pytest.fixture
def orchestrator(make_orchestrator) -> SyncOrchestrator:
    return make_orchestrator()
