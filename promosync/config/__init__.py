"""promosync configuration."""

from promosync.config.settings import (
    AppSettings,
    CircuitBreakerSettings,
    DatabaseSettings,
    HealthSettings,
    NotionSettings,
    RetrySettings,
    SchedulerSettings,
    Settings,
    SyncSettings,
    settings,
)

__all__ = [
    "AppSettings",
    "CircuitBreakerSettings",
    "DatabaseSettings",
    "HealthSettings",
    "NotionSettings",
    "RetrySettings",
    "SchedulerSettings",
    "Settings",
    "SyncSettings",
    "settings",
]
