"""Logging and health infrastructure."""

from promosync.system.health_monitor import (
    HealthMonitor,
    HealthProbeResult,
    HealthStatus,
    HealthSummary,
    SyncMetric,
)
from promosync.system.logging_config import get_logger, setup_logging

__all__ = [
    "HealthMonitor",
    "HealthProbeResult",
    "HealthStatus",
    "HealthSummary",
    "SyncMetric",
    "get_logger",
    "setup_logging",
]
