"""
Sync Health Monitoring for promosync.

Aggregates the outcome of every entity sync into rolling per-entity and
global health summaries, and turns them into a liveness/readiness probe.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from promosync.config.settings import HealthSettings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Probe status."""
    UP = "up"
    DOWN = "down"


@dataclass
class SyncMetric:
    """Outcome of a single entity sync."""
    entity_type: str
    success: bool
    duration_ms: float = 0.0
    item_count: int = 0
    error_message: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "item_count": self.item_count,
            "error_message": self.error_message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class HealthSummary:
    """Health figures derived from the recent metric history."""
    successful_syncs: int = 0
    failed_syncs: int = 0
    consecutive_failures: int = 0
    last_successful_sync: Optional[datetime] = None
    last_failed_sync: Optional[datetime] = None
    last_error_message: Optional[str] = None
    average_duration_ms: float = 0.0
    success_rate: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful_syncs": self.successful_syncs,
            "failed_syncs": self.failed_syncs,
            "consecutive_failures": self.consecutive_failures,
            "last_successful_sync": self.last_successful_sync.isoformat() if self.last_successful_sync else None,
            "last_failed_sync": self.last_failed_sync.isoformat() if self.last_failed_sync else None,
            "last_error_message": self.last_error_message,
            "average_duration_ms": round(self.average_duration_ms, 2),
            "success_rate": round(self.success_rate, 4),
        }


@dataclass
class HealthProbeResult:
    """Result of a liveness/readiness probe."""
    status: HealthStatus
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_up(self) -> bool:
        return self.status == HealthStatus.UP

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "details": self.details}


class _EntityHealth:
    """Mutable health state of one entity type, guarded by its own lock."""

    def __init__(self, history_size: int):
        self.lock = threading.Lock()
        self.metrics: Deque[SyncMetric] = deque(maxlen=history_size)
        self.consecutive_failures = 0
        self.last_success: Optional[datetime] = None
        self.last_failure: Optional[datetime] = None
        self.last_error: Optional[str] = None


def _summarize(metrics: List[SyncMetric]) -> HealthSummary:
    successes = [m for m in metrics if m.success]
    failures = [m for m in metrics if not m.success]
    total = len(metrics)
    return HealthSummary(
        successful_syncs=len(successes),
        failed_syncs=len(failures),
        last_successful_sync=max((m.timestamp for m in successes), default=None),
        last_failed_sync=max((m.timestamp for m in failures), default=None),
        average_duration_ms=(
            sum(m.duration_ms for m in successes) / len(successes) if successes else 0.0
        ),
        success_rate=len(successes) / total if total else 1.0,
    )


class HealthMonitor:
    """
    Rolling sync health per entity type.

    Each entity type keeps a bounded history of its most recent outcomes.
    Summaries are derived from that history on every read and are never
    stored on their own.
    """

    def __init__(
        self,
        config: Optional[HealthSettings] = None,
        sync_enabled: bool = True,
        configuration_check: Optional[Callable[[], bool]] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.config = config or HealthSettings()
        self.sync_enabled = sync_enabled
        self.configuration_check = configuration_check
        self._clock = clock
        self._entities: Dict[str, _EntityHealth] = {}
        self._registry_lock = threading.Lock()
        # Across all entity types; any success resets it
        self._global_lock = threading.Lock()
        self._global_consecutive_failures = 0

    def _entity(self, entity_type: str) -> _EntityHealth:
        with self._registry_lock:
            health = self._entities.get(entity_type)
            if health is None:
                health = _EntityHealth(self.config.history_size)
                self._entities[entity_type] = health
            return health

    def record_success(self, entity_type: str, duration_ms: float, count: int) -> None:
        """Record a successful entity sync."""
        now = self._clock()
        health = self._entity(entity_type)
        with health.lock:
            health.metrics.append(SyncMetric(
                entity_type=entity_type,
                success=True,
                duration_ms=duration_ms,
                item_count=count,
                timestamp=now,
            ))
            health.consecutive_failures = 0
            health.last_success = now
        with self._global_lock:
            self._global_consecutive_failures = 0

        logger.debug(f"Recorded successful sync: {entity_type} ({count} items, {duration_ms:.0f}ms)")

    def record_failure(self, entity_type: str, error_message: Optional[str]) -> None:
        """Record a failed entity sync."""
        now = self._clock()
        health = self._entity(entity_type)
        with health.lock:
            health.metrics.append(SyncMetric(
                entity_type=entity_type,
                success=False,
                error_message=error_message,
                timestamp=now,
            ))
            health.consecutive_failures += 1
            health.last_failure = now
            health.last_error = error_message
        with self._global_lock:
            self._global_consecutive_failures += 1

        logger.warning(f"Recorded failed sync: {entity_type} - {error_message}")

    def get_recent_metrics(self, entity_type: Optional[str] = None) -> List[SyncMetric]:
        """Return recent metrics, oldest first."""
        if entity_type is not None:
            health = self._entity(entity_type)
            with health.lock:
                return list(health.metrics)

        with self._registry_lock:
            entities = list(self._entities.values())
        metrics: List[SyncMetric] = []
        for health in entities:
            with health.lock:
                metrics.extend(health.metrics)
        return sorted(metrics, key=lambda m: m.timestamp)

    def get_health_summary(self, entity_type: Optional[str] = None) -> HealthSummary:
        """Summary for one entity type, or across all of them."""
        if entity_type is not None:
            health = self._entity(entity_type)
            with health.lock:
                summary = _summarize(list(health.metrics))
                summary.consecutive_failures = health.consecutive_failures
                summary.last_error_message = health.last_error
            return summary

        metrics = self.get_recent_metrics()
        summary = _summarize(metrics)
        with self._global_lock:
            summary.consecutive_failures = self._global_consecutive_failures
        failures = [m for m in metrics if not m.success]
        if failures:
            summary.last_error_message = failures[-1].error_message
        return summary

    def get_entity_summaries(self) -> Dict[str, HealthSummary]:
        with self._registry_lock:
            names = sorted(self._entities)
        return {name: self.get_health_summary(name) for name in names}

    def has_recent_failures(self) -> bool:
        with self._global_lock:
            return self._global_consecutive_failures > self.config.failure_alert_threshold

    def has_stale_sync(self) -> bool:
        last_success = self.get_health_summary().last_successful_sync
        if last_success is None:
            return True
        return self._clock() - last_success > timedelta(hours=self.config.stale_after_hours)

    def check_health(self, active_operations: int = 0) -> HealthProbeResult:
        """
        Liveness/readiness probe.

        Args:
            active_operations: Number of in-flight sync operations to report

        Returns:
            DOWN when the configuration is invalid or consecutive failures
            exceed the alert threshold, UP otherwise
        """
        if not self.sync_enabled:
            return HealthProbeResult(HealthStatus.UP, {"message": "Sync is disabled"})

        if self.configuration_check is not None and not self.configuration_check():
            return HealthProbeResult(HealthStatus.DOWN, {
                "error": "Invalid configuration",
                "sync_enabled": self.sync_enabled,
            })

        summary = self.get_health_summary()
        details: Dict[str, Any] = summary.to_dict()
        details["active_operations"] = active_operations

        if self.has_recent_failures():
            details["error"] = f"{summary.consecutive_failures} consecutive sync failures"
            return HealthProbeResult(HealthStatus.DOWN, details)

        if self.has_stale_sync():
            details["warning"] = "No recent successful sync"
        return HealthProbeResult(HealthStatus.UP, details)

    def cleanup_old_metrics(self, max_age_hours: int = 24) -> int:
        """Drop metrics older than ``max_age_hours``; returns how many were removed."""
        cutoff = self._clock() - timedelta(hours=max_age_hours)
        removed = 0
        with self._registry_lock:
            entities = list(self._entities.values())
        for health in entities:
            with health.lock:
                kept = [m for m in health.metrics if m.timestamp >= cutoff]
                removed += len(health.metrics) - len(kept)
                health.metrics.clear()
                health.metrics.extend(kept)
        return removed

    def reset_metrics(self) -> None:
        with self._registry_lock:
            self._entities.clear()
        with self._global_lock:
            self._global_consecutive_failures = 0
        logger.info("Sync health metrics reset")


__all__ = [
    "HealthStatus",
    "SyncMetric",
    "HealthSummary",
    "HealthProbeResult",
    "HealthMonitor",
]
