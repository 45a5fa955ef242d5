"""
Sync engine value types.

Entity type catalogue, operation progress records and the results returned
by workers and the orchestrator.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncEntityType(str, Enum):
    """Entity types the engine can synchronize."""
    SHOW_TYPES = "show_types"
    SHOW_TEMPLATES = "show_templates"
    SEASONS = "seasons"
    INJURIES = "injuries"
    NPCS = "npcs"
    WRESTLERS = "wrestlers"
    FACTIONS = "factions"
    TEAMS = "teams"
    TITLES = "titles"
    TITLE_REIGNS = "title_reigns"
    SHOWS = "shows"
    SEGMENTS = "segments"
    RIVALRIES = "rivalries"
    FACTION_RIVALRIES = "faction_rivalries"

    @property
    def key(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def from_key(cls, key: str) -> Optional["SyncEntityType"]:
        """Look up an entity type by key or alias; ``None`` when unknown."""
        normalized = key.strip().lower().replace("-", "_")
        normalized = _ALIASES.get(normalized, normalized)
        for entity_type in cls:
            if entity_type.value == normalized:
                return entity_type
        return None


_ALIASES = {
    "templates": "show_templates",
    "injury_types": "injuries",
    "title_reign": "title_reigns",
    "show_type": "show_types",
}


class OperationStatus(str, Enum):
    """Lifecycle of a tracked sync operation."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class LogEntry:
    """A timestamped message attached to an operation."""
    message: str
    level: LogLevel = LogLevel.INFO
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
        }


@dataclass
class SyncOperation:
    """Progress record of one named multi-step operation."""
    operation_id: str
    label: str
    total_steps: int
    current_step: int = 0
    status: OperationStatus = OperationStatus.PENDING
    result_message: Optional[str] = None
    items_processed: int = 0
    log_entries: List[LogEntry] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (OperationStatus.SUCCEEDED, OperationStatus.FAILED)

    @property
    def progress_percentage(self) -> float:
        """Fraction of steps done, in [0, 1]."""
        if self.total_steps <= 0:
            return 1.0 if self.status == OperationStatus.SUCCEEDED else 0.0
        return min(1.0, self.current_step / self.total_steps)

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.completed_at or _utcnow()
        return (end - self.started_at).total_seconds()

    @property
    def estimated_remaining_seconds(self) -> Optional[float]:
        """Linear estimate from the elapsed time; ``None`` before any progress."""
        if self.is_terminal:
            return 0.0
        progress = self.progress_percentage
        if progress <= 0.0:
            return None
        elapsed = self.elapsed_seconds
        return max(0.0, elapsed / progress - elapsed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "label": self.label,
            "status": self.status.value,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "progress": round(self.progress_percentage, 4),
            "result_message": self.result_message,
            "items_processed": self.items_processed,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "estimated_remaining_seconds": self.estimated_remaining_seconds,
            "log": [entry.to_dict() for entry in self.log_entries],
        }


@dataclass(frozen=True)
class SyncResult:
    """Outcome of synchronizing one entity type."""
    entity_type: str
    success: bool
    created_count: int = 0
    updated_count: int = 0
    error_count: int = 0
    error_message: Optional[str] = None
    merged_count: int = 0
    messages: Tuple[str, ...] = ()
    attempts: int = 1
    circuit_open: bool = False
    duration_ms: float = 0.0

    @property
    def synced_count(self) -> int:
        return self.created_count + self.updated_count

    @classmethod
    def succeeded(
        cls,
        entity_type: str,
        created_count: int = 0,
        updated_count: int = 0,
        error_count: int = 0,
        merged_count: int = 0,
        messages: Tuple[str, ...] = ()
    ) -> "SyncResult":
        return cls(
            entity_type=entity_type,
            success=True,
            created_count=created_count,
            updated_count=updated_count,
            error_count=error_count,
            merged_count=merged_count,
            messages=tuple(messages),
        )

    @classmethod
    def failed(
        cls,
        entity_type: str,
        error_message: str,
        created_count: int = 0,
        updated_count: int = 0,
        error_count: int = 0,
        circuit_open: bool = False,
        messages: Tuple[str, ...] = ()
    ) -> "SyncResult":
        return cls(
            entity_type=entity_type,
            success=False,
            created_count=created_count,
            updated_count=updated_count,
            error_count=error_count,
            error_message=error_message,
            circuit_open=circuit_open,
            messages=tuple(messages),
        )

    @classmethod
    def skipped(cls, entity_type: str, reason: str) -> "SyncResult":
        """Nothing to do; counts as success."""
        return cls(entity_type=entity_type, success=True, messages=(reason,))

    def with_run_info(self, attempts: int, duration_ms: float) -> "SyncResult":
        return replace(self, attempts=attempts, duration_ms=duration_ms)

    def summary(self) -> str:
        if self.success:
            return (
                f"{self.entity_type}: {self.synced_count} synced ({self.created_count} created, "
                f"{self.updated_count} updated), {self.error_count} errors"
            )
        return f"{self.entity_type}: failed - {self.error_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "success": self.success,
            "synced_count": self.synced_count,
            "created_count": self.created_count,
            "updated_count": self.updated_count,
            "error_count": self.error_count,
            "merged_count": self.merged_count,
            "error_message": self.error_message,
            "messages": list(self.messages),
            "attempts": self.attempts,
            "circuit_open": self.circuit_open,
            "duration_ms": round(self.duration_ms, 2),
        }


@dataclass
class SyncRunReport:
    """Aggregate result of one orchestrator run over all entity types."""
    session_id: str
    order: List[str] = field(default_factory=list)
    results: List[SyncResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    configuration_error: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
    integrity: Optional[Dict[str, Any]] = None

    @property
    def success(self) -> bool:
        return (
            self.configuration_error is None
            and self.error is None
            and all(r.success for r in self.results)
        )

    @property
    def total_synced(self) -> int:
        return sum(r.synced_count for r in self.results if r.success)

    @property
    def failed_entities(self) -> List[str]:
        return [r.entity_type for r in self.results if not r.success]

    def result_for(self, entity_type: str) -> Optional[SyncResult]:
        for result in self.results:
            if result.entity_type == entity_type:
                return result
        return None

    def finish(self) -> "SyncRunReport":
        self.finished_at = _utcnow()
        return self

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or _utcnow()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "success": self.success,
            "order": list(self.order),
            "results": [r.to_dict() for r in self.results],
            "skipped": list(self.skipped),
            "configuration_error": self.configuration_error,
            "error": self.error,
            "warnings": list(self.warnings),
            "total_synced": self.total_synced,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "integrity": self.integrity,
        }


__all__ = [
    "SyncEntityType",
    "OperationStatus",
    "LogLevel",
    "LogEntry",
    "SyncOperation",
    "SyncResult",
    "SyncRunReport",
]
