"""
Sync Progress Tracking.

Keeps the state of every named sync operation and publishes each change
synchronously to the registered listeners.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from promosync.sync.models import LogEntry, LogLevel, OperationStatus, SyncOperation

logger = logging.getLogger(__name__)


class SyncProgressListener:
    """Receives operation events; override the ones you care about."""

    def on_started(self, operation: SyncOperation) -> None:
        pass

    def on_progress_updated(self, operation: SyncOperation) -> None:
        pass

    def on_completed(self, operation: SyncOperation) -> None:
        pass

    def on_log_message(self, operation_id: str, entry: LogEntry) -> None:
        pass


class ProgressTracker:
    """
    Tracks multi-step sync operations.

    Operations move PENDING -> IN_PROGRESS -> SUCCEEDED | FAILED. Terminal
    operations ignore further progress updates.
    """

    def __init__(self):
        self._operations: Dict[str, SyncOperation] = {}
        self._listeners: List[SyncProgressListener] = []
        self._lock = threading.RLock()

    def add_listener(self, listener: SyncProgressListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: SyncProgressListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _publish(self, event: str, *args) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                getattr(listener, event)(*args)
            except Exception as e:
                logger.error(f"Progress listener {type(listener).__name__}.{event} failed: {e}")

    def _append_log(self, operation: SyncOperation, message: str, level: LogLevel) -> LogEntry:
        entry = LogEntry(message=message, level=level)
        operation.log_entries.append(entry)
        return entry

    def start_operation(self, operation_id: str, label: str, total_steps: int) -> SyncOperation:
        """Create (or restart) an operation in the IN_PROGRESS state."""
        with self._lock:
            operation = SyncOperation(
                operation_id=operation_id,
                label=label,
                total_steps=max(0, total_steps),
                status=OperationStatus.IN_PROGRESS,
                started_at=datetime.now(timezone.utc),
            )
            self._operations[operation_id] = operation
            entry = self._append_log(operation, f"Started {label}", LogLevel.INFO)

        logger.debug(f"Started operation {operation_id}: {label} ({total_steps} steps)")
        self._publish("on_started", operation)
        self._publish("on_log_message", operation_id, entry)
        return operation

    def update_progress(self, operation_id: str, step: int, message: str) -> None:
        """Set the current step (clamped to the total) and publish an update."""
        with self._lock:
            operation = self._operations.get(operation_id)
            if operation is None or operation.is_terminal:
                return
            operation.current_step = max(0, min(step, operation.total_steps))
            entry = self._append_log(operation, message, LogLevel.INFO)

        self._publish("on_progress_updated", operation)
        self._publish("on_log_message", operation_id, entry)

    def add_log_message(self, operation_id: str, message: str, level: LogLevel = LogLevel.INFO) -> None:
        """Attach a message to an operation; messages for unknown ids are dropped."""
        with self._lock:
            operation = self._operations.get(operation_id)
            if operation is None:
                return
            entry = self._append_log(operation, message, level)

        self._publish("on_log_message", operation_id, entry)

    def complete_operation(self, operation_id: str, message: str, items_processed: int = 0) -> None:
        """Mark an operation as succeeded."""
        self._finish(operation_id, OperationStatus.SUCCEEDED, message, items_processed)

    def fail_operation(self, operation_id: str, message: str, items_processed: int = 0) -> None:
        """Mark an operation as failed; callers use this to cancel in-flight work."""
        self._finish(operation_id, OperationStatus.FAILED, message, items_processed)

    def _finish(self, operation_id: str, status: OperationStatus, message: str, items_processed: int) -> None:
        with self._lock:
            operation = self._operations.get(operation_id)
            if operation is None or operation.is_terminal:
                return
            operation.status = status
            operation.result_message = message
            operation.items_processed = items_processed
            operation.completed_at = datetime.now(timezone.utc)
            if status == OperationStatus.SUCCEEDED:
                operation.current_step = operation.total_steps
            level = LogLevel.INFO if status == OperationStatus.SUCCEEDED else LogLevel.ERROR
            entry = self._append_log(operation, message, level)

        self._publish("on_completed", operation)
        self._publish("on_log_message", operation_id, entry)

    def is_cancelled(self, operation_id: str) -> bool:
        """True once the operation has been failed, whoever did it."""
        with self._lock:
            operation = self._operations.get(operation_id)
            return operation is not None and operation.status == OperationStatus.FAILED

    def get_operation(self, operation_id: str) -> Optional[SyncOperation]:
        with self._lock:
            return self._operations.get(operation_id)

    def get_active_operations(self) -> List[SyncOperation]:
        with self._lock:
            return [op for op in self._operations.values() if not op.is_terminal]

    def get_all_operations(self) -> List[SyncOperation]:
        with self._lock:
            return list(self._operations.values())

    def cleanup_completed(self, max_age_seconds: float = 3600.0) -> int:
        """Forget terminal operations older than ``max_age_seconds``."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
        with self._lock:
            stale = [
                op_id for op_id, op in self._operations.items()
                if op.is_terminal and op.completed_at is not None and op.completed_at <= cutoff
            ]
            for op_id in stale:
                del self._operations[op_id]
        return len(stale)


__all__ = ["SyncProgressListener", "ProgressTracker"]
