"""
promosync sync engine.

Value types, progress tracking, dependency ordering and batch processing.
Workers, connectors, the orchestrator and the scheduler live in their own
subpackages and are imported from there.
"""

from promosync.sync.batch_processor import BatchConfig, BatchProgress, BatchRun, BatchStats, ParallelBatchProcessor
from promosync.sync.dependency import DependencyAnalyzer
from promosync.sync.models import (
    LogEntry,
    LogLevel,
    OperationStatus,
    SyncEntityType,
    SyncOperation,
    SyncResult,
    SyncRunReport,
)
from promosync.sync.progress import ProgressTracker, SyncProgressListener

__all__ = [
    "BatchConfig",
    "BatchProgress",
    "BatchRun",
    "BatchStats",
    "ParallelBatchProcessor",
    "DependencyAnalyzer",
    "LogEntry",
    "LogLevel",
    "OperationStatus",
    "SyncEntityType",
    "SyncOperation",
    "SyncResult",
    "SyncRunReport",
    "ProgressTracker",
    "SyncProgressListener",
]
