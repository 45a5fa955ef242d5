"""
Entity Sync Workers Module.

One worker per entity type, all built on the shared reconciliation base.
"""

from typing import Dict

from .base import TOTAL_STEPS, EntitySyncWorker, ReconcileOutcome, WorkerContext
from .championships import TitleReignSyncWorker, TitleSyncWorker
from .roster import FactionSyncWorker, NpcSyncWorker, TeamSyncWorker, WrestlerSyncWorker
from .shows import (
    SegmentSyncWorker,
    SeasonSyncWorker,
    ShowSyncWorker,
    ShowTemplateSyncWorker,
    ShowTypeSyncWorker,
)
from .storylines import FactionRivalrySyncWorker, InjurySyncWorker, RivalrySyncWorker

WORKER_CLASSES = (
    ShowTypeSyncWorker,
    ShowTemplateSyncWorker,
    SeasonSyncWorker,
    InjurySyncWorker,
    NpcSyncWorker,
    WrestlerSyncWorker,
    FactionSyncWorker,
    TeamSyncWorker,
    TitleSyncWorker,
    TitleReignSyncWorker,
    ShowSyncWorker,
    SegmentSyncWorker,
    RivalrySyncWorker,
    FactionRivalrySyncWorker,
)


def build_workers(context: WorkerContext) -> Dict[str, EntitySyncWorker]:
    """One worker per supported entity type, keyed by entity type key."""
    workers = (cls(context) for cls in WORKER_CLASSES)
    return {worker.key: worker for worker in workers}


__all__ = [
    "TOTAL_STEPS",
    "EntitySyncWorker",
    "ReconcileOutcome",
    "WorkerContext",
    "WORKER_CLASSES",
    "build_workers",
    "ShowTypeSyncWorker",
    "ShowTemplateSyncWorker",
    "SeasonSyncWorker",
    "InjurySyncWorker",
    "NpcSyncWorker",
    "WrestlerSyncWorker",
    "FactionSyncWorker",
    "TeamSyncWorker",
    "TitleSyncWorker",
    "TitleReignSyncWorker",
    "ShowSyncWorker",
    "SegmentSyncWorker",
    "RivalrySyncWorker",
    "FactionRivalrySyncWorker",
]
