"""
Sync Orchestrator Module.

Dependency-ordered multi-entity runs and the sessions that deduplicate them.
"""

from .session import SessionManager
from .sync_orchestrator import EntitySyncFailedError, SyncOrchestrator

__all__ = [
    "SessionManager",
    "EntitySyncFailedError",
    "SyncOrchestrator",
]
