"""
Sync Scheduler Module.
"""

from .sync_scheduler import SyncScheduler

__all__ = ["SyncScheduler"]
