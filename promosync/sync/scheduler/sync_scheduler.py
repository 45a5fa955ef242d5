"""
Periodic Sync Scheduler.

Runs a full synchronization on a fixed interval in a background thread.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from promosync.config.settings import SchedulerSettings
from promosync.sync.models import SyncRunReport
from promosync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Interval scheduler for full sync runs.

    The first run happens ``initial_delay_seconds`` after ``start()``; later
    runs follow every ``interval_seconds`` until ``stop()``. A failing run
    is logged and never stops the loop.
    """

    def __init__(self, orchestrator: SyncOrchestrator, config: Optional[SchedulerSettings] = None):
        self.orchestrator = orchestrator
        self.config = config or SchedulerSettings()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.run_count = 0
        self.last_run_at: Optional[datetime] = None
        self.last_report: Optional[SyncRunReport] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Start the background loop; returns False when disabled or already running."""
        if not self.config.enabled:
            logger.info("Sync scheduler is disabled")
            return False
        with self._lock:
            if self.is_running:
                return False
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run_loop, name="sync-scheduler", daemon=True)
            self._thread.start()
        logger.info(
            f"Sync scheduler started (first run in {self.config.initial_delay_seconds}s, "
            f"interval {self.config.interval_seconds}s)"
        )
        return True

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout)
        self._thread = None
        logger.info("Sync scheduler stopped")

    def _run_loop(self) -> None:
        if self._stop_event.wait(self.config.initial_delay_seconds):
            return
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Scheduled sync failed: {e}", exc_info=True)
            if self._stop_event.wait(max(1, self.config.interval_seconds)):
                return

    def tick(self) -> Optional[SyncRunReport]:
        """
        Run one scheduled full sync.

        Returns:
            The run report, or None when the scheduler is disabled
        """
        if not self.config.enabled:
            logger.debug("Skipping scheduled sync: scheduler disabled")
            return None

        now = datetime.now(timezone.utc)
        session_id = f"scheduled-{now.strftime('%Y%m%d%H%M%S')}"
        session_id = self.orchestrator.sessions.begin_session(session_id)
        try:
            report = self.orchestrator.run_all(session_id)
        finally:
            self.orchestrator.sessions.end_session(session_id)

        self.run_count += 1
        self.last_run_at = now
        self.last_report = report
        if report.success:
            logger.info(f"Scheduled sync {session_id} completed: {report.total_synced} records synced")
        else:
            logger.warning(
                f"Scheduled sync {session_id} finished with problems: "
                f"{report.configuration_error or report.error or ', '.join(report.failed_entities)}"
            )
        return report

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.config.enabled,
            "running": self.is_running,
            "interval_seconds": self.config.interval_seconds,
            "run_count": self.run_count,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_success": self.last_report.success if self.last_report else None,
        }


__all__ = ["SyncScheduler"]
