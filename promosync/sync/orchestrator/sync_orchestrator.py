"""
Sync Orchestrator Module.

Runs entity workers in dependency order. Each worker call goes through its
entity type's circuit breaker and the shared retry executor, and its outcome
is reported to the health monitor.
"""

import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from promosync.config.settings import Settings
from promosync.database.repositories import RepositoryRegistry
from promosync.exceptions import (
    CircuitBreakerOpenError,
    NonRetryableSyncError,
    SyncConfigurationError,
)
from promosync.sync.batch_processor import BatchConfig, ParallelBatchProcessor
from promosync.sync.connectors.base import ContentSourceClient
from promosync.sync.dependency import DependencyAnalyzer
from promosync.sync.integrity import DataIntegrityChecker, IntegrityCheckResult
from promosync.sync.models import SyncEntityType, SyncResult, SyncRunReport
from promosync.sync.orchestrator.session import SessionManager
from promosync.sync.progress import ProgressTracker
from promosync.sync.validation import SyncValidationService
from promosync.sync.workers import EntitySyncWorker, WorkerContext, build_workers
from promosync.system.health_monitor import HealthMonitor, HealthProbeResult
from promosync.utils.retry import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    RetryConfig,
    RetryExecutor,
)

logger = logging.getLogger(__name__)


class EntitySyncFailedError(NonRetryableSyncError):
    """A worker finished but its result is a failure; carries that result."""

    def __init__(self, result: SyncResult):
        super().__init__(result.error_message or f"{result.entity_type} sync failed")
        self.result = result


class SyncOrchestrator:
    """
    Coordinates full and partial synchronization runs.

    Owns the circuit breakers, health monitor and sessions it uses; nothing
    is shared through module globals, so several orchestrators can coexist.
    """

    def __init__(
        self,
        workers: Mapping[str, EntitySyncWorker],
        progress: ProgressTracker,
        health_monitor: HealthMonitor,
        breakers: CircuitBreakerRegistry,
        dependency_analyzer: Optional[DependencyAnalyzer] = None,
        validation: Optional[SyncValidationService] = None,
        sessions: Optional[SessionManager] = None,
        integrity_checker: Optional[DataIntegrityChecker] = None,
        operation_retention_seconds: Optional[float] = None,
        metrics_retention_hours: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.workers: Dict[str, EntitySyncWorker] = dict(workers)
        self.progress = progress
        self.health_monitor = health_monitor
        self.breakers = breakers
        self.dependency_analyzer = dependency_analyzer or DependencyAnalyzer()
        self.validation = validation
        self.sessions = sessions or SessionManager()
        self.integrity_checker = integrity_checker
        self.operation_retention_seconds = operation_retention_seconds
        self.metrics_retention_hours = metrics_retention_hours
        self._clock = clock
        self._lock = threading.Lock()
        self._last_sync_times: Dict[str, datetime] = {}
        self._latest_results: Dict[str, SyncResult] = {}

    @classmethod
    def create(
        cls,
        client: ContentSourceClient,
        repositories: RepositoryRegistry,
        config: Settings,
        sleep: Callable[[float], None] = time.sleep,
        breaker_clock: Callable[[], float] = time.monotonic
    ) -> "SyncOrchestrator":
        """
        Wire an orchestrator and all of its collaborators from settings.

        Args:
            client: Content source to read from
            repositories: Local persistence per entity type
            config: Process settings
            sleep: Backoff sleep, replaceable in tests
            breaker_clock: Monotonic clock used by the circuit breakers

        Returns:
            A ready orchestrator with one worker per entity type
        """
        progress = ProgressTracker()
        processor = ParallelBatchProcessor(BatchConfig(
            batch_size=config.sync.batch_size,
            max_workers=config.sync.max_workers,
        ))
        context = WorkerContext(
            client=client,
            repositories=repositories,
            progress=progress,
            batch_processor=processor,
            sync_settings=config.sync,
        )
        retry_executor = RetryExecutor(RetryConfig.from_settings(config.retry), sleep=sleep)
        breakers = CircuitBreakerRegistry(
            CircuitBreakerConfig.from_settings(config.circuit_breaker),
            retry_executor,
            clock=breaker_clock,
        )
        validation = SyncValidationService(client, config.sync, config.scheduler)
        health_monitor = HealthMonitor(
            config.health,
            sync_enabled=config.sync.enabled,
            configuration_check=validation.is_configured,
        )
        return cls(
            workers=build_workers(context),
            progress=progress,
            health_monitor=health_monitor,
            breakers=breakers,
            validation=validation,
            sessions=SessionManager(ttl_seconds=config.sync.session_ttl_seconds),
            integrity_checker=DataIntegrityChecker(repositories),
            operation_retention_seconds=config.sync.operation_retention_seconds,
            metrics_retention_hours=config.health.metrics_retention_hours,
        )

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def _sync_settings_allow(self, worker: EntitySyncWorker) -> bool:
        return worker.context.sync_settings.is_entity_enabled(worker.key)

    def _run_entity(self, worker: EntitySyncWorker) -> SyncResult:
        """Run one worker through its breaker and record the outcome."""
        key = worker.key
        if not self._sync_settings_allow(worker):
            logger.info(f"Skipping {key}: disabled in configuration")
            return SyncResult.skipped(key, "disabled in configuration")

        operation_id = f"{key}-{uuid.uuid4().hex[:8]}"
        attempts = 0
        started = self._clock()

        def attempt(attempt_number: int) -> SyncResult:
            nonlocal attempts
            attempts = attempt_number
            result = worker.sync(operation_id)
            if not result.success and result.error_message != "cancelled":
                raise EntitySyncFailedError(result)
            return result

        try:
            result = self.breakers.execute(key, attempt, operation_name=f"sync {key}")
        except CircuitBreakerOpenError as e:
            logger.warning(f"Not syncing {key}: {e}")
            result = SyncResult.failed(key, str(e), circuit_open=True)
            return self._store(result.with_run_info(0, 0.0))
        except EntitySyncFailedError as e:
            result = e.result
        except Exception as e:
            logger.error(f"Sync of {key} failed after {attempts} attempt(s): {e}")
            result = SyncResult.failed(key, str(e) or type(e).__name__)

        duration_ms = (self._clock() - started) * 1000
        result = result.with_run_info(max(attempts, 1), duration_ms)

        if result.success:
            self.health_monitor.record_success(key, duration_ms, result.synced_count)
            with self._lock:
                self._last_sync_times[key] = datetime.now(timezone.utc)
        else:
            self.health_monitor.record_failure(key, result.error_message)

        return self._store(result)

    def _store(self, result: SyncResult) -> SyncResult:
        with self._lock:
            self._latest_results[result.entity_type] = result
        return result

    def run_all(self, session_id: Optional[str] = None) -> SyncRunReport:
        """
        Synchronize every registered entity type in dependency order.

        Never raises: configuration problems and unexpected errors are
        reported on the returned report.

        Args:
            session_id: Session to run under. A new session is created and
                closed when omitted; a given session stays open so later
                calls skip what it already synchronized, until it is ended
                or expires after the session TTL.

        Returns:
            SyncRunReport with one result per entity type that ran
        """
        owns_session = session_id is None
        session_id = self.sessions.begin_session(session_id)
        report = SyncRunReport(session_id=session_id)
        logger.info(f"Starting full sync run (session {session_id})")

        try:
            if self.validation is not None:
                validation = self.validation.validate_prerequisites()
                report.warnings.extend(validation.warnings)
                if not validation.valid:
                    report.configuration_error = "; ".join(validation.errors)
                    return report

            try:
                report.order = self.dependency_analyzer.get_sync_order(self.workers.keys())
            except SyncConfigurationError as e:
                logger.error(f"Cannot determine sync order: {e}")
                report.configuration_error = str(e)
                return report

            for key in report.order:
                if self.sessions.is_synced(session_id, key):
                    logger.info(f"Skipping {key}: already synced in session {session_id}")
                    report.skipped.append(key)
                    continue

                result = self._run_entity(self.workers[key])
                report.results.append(result)
                if result.success:
                    self.sessions.mark_synced(session_id, key)
                logger.info(result.summary())

            if self.integrity_checker is not None and report.results:
                integrity = self.integrity_check()
                report.integrity = integrity.to_dict()
                if not integrity.valid:
                    logger.warning(f"Sync run {session_id}: {integrity.summary()}")

        except Exception as e:
            logger.error(f"Sync run {session_id} aborted: {e}", exc_info=True)
            report.error = str(e) or type(e).__name__

        finally:
            report.finish()
            if owns_session:
                self.sessions.end_session(session_id)
            self._log_summary(report)
            self.cleanup()

        return report

    def _log_summary(self, report: SyncRunReport) -> None:
        if report.configuration_error:
            logger.error(f"Sync run {report.session_id} did not start: {report.configuration_error}")
            return
        failed = report.failed_entities
        logger.info(
            f"Sync run {report.session_id} finished in {report.duration_seconds:.2f}s: "
            f"{len(report.results)} entity types run, {len(report.skipped)} skipped, "
            f"{len(failed)} failed, {report.total_synced} records synced"
        )
        if failed:
            logger.warning(f"Failed entity types: {', '.join(failed)}")

    def _resolve_worker(self, entity_type: str) -> Optional[EntitySyncWorker]:
        resolved = SyncEntityType.from_key(entity_type)
        if resolved is None:
            return None
        return self.workers.get(resolved.value)

    def run_one(self, entity_type: str) -> SyncResult:
        """
        Synchronize a single entity type, ignoring order and sessions.

        Returns:
            The entity's SyncResult; a failed result for unknown types or
            when prerequisites are not met
        """
        worker = self._resolve_worker(entity_type)
        if worker is None:
            return SyncResult.failed(entity_type, f"Unknown entity type: {entity_type}")

        if self.validation is not None:
            validation = self.validation.validate_prerequisites()
            if not validation.valid:
                return SyncResult.failed(worker.key, "; ".join(validation.errors))

        result = self._run_entity(worker)
        logger.info(result.summary())
        return result

    def sync_record(self, entity_type: str, external_id: str) -> SyncResult:
        """Re-synchronize one record through the entity's circuit breaker."""
        worker = self._resolve_worker(entity_type)
        if worker is None:
            return SyncResult.failed(entity_type, f"Unknown entity type: {entity_type}")

        attempts = 0

        def attempt(attempt_number: int) -> SyncResult:
            nonlocal attempts
            attempts = attempt_number
            return worker.sync_one(external_id)

        try:
            result = self.breakers.execute(worker.key, attempt, operation_name=f"sync {worker.key} record")
        except CircuitBreakerOpenError as e:
            logger.warning(f"Not syncing {worker.key} record {external_id}: {e}")
            return SyncResult.failed(worker.key, str(e), circuit_open=True).with_run_info(0, 0.0)
        except Exception as e:
            logger.error(f"Sync of {worker.key} record {external_id} failed: {e}")
            result = SyncResult.failed(worker.key, str(e) or type(e).__name__)

        return result.with_run_info(max(attempts, 1), result.duration_ms)

    def cancel_operation(self, operation_id: str) -> bool:
        """
        Cancel an in-flight operation.

        Returns:
            False when the operation is unknown or already finished
        """
        operation = self.progress.get_operation(operation_id)
        if operation is None or operation.is_terminal:
            return False
        self.progress.fail_operation(operation_id, "Cancelled by user", operation.items_processed)
        logger.info(f"Cancelled operation {operation_id}")
        return True

    def end_session(self, session_id: str) -> bool:
        """
        Close a caller-owned session so later runs sharing its id start over.

        Returns:
            False when the session is unknown or already closed
        """
        ended = self.sessions.end_session(session_id)
        if ended:
            logger.info(f"Ended sync session {session_id}")
        return ended

    def cleanup(self) -> Dict[str, int]:
        """
        Forget finished operations, old health metrics and idle sessions.

        Runs after every full sync; retention limits left unset keep
        everything of that kind.

        Returns:
            Number of removed operations, metrics and sessions
        """
        removed = {"operations": 0, "metrics": 0, "sessions": self.sessions.expire_stale()}
        if self.operation_retention_seconds is not None:
            removed["operations"] = self.progress.cleanup_completed(self.operation_retention_seconds)
        if self.metrics_retention_hours is not None:
            removed["metrics"] = self.health_monitor.cleanup_old_metrics(self.metrics_retention_hours)
        if any(removed.values()):
            logger.debug(
                f"Cleanup removed {removed['operations']} operations, "
                f"{removed['metrics']} metrics and {removed['sessions']} sessions"
            )
        return removed

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def last_sync_times(self) -> Dict[str, datetime]:
        with self._lock:
            return dict(self._last_sync_times)

    def latest_results(self) -> Dict[str, SyncResult]:
        with self._lock:
            return dict(self._latest_results)

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of health, breakers and in-flight work."""
        active = self.progress.get_active_operations()
        return {
            "health": self.health_monitor.get_health_summary().to_dict(),
            "entities": {
                name: summary.to_dict()
                for name, summary in self.health_monitor.get_entity_summaries().items()
            },
            "circuit_breakers": self.breakers.states(),
            "active_operations": [operation.to_dict() for operation in active],
            "active_sessions": self.sessions.active_sessions(),
            "last_sync_times": {
                name: timestamp.isoformat() for name, timestamp in sorted(self.last_sync_times().items())
            },
            "latest_results": {
                name: result.to_dict() for name, result in sorted(self.latest_results().items())
            },
        }

    def check_health(self) -> HealthProbeResult:
        """Health probe including the number of in-flight operations."""
        return self.health_monitor.check_health(len(self.progress.get_active_operations()))

    def integrity_check(self) -> IntegrityCheckResult:
        """
        Check the local records for problems a sync can leave behind.

        Raises:
            SyncConfigurationError: When no integrity checker is configured
        """
        if self.integrity_checker is None:
            raise SyncConfigurationError("No data integrity checker is configured")
        result = self.integrity_checker.check()
        logger.info(result.summary())
        return result


__all__ = ["EntitySyncFailedError", "SyncOrchestrator"]
