"""
Base Entity Sync Worker.

Every entity type is synchronized by a worker that fetches all source pages,
converts them to transfer objects and reconciles each one against local state
with an idempotent upsert. Subclasses only describe how a page maps to a
transfer object and how a transfer object maps onto a local record.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from promosync.config.settings import SyncSettings
from promosync.database.models import Gender, SyncedEntityMixin
from promosync.database.repositories import EntityRepository, RepositoryRegistry
from promosync.exceptions import (
    InvalidRecordError,
    NonRetryableSyncError,
    UnresolvedReferenceError,
)
from promosync.sync.batch_processor import BatchProgress, ParallelBatchProcessor
from promosync.sync.connectors.base import ContentSourceClient, RawPage
from promosync.sync.models import LogLevel, SyncEntityType, SyncResult
from promosync.sync.progress import ProgressTracker
from promosync.sync.workers.dtos import EntityDTO
from promosync.system.logging_config import get_logger
from promosync.utils.locks import KeyedLock

TOTAL_STEPS = 4

_GENDER_ALIASES = {
    "M": Gender.MALE,
    "MALE": Gender.MALE,
    "MEN": Gender.MALE,
    "MEN'S": Gender.MALE,
    "F": Gender.FEMALE,
    "FEMALE": Gender.FEMALE,
    "WOMEN": Gender.FEMALE,
    "WOMEN'S": Gender.FEMALE,
}


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass
class WorkerContext:
    """Collaborators shared by all entity workers."""
    client: ContentSourceClient
    repositories: RepositoryRegistry
    progress: ProgressTracker
    batch_processor: ParallelBatchProcessor
    sync_settings: SyncSettings = field(default_factory=SyncSettings)
    locks: KeyedLock = field(default_factory=KeyedLock)


class _RunState:
    """Counters of one worker run, shared by the batch threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self.errors: List[str] = []
        self.messages: List[str] = []
        self.merged = 0

    def record_error(self, item: Any, error: Exception) -> None:
        label = getattr(item, "external_id", None) or getattr(item, "id", None) or repr(item)[:80]
        with self._lock:
            self.errors.append(f"{label}: {error}")

    def note(self, message: str, merged: bool = False) -> None:
        with self._lock:
            self.messages.append(message)
            if merged:
                self.merged += 1

    @property
    def error_count(self) -> int:
        with self._lock:
            return len(self.errors)

    def all_messages(self) -> tuple:
        with self._lock:
            return tuple(self.messages + self.errors)


class EntitySyncWorker(ABC):
    """
    Synchronizes one entity type from the content source.

    Reconciliation of a single record:

    1. Resolve every reference the record carries. Nothing is written when
       a required reference is missing.
    2. Under a per-key lock, look the record up by external id, then by
       natural key.
    3. Create or update it, leaving local-only fields untouched.
    """

    entity_type: SyncEntityType

    def __init__(self, context: WorkerContext):
        self.context = context
        self.logger = get_logger(__name__, entity_type=self.key)

    @property
    def key(self) -> str:
        return self.entity_type.value

    @property
    def display_name(self) -> str:
        return self.entity_type.display_name

    @property
    def repository(self) -> EntityRepository:
        return self.context.repositories.get(self.key)

    # ------------------------------------------------------------------
    # Entity-specific hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def convert(self, page: RawPage) -> EntityDTO:
        """Build the transfer object for a source page."""

    @abstractmethod
    def new_record(self) -> SyncedEntityMixin:
        """A blank local record with local-only fields at their defaults."""

    @abstractmethod
    def apply(self, record: SyncedEntityMixin, dto: EntityDTO, refs: Dict[str, Any]) -> None:
        """Copy source fields onto ``record``."""

    def resolve(self, dto: EntityDTO) -> Dict[str, Any]:
        """Resolve references to local ids; raises ``UnresolvedReferenceError``."""
        return {}

    def natural_key(self, dto: EntityDTO, refs: Dict[str, Any]) -> Optional[tuple]:
        name = getattr(dto, "name", None)
        return (name,) if name else None

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def resolve_ref(self, entity_type: SyncEntityType, ref: Optional[str]) -> Optional[int]:
        """Local id of a referenced record; ``None`` for an absent reference."""
        if not ref:
            return None
        record = self.context.repositories.get(entity_type.value).find_by_external_id(ref)
        if record is None:
            raise UnresolvedReferenceError(entity_type.value, ref)
        return record.id

    def resolve_refs(self, entity_type: SyncEntityType, refs: Iterable[str]) -> List[int]:
        ids: List[int] = []
        for ref in refs:
            local_id = self.resolve_ref(entity_type, ref)
            if local_id not in ids:
                ids.append(local_id)
        return ids

    def gender(self, page: RawPage, prop: str) -> Optional[Gender]:
        """Gender property; an unrecognized value is logged and ignored."""
        value = page.text(prop)
        if value is None:
            return None
        gender = _GENDER_ALIASES.get(value.strip().upper())
        if gender is None:
            self.logger.warning(f"Ignoring invalid gender {value!r} on {self.key} page {page.id}")
        return gender

    @staticmethod
    def tier(page: RawPage, prop: str = "Tier") -> Optional[str]:
        value = page.text(prop)
        return value.strip().upper().replace(" ", "_") if value else None

    @staticmethod
    def first_ref(page: RawPage, prop: str) -> Optional[str]:
        """First related page id of a relation property."""
        ids = page.relation_ids(prop)
        return ids[0] if ids else None

    @staticmethod
    def active(page: RawPage, default: bool = True) -> bool:
        """Active checkbox, falling back to the Status select."""
        flag = page.boolean("Active")
        if flag is not None:
            return flag
        status = page.text("Status")
        if status is None:
            return default
        return status.strip().lower() in ("active", "ongoing", "current", "in progress")

    def to_dto(self, page: RawPage) -> EntityDTO:
        try:
            return self.convert(page)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or 'record'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidRecordError(f"Invalid {self.key} page {page.id}: {problems}") from e

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self, dto: EntityDTO, run: Optional[_RunState] = None) -> ReconcileOutcome:
        """
        Upsert one transfer object.

        Args:
            dto: Converted source record
            run: Counters of the current run, if any

        Returns:
            Whether a record was created or an existing one updated
        """
        refs = self.resolve(dto)
        natural_key = self.natural_key(dto, refs)
        repository = self.repository

        with self.context.locks.hold_all(
            ("external_id", self.key, dto.external_id),
            ("natural_key", self.key, natural_key) if natural_key is not None else None,
        ):
            record = repository.find_by_external_id(dto.external_id)

            if record is None and natural_key is not None:
                record = repository.find_by_natural_key(natural_key)
                if record is not None:
                    if record.external_id and record.external_id != dto.external_id:
                        message = (
                            f"Merged {self.key} page {dto.external_id} into existing record "
                            f"{record.id} with the same natural key {natural_key!r} "
                            f"(keeping external id {record.external_id})"
                        )
                        self.logger.warning(message)
                        if run is not None:
                            run.note(message, merged=True)
                    else:
                        self.logger.info(
                            f"Linking local {self.key} record {record.id} to page {dto.external_id}"
                        )
                        record.external_id = dto.external_id

            outcome = ReconcileOutcome.UPDATED
            if record is None:
                record = self.new_record()
                record.external_id = dto.external_id
                outcome = ReconcileOutcome.CREATED

            self.apply(record, dto, refs)
            record.last_synced_at = datetime.now(timezone.utc)
            repository.save(record)

        self.logger.debug(f"{outcome.value.capitalize()} {self.key} record from page {dto.external_id}")
        return outcome

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def _progress(self, operation_id: str, step: int, label: str) -> BatchProgress:
        return BatchProgress(self.context.progress, operation_id, step, label)

    def sync(self, operation_id: str) -> SyncResult:
        """
        Synchronize every page of this entity type.

        Fetch failures propagate so the caller's retry and circuit breaker
        apply; per-record failures are counted and only fail the result when
        they exceed the configured error ratio.

        Args:
            operation_id: Id under which progress is tracked

        Returns:
            SyncResult for this entity type
        """
        if not self.context.sync_settings.is_entity_enabled(self.key):
            self.logger.info(f"{self.display_name} sync is disabled in configuration")
            return SyncResult.skipped(self.key, "disabled in configuration")

        tracker = self.context.progress
        processor = self.context.batch_processor
        tracker.start_operation(operation_id, f"Sync {self.display_name}", TOTAL_STEPS)
        run = _RunState()

        # Step 1: fetch
        tracker.update_progress(operation_id, 1, f"Fetching {self.display_name} from content source")
        try:
            pages = self.context.client.fetch_all(self.key)
        except Exception as e:
            tracker.fail_operation(operation_id, f"Failed to fetch {self.display_name}: {e}")
            self.logger.error(f"Failed to fetch {self.key}: {e}")
            raise

        total = len(pages)
        tracker.add_log_message(operation_id, f"Retrieved {total} {self.key} pages")
        if total == 0:
            tracker.complete_operation(operation_id, f"No {self.display_name} to sync")
            return SyncResult.succeeded(self.key)

        # Step 2: convert
        dtos = processor.process(
            pages,
            self.to_dto,
            progress=self._progress(operation_id, 2, f"{self.key} pages converted"),
            on_error=run.record_error,
        )
        if tracker.is_cancelled(operation_id):
            return self._cancelled(run)

        # Step 3: reconcile
        outcomes = processor.process(
            dtos,
            lambda dto: self.reconcile(dto, run),
            progress=self._progress(operation_id, 3, f"{self.key} records saved"),
            on_error=run.record_error,
        )
        if tracker.is_cancelled(operation_id):
            return self._cancelled(run)

        # Step 4: finalize
        created = sum(1 for outcome in outcomes if outcome == ReconcileOutcome.CREATED)
        updated = len(outcomes) - created
        errors = run.error_count
        for error in run.errors:
            tracker.add_log_message(operation_id, error, LogLevel.WARNING)

        if errors / total <= self.context.sync_settings.max_error_ratio:
            message = (
                f"Synced {created + updated} {self.display_name} "
                f"({created} created, {updated} updated, {errors} errors)"
            )
            tracker.complete_operation(operation_id, message, created + updated)
            self.logger.info(message)
            return SyncResult.succeeded(
                self.key,
                created_count=created,
                updated_count=updated,
                error_count=errors,
                merged_count=run.merged,
                messages=run.all_messages(),
            )

        message = f"{errors} of {total} records failed"
        tracker.fail_operation(operation_id, message, created + updated)
        self.logger.error(f"{self.display_name} sync failed: {message}")
        return SyncResult.failed(
            self.key,
            message,
            created_count=created,
            updated_count=updated,
            error_count=errors,
            messages=run.all_messages(),
        )

    def _cancelled(self, run: _RunState) -> SyncResult:
        self.logger.warning(f"{self.display_name} sync cancelled")
        return SyncResult.failed(self.key, "cancelled", error_count=run.error_count)

    def sync_one(self, external_id: str) -> SyncResult:
        """
        Re-synchronize a single record.

        Source errors propagate; an invalid record or a missing reference
        gives a failed result.
        """
        if not self.context.sync_settings.is_entity_enabled(self.key):
            return SyncResult.skipped(self.key, "disabled in configuration")

        page = self.context.client.fetch_one(self.key, external_id)
        if page is None:
            return SyncResult.failed(self.key, f"{self.display_name} record {external_id} not found")

        run = _RunState()
        try:
            outcome = self.reconcile(self.to_dto(page), run)
        except NonRetryableSyncError as e:
            self.logger.warning(f"Failed to sync {self.key} record {external_id}: {e}")
            return SyncResult.failed(self.key, str(e), error_count=1)

        return SyncResult.succeeded(
            self.key,
            created_count=1 if outcome == ReconcileOutcome.CREATED else 0,
            updated_count=1 if outcome == ReconcileOutcome.UPDATED else 0,
            merged_count=run.merged,
            messages=run.all_messages(),
        )


__all__ = ["TOTAL_STEPS", "ReconcileOutcome", "WorkerContext", "EntitySyncWorker"]
