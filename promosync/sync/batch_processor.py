"""
Parallel batch processing for sync workers.

Applies a conversion or upsert function to every item of a collection with
bounded concurrency, isolating per-item failures and reporting progress once
per batch.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from promosync.sync.progress import ProgressTracker

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


@dataclass
class BatchConfig:
    """Configuration for batch processing operations."""
    batch_size: int = 50
    max_workers: int = 3


@dataclass
class BatchProgress:
    """Where a batch run reports its progress."""
    tracker: ProgressTracker
    operation_id: str
    step: int
    label: str = "items"

    def is_cancelled(self) -> bool:
        return self.tracker.is_cancelled(self.operation_id)

    def report(self, message: str) -> None:
        self.tracker.update_progress(self.operation_id, self.step, message)


@dataclass
class BatchStats:
    """Statistics for one batch run."""
    total_items: int = 0
    processed_items: int = 0
    failed_items: int = 0
    batches_processed: int = 0
    cancelled: bool = False
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def processing_time(self) -> float:
        """Calculate total processing time in seconds."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0


@dataclass
class BatchRun(Generic[R]):
    """Results of one batch run together with its statistics."""
    results: List[R]
    stats: BatchStats


class ParallelBatchProcessor(Generic[T, R]):
    """
    Bounded-concurrency batch processor.

    Items are split into batches of ``batch_size``; each batch is fanned out
    over at most ``max_workers`` threads. Results come back in completion
    order, so they do not necessarily follow input order. The processor
    keeps no per-run state, so one instance can serve concurrent runs.
    """

    def __init__(self, config: Optional[BatchConfig] = None):
        self.config = config or BatchConfig()

    def process(
        self,
        items: Sequence[T],
        convert_fn: Callable[[T], R],
        batch_size: Optional[int] = None,
        progress: Optional[BatchProgress] = None,
        on_error: Optional[Callable[[T, Exception], None]] = None
    ) -> List[R]:
        """Apply ``convert_fn`` to every item; returns the results of the items that did not raise."""
        return self.process_with_stats(items, convert_fn, batch_size, progress, on_error).results

    def process_with_stats(
        self,
        items: Sequence[T],
        convert_fn: Callable[[T], R],
        batch_size: Optional[int] = None,
        progress: Optional[BatchProgress] = None,
        on_error: Optional[Callable[[T, Exception], None]] = None
    ) -> BatchRun[R]:
        """
        Apply ``convert_fn`` to every item.

        Args:
            items: Items to process
            convert_fn: Function applied to each item
            batch_size: Override of the configured batch size
            progress: Progress sink; also consulted for cancellation between batches
            on_error: Called with the item and exception for every failed item

        Returns:
            BatchRun with the results of the items that did not raise and
            the statistics of this call
        """
        size = max(1, batch_size or self.config.batch_size)
        stats = BatchStats(total_items=len(items), start_time=datetime.now())
        results: List[R] = []

        if not items:
            stats.end_time = datetime.now()
            return BatchRun(results, stats)

        batches = [items[i:i + size] for i in range(0, len(items), size)]
        workers = max(1, min(self.config.max_workers, size))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sync-batch") as executor:
            for batch in batches:
                if progress is not None and progress.is_cancelled():
                    stats.cancelled = True
                    logger.warning(
                        f"Operation {progress.operation_id} cancelled; "
                        f"skipping {stats.total_items - stats.processed_items - stats.failed_items} remaining items"
                    )
                    break

                futures = {executor.submit(convert_fn, item): item for item in batch}
                for future in as_completed(futures):
                    item = futures[future]
                    try:
                        results.append(future.result())
                        stats.processed_items += 1
                    except Exception as e:
                        stats.failed_items += 1
                        logger.warning(f"Failed to process item {_describe(item)}: {e}")
                        if on_error is not None:
                            on_error(item, e)

                stats.batches_processed += 1
                if progress is not None:
                    done = stats.processed_items + stats.failed_items
                    progress.report(f"Processed {done}/{stats.total_items} {progress.label}")

        stats.end_time = datetime.now()
        logger.debug(
            f"Batch processing completed: {stats.processed_items} processed, "
            f"{stats.failed_items} failed in {stats.processing_time:.2f}s"
        )
        return BatchRun(results, stats)


def _describe(item: Any) -> str:
    for attr in ("external_id", "id", "name"):
        value = getattr(item, attr, None)
        if value:
            return str(value)
    return repr(item)[:80]


__all__ = ["BatchConfig", "BatchProgress", "BatchRun", "BatchStats", "ParallelBatchProcessor"]
