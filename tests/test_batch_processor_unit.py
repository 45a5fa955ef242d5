"""
Unit tests for the parallel batch processor.
"""

import threading
import time

from promosync.sync.batch_processor import BatchConfig, BatchProgress, ParallelBatchProcessor
from promosync.sync.progress import ProgressTracker


class TestParallelBatchProcessor:
    """Tests for ParallelBatchProcessor."""

    def setup_method(self):
        self.processor = ParallelBatchProcessor(BatchConfig(batch_size=3, max_workers=2))
        self.tracker = ProgressTracker()

    def test_processes_every_item(self):
        run = self.processor.process_with_stats(list(range(10)), lambda x: x * 2)

        assert sorted(run.results) == [x * 2 for x in range(10)]
        stats = run.stats
        assert stats.processed_items == 10
        assert stats.failed_items == 0
        assert stats.batches_processed == 4

    def test_empty_input(self):
        assert self.processor.process([], lambda x: x) == []
        assert self.processor.process_with_stats([], lambda x: x).stats.total_items == 0

    def test_failures_are_isolated(self):
        failures = []

        def convert(x):
            if x % 4 == 0:
                raise ValueError(f"bad item {x}")
            return x

        run = self.processor.process_with_stats(
            list(range(1, 11)),
            convert,
            on_error=lambda item, e: failures.append((item, str(e))),
        )

        assert sorted(run.results) == [1, 2, 3, 5, 6, 7, 9, 10]
        assert sorted(failures) == [(4, "bad item 4"), (8, "bad item 8")]
        assert run.stats.failed_items == 2

    def test_concurrency_is_bounded(self):
        lock = threading.Lock()
        running = [0]
        peak = [0]

        def slow(x):
            with lock:
                running[0] += 1
                peak[0] = max(peak[0], running[0])
            time.sleep(0.01)
            with lock:
                running[0] -= 1
            return x

        processor = ParallelBatchProcessor(BatchConfig(batch_size=10, max_workers=3))
        processor.process(list(range(30)), slow)

        assert 1 <= peak[0] <= 3

    def test_progress_reported_per_batch(self):
        self.tracker.start_operation("op", "Sync", 4)
        progress = BatchProgress(self.tracker, "op", 2, "pages converted")

        self.processor.process(list(range(7)), lambda x: x, progress=progress)

        messages = [entry.message for entry in self.tracker.get_operation("op").log_entries]
        assert "Processed 3/7 pages converted" in messages
        assert "Processed 7/7 pages converted" in messages
        assert self.tracker.get_operation("op").current_step == 2

    def test_cancellation_stops_further_batches(self):
        self.tracker.start_operation("op", "Sync", 4)
        progress = BatchProgress(self.tracker, "op", 2)
        seen = []

        def convert(x):
            seen.append(x)
            if x == 0:
                self.tracker.fail_operation("op", "Cancelled by user")
            return x

        processor = ParallelBatchProcessor(BatchConfig(batch_size=2, max_workers=1))
        run = processor.process_with_stats(list(range(10)), convert, progress=progress)

        # The in-flight batch finishes, nothing after it starts
        assert sorted(seen) == [0, 1]
        assert sorted(run.results) == [0, 1]
        assert run.stats.cancelled

    def test_batch_size_override(self):
        run = self.processor.process_with_stats(list(range(10)), lambda x: x, batch_size=5)

        assert run.stats.batches_processed == 2

    def test_concurrent_runs_keep_their_own_stats(self):
        processor = ParallelBatchProcessor(BatchConfig(batch_size=2, max_workers=2))
        barrier = threading.Barrier(2, timeout=5)
        runs = {}

        def convert(x):
            if x in (0, 100):
                barrier.wait()
            if x % 3 == 0 and x >= 100:
                raise ValueError(f"bad item {x}")
            return x

        def run(name, items):
            runs[name] = processor.process_with_stats(items, convert)

        threads = [
            threading.Thread(target=run, args=("small", list(range(4)))),
            threading.Thread(target=run, args=("large", list(range(100, 110)))),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert runs["small"].stats.total_items == 4
        assert runs["small"].stats.processed_items == 4
        assert runs["small"].stats.failed_items == 0
        assert runs["large"].stats.total_items == 10
        assert runs["large"].stats.failed_items == 3
        assert runs["large"].stats.processed_items == 7
        assert sorted(runs["small"].results) == [0, 1, 2, 3]
        assert not hasattr(processor, "last_stats")
