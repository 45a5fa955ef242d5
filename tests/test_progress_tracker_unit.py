"""
Unit tests for sync progress tracking.
"""

from datetime import datetime, timedelta, timezone

from promosync.sync.models import LogLevel, OperationStatus
from promosync.sync.progress import ProgressTracker, SyncProgressListener


class RecordingListener(SyncProgressListener):
    def __init__(self):
        self.events = []

    def on_started(self, operation):
        self.events.append(("started", operation.operation_id))

    def on_progress_updated(self, operation):
        self.events.append(("progress", operation.current_step))

    def on_completed(self, operation):
        self.events.append(("completed", operation.status))

    def on_log_message(self, operation_id, entry):
        self.events.append(("log", entry.message))


class ExplodingListener(SyncProgressListener):
    def on_started(self, operation):
        raise RuntimeError("listener bug")

    def on_log_message(self, operation_id, entry):
        raise RuntimeError("listener bug")


class TestProgressTracker:
    """Tests for ProgressTracker."""

    def setup_method(self):
        self.tracker = ProgressTracker()
        self.listener = RecordingListener()
        self.tracker.add_listener(self.listener)

    def test_start_operation(self):
        operation = self.tracker.start_operation("wrestlers-1", "Sync Wrestlers", 4)

        assert operation.status == OperationStatus.IN_PROGRESS
        assert operation.current_step == 0
        assert operation.started_at is not None
        assert self.listener.events[0] == ("started", "wrestlers-1")
        assert ("log", "Started Sync Wrestlers") in self.listener.events

    def test_update_progress_clamps_step(self):
        self.tracker.start_operation("op", "Sync", 4)

        self.tracker.update_progress("op", 9, "way past the end")
        assert self.tracker.get_operation("op").current_step == 4

        self.tracker.update_progress("op", -3, "before the start")
        assert self.tracker.get_operation("op").current_step == 0

    def test_progress_percentage(self):
        operation = self.tracker.start_operation("op", "Sync", 4)
        self.tracker.update_progress("op", 2, "halfway")

        assert operation.progress_percentage == 0.5
        assert operation.estimated_remaining_seconds is not None

    def test_complete_operation(self):
        self.tracker.start_operation("op", "Sync", 4)
        self.tracker.update_progress("op", 2, "halfway")
        self.tracker.complete_operation("op", "Synced 10 wrestlers", 10)

        operation = self.tracker.get_operation("op")
        assert operation.status == OperationStatus.SUCCEEDED
        assert operation.current_step == 4
        assert operation.items_processed == 10
        assert operation.result_message == "Synced 10 wrestlers"
        assert operation.completed_at is not None
        assert ("completed", OperationStatus.SUCCEEDED) in self.listener.events

    def test_fail_operation_logs_error(self):
        self.tracker.start_operation("op", "Sync", 4)
        self.tracker.fail_operation("op", "fetch failed")

        operation = self.tracker.get_operation("op")
        assert operation.status == OperationStatus.FAILED
        assert operation.log_entries[-1].level == LogLevel.ERROR
        assert self.tracker.is_cancelled("op")

    def test_terminal_operations_ignore_updates(self):
        self.tracker.start_operation("op", "Sync", 4)
        self.tracker.fail_operation("op", "cancelled")
        self.tracker.update_progress("op", 3, "late update")
        self.tracker.complete_operation("op", "late success")

        operation = self.tracker.get_operation("op")
        assert operation.status == OperationStatus.FAILED
        assert operation.current_step == 0
        assert operation.result_message == "cancelled"

    def test_unknown_operation_ids_are_dropped(self):
        self.tracker.update_progress("missing", 1, "nobody listens")
        self.tracker.add_log_message("missing", "dropped")
        self.tracker.complete_operation("missing", "done")

        assert self.tracker.get_operation("missing") is None
        assert self.listener.events == []
        assert not self.tracker.is_cancelled("missing")

    def test_restart_replaces_terminal_operation(self):
        self.tracker.start_operation("op", "Sync", 4)
        self.tracker.fail_operation("op", "attempt 1 failed")
        restarted = self.tracker.start_operation("op", "Sync", 4)

        assert restarted.status == OperationStatus.IN_PROGRESS
        assert not self.tracker.is_cancelled("op")

    def test_listener_exception_does_not_break_tracking(self):
        self.tracker.add_listener(ExplodingListener())

        self.tracker.start_operation("op", "Sync", 2)
        self.tracker.add_log_message("op", "still tracked", LogLevel.WARNING)

        assert self.tracker.get_operation("op").log_entries[-1].message == "still tracked"
        assert ("log", "still tracked") in self.listener.events

    def test_remove_listener(self):
        self.tracker.remove_listener(self.listener)
        self.tracker.start_operation("op", "Sync", 2)

        assert self.listener.events == []

    def test_active_and_all_operations(self):
        self.tracker.start_operation("a", "Sync A", 2)
        self.tracker.start_operation("b", "Sync B", 2)
        self.tracker.complete_operation("a", "done")

        assert [op.operation_id for op in self.tracker.get_active_operations()] == ["b"]
        assert len(self.tracker.get_all_operations()) == 2

    def test_cleanup_completed(self):
        self.tracker.start_operation("old", "Sync", 1)
        self.tracker.complete_operation("old", "done")
        self.tracker.start_operation("running", "Sync", 1)
        self.tracker.get_operation("old").completed_at = datetime.now(timezone.utc) - timedelta(hours=2)

        assert self.tracker.cleanup_completed(max_age_seconds=3600) == 1
        assert self.tracker.get_operation("old") is None
        assert self.tracker.get_operation("running") is not None

    def test_to_dict(self):
        self.tracker.start_operation("op", "Sync", 4)
        data = self.tracker.get_operation("op").to_dict()

        assert data["operation_id"] == "op"
        assert data["status"] == "in_progress"
        assert data["log"][0]["message"] == "Started Sync"
