"""
Unit tests for ReclamationScheduler.

Covers candidate selection, per-item failure isolation, the single-flight
guard for overlapping triggers and the ticker lifecycle.
"""

import threading
import time
from contextlib import contextmanager
from datetime import timedelta
from unittest.mock import Mock

import pytest

from ledgershare.application.reclamation_scheduler import ReclamationScheduler
from ledgershare.domain.events import FilePurgedEvent, SweepCompletedEvent
from ledgershare.domain.errors import StoreError
from ledgershare.domain.file_records.value_objects import FileStatus

from tests.fixtures.domain_fixtures import FIXED_NOW


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def population(stored_record):
    """One record per sweep category plus two that must survive."""
    return {
        "past_expiry": stored_record(expiry_time=FIXED_NOW - timedelta(minutes=1)),
        "exhausted": stored_record(view_limit=2, views_remaining=0),
        "both": stored_record(expiry_time=FIXED_NOW - timedelta(hours=2), views_remaining=0),
        "marked_expired": stored_record(status=FileStatus.EXPIRED),
        "healthy": stored_record(view_limit=5),
        "deleted": stored_record(status=FileStatus.DELETED),
    }


class TestRunSweep:
    def test_reclaims_expired_and_exhausted_records(self, scheduler, records, storage, population):
        report = scheduler.run_sweep()

        reclaimed = {"past_expiry", "exhausted", "both", "marked_expired"}
        for name, record in population.items():
            if name in reclaimed:
                assert records.get(record.id) is None, name
                assert not storage.exists(record.blob_ref), name
            else:
                assert records.get(record.id) is not None, name
        assert report.purged == 4
        assert report.errors == []

    def test_counts_each_query_and_unions_by_id(self, scheduler, population):
        report = scheduler.run_sweep()

        assert report.expired_by_time == 2
        assert report.exhausted == 2
        assert report.already_expired == 1
        assert report.candidates == 4

    def test_expiry_equal_to_now_waits_for_a_later_sweep(self, scheduler, records, stored_record):
        record = stored_record(expiry_time=FIXED_NOW)

        assert scheduler.run_sweep().candidates == 0
        assert records.get(record.id) is not None

    def test_missing_blob_counts_as_removed(self, scheduler, records, storage, stored_record):
        record = stored_record(status=FileStatus.EXPIRED)
        storage.blobs.clear()

        report = scheduler.run_sweep()

        assert report.purged == 1
        assert records.get(record.id) is None

    def test_per_item_failures_do_not_abort_the_batch(self, scheduler, records, storage, population):
        storage.raise_on_delete = PermissionError("read-only")

        report = scheduler.run_sweep()

        assert report.purged == 0
        assert report.blob_failures == 4
        assert len(report.errors) == 4
        assert records.get(population["past_expiry"].id) is not None

    def test_busy_record_is_skipped(self, scheduler, records, stored_record):
        busy = stored_record(status=FileStatus.EXPIRED)
        free = stored_record(status=FileStatus.EXPIRED)

        with records.lock(busy.id):
            report = scheduler.run_sweep()

        assert report.skipped == 1
        assert report.purged == 1
        assert records.get(busy.id) is not None
        assert records.get(free.id) is None

    def test_store_failure_is_reported_not_raised(self, scheduler, records):
        records.find_active_past_expiry = Mock(side_effect=StoreError("redis down"))

        report = scheduler.run_sweep()

        assert report.errors == ["sweep: redis down"]
        assert scheduler.last_report is report

    def test_publishes_purge_and_completion_events(self, scheduler, population, published):
        scheduler.run_sweep()

        purged = [e for e in published if isinstance(e, FilePurgedEvent)]
        assert len(purged) == 4
        assert all(e.row_removed and e.reason == "sweep" for e in purged)
        assert isinstance(published[-1], SweepCompletedEvent)
        assert published[-1].purged == 4

    def test_cross_process_guard_held_elsewhere_skips(self, records, storage, stored_record):
        @contextmanager
        def hold():
            yield False

        guard = Mock()
        guard.hold = hold
        stored_record(status=FileStatus.EXPIRED)
        scheduler = ReclamationScheduler(records, storage, guard=guard)

        assert scheduler.run_sweep() is None
        assert len(records) == 1


class TestSingleFlight:
    def test_overlapping_triggers_reclaim_once(self, scheduler, records, storage, stored_record):
        record = stored_record(status=FileStatus.EXPIRED)
        entered, release = threading.Event(), threading.Event()
        real_delete = storage.delete

        def slow_delete(blob_ref):
            entered.set()
            release.wait(5)
            return real_delete(blob_ref)

        storage.delete = slow_delete

        assert scheduler.trigger() is True
        assert entered.wait(5)
        assert scheduler.sweep_in_progress

        assert scheduler.trigger() is False
        assert scheduler.run_sweep() is None

        release.set()
        assert wait_until(lambda: not scheduler.sweep_in_progress)

        assert storage.deleted == [record.blob_ref]
        assert records.calls("delete") == [{"method": "delete", "args": {"record_id": record.id}}]
        assert scheduler.last_report.purged == 1

    def test_trigger_returns_immediately(self, scheduler, storage, stored_record):
        stored_record(status=FileStatus.EXPIRED)
        release = threading.Event()
        real_delete = storage.delete
        storage.delete = lambda ref: release.wait(5) and real_delete(ref)

        started = time.monotonic()
        assert scheduler.trigger() is True
        assert time.monotonic() - started < 1

        release.set()
        assert wait_until(lambda: scheduler.last_report is not None)

    def test_sweeps_run_again_once_finished(self, scheduler, stored_record):
        stored_record(status=FileStatus.EXPIRED)
        assert scheduler.run_sweep().purged == 1
        assert scheduler.run_sweep().purged == 0


class TestTicker:
    def test_start_runs_sweeps_on_interval(self, records, storage, stored_record):
        record = stored_record(status=FileStatus.EXPIRED)
        scheduler = ReclamationScheduler(records, storage, interval_seconds=0.05)

        scheduler.start()
        try:
            assert scheduler.is_running
            assert wait_until(lambda: records.get(record.id) is None)
        finally:
            scheduler.stop(timeout=5)

        assert not scheduler.is_running

    def test_run_on_start_sweeps_immediately(self, records, storage, stored_record):
        record = stored_record(status=FileStatus.EXPIRED)
        scheduler = ReclamationScheduler(records, storage, interval_seconds=3600, run_on_start=True)

        scheduler.start()
        try:
            assert wait_until(lambda: records.get(record.id) is None)
        finally:
            scheduler.stop(timeout=5)

    def test_start_twice_keeps_one_ticker(self, scheduler):
        scheduler.start()
        ticker = scheduler._ticker
        scheduler.start()
        assert scheduler._ticker is ticker
        scheduler.stop(timeout=5)

    def test_stop_waits_for_triggered_sweep(self, scheduler, storage, stored_record):
        stored_record(status=FileStatus.EXPIRED)
        entered, release = threading.Event(), threading.Event()
        real_delete = storage.delete

        def slow_delete(blob_ref):
            entered.set()
            release.wait(5)
            return real_delete(blob_ref)

        storage.delete = slow_delete
        assert scheduler.trigger() is True
        assert entered.wait(5)

        threading.Timer(0.1, release.set).start()
        scheduler.stop(timeout=5)

        assert not scheduler.sweep_in_progress
        assert scheduler.last_report.purged == 1

    def test_stop_without_start_is_a_no_op(self, scheduler):
        scheduler.stop(timeout=1)
        assert not scheduler.is_running

    def test_rejects_non_positive_interval(self, records, storage):
        with pytest.raises(ValueError):
            ReclamationScheduler(records, storage, interval_seconds=0)
