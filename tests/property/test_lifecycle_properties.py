"""
Property tests for the record lifecycle under concurrency.

Every example builds its own in-memory collaborators; pytest fixtures are
function scoped and would be shared across Hypothesis examples.
"""

import threading

from hypothesis import given, settings
from hypothesis import strategies as st

from ledgershare.application.reclamation_scheduler import ReclamationScheduler
from ledgershare.domain.errors import DomainError, RecordGoneError
from ledgershare.domain.file_records.lifecycle import FileLifecycleService
from ledgershare.domain.file_records.value_objects import FileStatus
from ledgershare.domain.ownership.services import OwnershipVerifier

from tests.fixtures.domain_fixtures import FrozenClock, create_file_record
from tests.fixtures.mock_repositories import (
    InMemoryBlobStorage,
    InMemoryFileRecordRepository,
    StubSignatureRecoverer,
)
from tests.property.strategies import file_records, statuses


def _build(view_limit):
    records = InMemoryFileRecordRepository()
    storage = InMemoryBlobStorage()
    clock = FrozenClock()
    lifecycle = FileLifecycleService(
        records, storage, OwnershipVerifier(StubSignatureRecoverer()), clock=clock,
        lock_wait_seconds=2.0,
    )
    record = records.put(create_file_record(view_limit=view_limit))
    storage.save(record.blob_ref, b"content")
    return records, storage, lifecycle, record


class TestViewAccounting:
    @settings(max_examples=25)
    @given(
        view_limit=st.integers(min_value=1, max_value=5),
        requests=st.integers(min_value=1, max_value=12),
    )
    def test_concurrent_downloads_never_exceed_limit(self, view_limit, requests):
        records, _, lifecycle, record = _build(view_limit)
        granted, refused = [], []
        barrier = threading.Barrier(requests)

        def attempt():
            barrier.wait()
            try:
                granted.append(lifecycle.download(record.access_token).receipt.views_remaining)
            except RecordGoneError as e:
                refused.append(e.category)

        threads = [threading.Thread(target=attempt) for _ in range(requests)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(granted) == min(view_limit, requests)
        assert sorted(granted) == list(range(view_limit - len(granted), view_limit))
        assert len(refused) == requests - len(granted)
        assert records.get(record.id).views_remaining == view_limit - len(granted)

    @settings(max_examples=50)
    @given(st.lists(statuses, max_size=8))
    def test_status_never_moves_backward(self, targets):
        records, _, _, record = _build(3)
        rank = record.status.rank

        for target in targets:
            changed = records.transition_status(record.id, target)
            current = records.get(record.id).status
            assert current.rank >= rank
            assert changed == (target.rank > rank)
            rank = current.rank


class TestReclamationProperties:
    @settings(max_examples=50)
    @given(st.lists(file_records(), max_size=8))
    def test_sweep_only_reclaims_eligible_records(self, population):
        records = InMemoryFileRecordRepository()
        storage = InMemoryBlobStorage()
        clock = FrozenClock()
        for record in population:
            records.put(record)
            storage.save(record.blob_ref, b"content")

        report = ReclamationScheduler(records, storage, clock=clock).run_sweep()

        now = clock()
        for record in population:
            eligible = record.status is FileStatus.EXPIRED or (
                record.is_active()
                and (record.expiry_time < now or record.is_exhausted())
            )
            assert (records.get(record.id) is None) == eligible
            assert storage.exists(record.blob_ref) != eligible
        assert report.purged == report.candidates
        assert report.errors == []

    @settings(max_examples=25)
    @given(st.integers(min_value=1, max_value=5))
    def test_preview_never_consumes_views(self, previews):
        records, _, lifecycle, record = _build(2)

        for _ in range(previews):
            try:
                lifecycle.preview(record.access_token)
            except DomainError:
                break

        assert records.get(record.id).views_remaining == 2
