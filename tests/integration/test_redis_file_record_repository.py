"""
Integration tests for RedisFileRecordRepository against a real Redis.

Covers the Lua scripts: unique tokens, the guarded decrement, forward-only
status transitions and the sweep indexes.
"""

import threading
from datetime import timedelta

import pytest

from ledgershare.domain.errors import DuplicateTokenError, StoreBusyError
from ledgershare.domain.file_records.value_objects import FileStatus
from ledgershare.infrastructure.redis_file_record_repository import RedisFileRecordRepository

from tests.fixtures.domain_fixtures import FIXED_NOW, create_file_record


@pytest.mark.integration
class TestRedisFileRecordRepositoryIntegration:
    @pytest.fixture
    def repo(self, redis_client):
        return RedisFileRecordRepository(
            redis_client, key_prefix="test_ledgershare", lock_timeout=5, default_lock_wait=0.2
        )

    def test_insert_and_get(self, repo):
        record = create_file_record(view_limit=2)

        repo.insert(record)

        assert repo.get(record.id) == record
        assert repo.get_by_token(record.access_token).id == record.id
        assert repo.token_exists(record.access_token)
        assert not repo.token_exists("f" * 64)

    def test_duplicate_token_rejected(self, repo):
        first = create_file_record(access_token="a" * 64)
        repo.insert(first)

        with pytest.raises(DuplicateTokenError):
            repo.insert(create_file_record(access_token="a" * 64))
        assert repo.get_by_token("a" * 64).id == first.id

    def test_decrement_stops_at_zero(self, repo):
        record = create_file_record(view_limit=2)
        repo.insert(record)

        assert repo.decrement_views(record.id) == 1
        assert repo.decrement_views(record.id) == 0
        assert repo.decrement_views(record.id) is None
        assert repo.get(record.id).views_remaining == 0

    def test_decrement_missing_or_inactive(self, repo):
        record = create_file_record()
        repo.insert(record)
        repo.transition_status(record.id, FileStatus.EXPIRED)

        assert repo.decrement_views(record.id) is None
        assert repo.decrement_views("missing") is None

    def test_concurrent_decrements_never_overspend(self, repo):
        record = create_file_record(view_limit=5)
        repo.insert(record)
        results = []

        def worker():
            results.append(repo.decrement_views(record.id))

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        granted = sorted(r for r in results if r is not None)
        assert granted == [0, 1, 2, 3, 4]
        assert repo.get(record.id).views_remaining == 0

    def test_status_only_moves_forward(self, repo):
        record = create_file_record()
        repo.insert(record)

        assert repo.transition_status(record.id, FileStatus.EXPIRED) is True
        assert repo.transition_status(record.id, FileStatus.ACTIVE) is False
        assert repo.transition_status(record.id, FileStatus.EXPIRED) is False
        assert repo.transition_status(record.id, FileStatus.DELETED) is True
        assert repo.transition_status(record.id, FileStatus.EXPIRED) is False
        assert repo.get(record.id).status is FileStatus.DELETED

    def test_sweep_queries(self, repo):
        past = create_file_record(expiry_time=FIXED_NOW - timedelta(minutes=1))
        boundary = create_file_record(expiry_time=FIXED_NOW)
        exhausted = create_file_record(views_remaining=0)
        marked = create_file_record()
        healthy = create_file_record()
        for record in (past, boundary, exhausted, marked, healthy):
            repo.insert(record)
        repo.transition_status(marked.id, FileStatus.EXPIRED)

        assert [r.id for r in repo.find_active_past_expiry(FIXED_NOW)] == [past.id]
        assert [r.id for r in repo.find_active_exhausted()] == [exhausted.id]
        assert [r.id for r in repo.find_marked_expired()] == [marked.id]

    def test_deleted_records_leave_the_indexes(self, repo):
        record = create_file_record(expiry_time=FIXED_NOW - timedelta(minutes=1))
        repo.insert(record)

        repo.transition_status(record.id, FileStatus.DELETED)

        assert repo.find_active_past_expiry(FIXED_NOW) == []
        assert repo.find_marked_expired() == []

    def test_delete_removes_row_and_token(self, repo):
        record = create_file_record()
        repo.insert(record)
        repo.transition_status(record.id, FileStatus.EXPIRED)

        assert repo.delete(record.id) is True
        assert repo.get(record.id) is None
        assert not repo.token_exists(record.access_token)
        assert repo.find_marked_expired() == []
        assert repo.delete(record.id) is False

    def test_lock_is_exclusive_with_bounded_wait(self, repo):
        record = create_file_record()
        repo.insert(record)

        with repo.lock(record.id):
            with pytest.raises(StoreBusyError):
                with repo.lock(record.id, wait_seconds=0.1):
                    pass

        with repo.lock(record.id, wait_seconds=0):
            pass
