"""
Unit tests for DownloadResult.
"""

import io
from unittest.mock import Mock

from ledgershare.application.download_result import DownloadResult

from tests.fixtures.domain_fixtures import create_file_record


def make_result(content=b"abcdef", on_complete=None):
    record = create_file_record(view_limit=1, views_remaining=0)
    return DownloadResult(record, record.download_receipt(), io.BytesIO(content), on_complete)


def test_iter_chunks_yields_everything_and_closes():
    result = make_result(b"abcdef")

    assert list(result.iter_chunks(chunk_size=4)) == [b"abcd", b"ef"]
    assert result.consumed
    assert result.stream.closed


def test_complete_runs_hook_once_after_full_read():
    hook = Mock()
    result = make_result(on_complete=hook)
    result.read_all()

    result.complete()
    result.complete()

    hook.assert_called_once_with()


def test_complete_before_reading_is_a_no_op():
    hook = Mock()
    result = make_result(on_complete=hook)

    result.complete()

    hook.assert_not_called()


def test_partial_read_never_runs_hook():
    hook = Mock()
    result = make_result(b"x" * 100, on_complete=hook)
    chunks = result.iter_chunks(chunk_size=10)
    next(chunks)
    chunks.close()

    result.complete()

    hook.assert_not_called()
    assert result.stream.closed


def test_to_dict_includes_record_and_receipt():
    result = make_result()
    data = result.to_dict()
    assert data["receipt"]["exhausted"] is True
    assert data["record"]["id"] == result.record.id
