"""
Integration tests for LocalBlobStorageRepository on a real filesystem.
"""

import io

import pytest

from ledgershare.infrastructure.local_blob_storage_repository import LocalBlobStorageRepository


@pytest.fixture
def storage(tmp_path):
    return LocalBlobStorageRepository(str(tmp_path / "blobs"))


class TestLocalBlobStorage:
    def test_creates_base_directory(self, tmp_path):
        LocalBlobStorageRepository(str(tmp_path / "nested" / "blobs"))
        assert (tmp_path / "nested" / "blobs").is_dir()

    def test_save_get_size(self, storage):
        payload = b"x" * 200_000

        assert storage.save("ab/blob-1", io.BytesIO(payload)) is True

        assert storage.exists("ab/blob-1")
        assert storage.get_size("ab/blob-1") == len(payload)
        with storage.get("ab/blob-1") as f:
            assert f.read() == payload

    def test_save_leaves_no_temporary_files(self, storage):
        storage.save("blob-1", io.BytesIO(b"data"))
        assert [p.name for p in storage.base_path.iterdir()] == ["blob-1"]

    def test_overwrite_replaces_content(self, storage):
        storage.save("blob-1", io.BytesIO(b"old"))
        storage.save("blob-1", io.BytesIO(b"new"))
        with storage.get("blob-1") as f:
            assert f.read() == b"new"

    def test_missing_blob(self, storage):
        assert storage.get("missing") is None
        assert storage.get_size("missing") is None
        assert not storage.exists("missing")

    def test_delete_is_idempotent(self, storage):
        storage.save("blob-1", io.BytesIO(b"data"))

        assert storage.delete("blob-1") is True
        assert not storage.exists("blob-1")
        assert storage.delete("blob-1") is True

    @pytest.mark.parametrize("ref", ["../outside", "/etc/passwd", "a/../../outside"])
    def test_references_cannot_escape_root(self, storage, ref):
        with pytest.raises(ValueError):
            storage.save(ref, io.BytesIO(b"data"))
        assert storage.get(ref) is None
        assert not storage.exists(ref)

    def test_empty_reference(self, storage):
        with pytest.raises(ValueError):
            storage.save("  ", io.BytesIO(b"data"))
