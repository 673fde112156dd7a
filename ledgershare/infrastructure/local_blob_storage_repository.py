"""
Local Blob Storage Repository Implementation

Concrete implementation of IBlobStorageRepository for the local filesystem.
Blob references are paths relative to the storage root.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional

from ledgershare.domain.file_records.storage_repository import IBlobStorageRepository

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class LocalBlobStorageRepository(IBlobStorageRepository):
    """
    Local filesystem implementation of IBlobStorageRepository.

    Writes go to a temporary file in the target directory and are renamed
    into place, so a reader never sees a partially written blob. Reads
    return an open file handle so large blobs are streamed, not buffered.

    Attributes:
        base_path: Base directory for blob storage
    """

    def __init__(self, base_path: str = "/tmp/ledgershare/blobs"):
        """
        Initialize the repository, creating the base directory if needed.

        Raises:
            PermissionError: If the directory cannot be created
        """
        self.base_path = Path(base_path).resolve()
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PermissionError(
                f"Insufficient permissions to create storage directory: {self.base_path}"
            ) from e

    def _resolve(self, blob_ref: str) -> Path:
        """Resolve a reference to a path inside the storage root."""
        if not blob_ref or not blob_ref.strip():
            raise ValueError("blob_ref cannot be empty")
        full_path = (self.base_path / blob_ref).resolve()
        if full_path != self.base_path and self.base_path not in full_path.parents:
            raise ValueError(f"blob_ref escapes the storage root: {blob_ref}")
        return full_path

    def save(self, blob_ref: str, content: BinaryIO) -> bool:
        full_path = self._resolve(blob_ref)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in iter(lambda: content.read(CHUNK_SIZE), b""):
                    f.write(chunk)
            os.replace(tmp_name, full_path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise IOError(f"Failed to save blob {blob_ref}: {e}") from e

        logger.debug(f"Saved blob {blob_ref}")
        return True

    def get(self, blob_ref: str) -> Optional[BinaryIO]:
        try:
            full_path = self._resolve(blob_ref)
            if not full_path.is_file():
                return None
            return open(full_path, "rb")
        except (OSError, ValueError):
            return None

    def delete(self, blob_ref: str) -> bool:
        """
        Delete a blob. Idempotent: a missing blob counts as deleted.

        Raises:
            PermissionError: If the blob cannot be removed for permissions
            IOError: On other filesystem errors
        """
        try:
            full_path = self._resolve(blob_ref)
        except ValueError:
            return True

        try:
            full_path.unlink()
        except FileNotFoundError:
            return True
        except IsADirectoryError:
            return False
        except PermissionError:
            raise
        except OSError as e:
            raise IOError(f"Failed to delete blob {blob_ref}: {e}") from e

        logger.debug(f"Deleted blob {blob_ref}")
        return True

    def exists(self, blob_ref: str) -> bool:
        try:
            return self._resolve(blob_ref).is_file()
        except (OSError, ValueError):
            return False

    def get_size(self, blob_ref: str) -> Optional[int]:
        try:
            full_path = self._resolve(blob_ref)
            if not full_path.is_file():
                return None
            return full_path.stat().st_size
        except (OSError, ValueError):
            return None
