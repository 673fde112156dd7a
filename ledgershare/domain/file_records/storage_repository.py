"""
Blob Storage Repository Interface

Abstract interface for the raw bytes behind a file record.
The domain only needs write/read/delete primitives keyed by an opaque
blob reference; concrete implementations live in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Optional


class IBlobStorageRepository(ABC):
    """
    Interface for blob storage operations.

    Contract Guarantees:
    - get() returns None for missing blobs (no exceptions)
    - delete() succeeds when the blob is already absent (idempotent)
    - exists() never raises for invalid references
    - Blob references are opaque strings relative to the storage root
    """

    @abstractmethod
    def save(self, blob_ref: str, content: BinaryIO) -> bool:
        """
        Save blob content to storage.

        Args:
            blob_ref: Reference to store the content under
            content: Binary stream positioned at the start of the content

        Returns:
            True if the blob was saved, False otherwise

        Raises:
            ValueError: If blob_ref is empty or escapes the storage root
            IOError: On write failures
        """
        pass  # pragma: no cover

    @abstractmethod
    def get(self, blob_ref: str) -> Optional[BinaryIO]:
        """
        Open a blob for reading.

        The caller is responsible for closing the returned stream.

        Returns:
            Binary stream if found, None if the blob doesn't exist
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, blob_ref: str) -> bool:
        """
        Delete a blob.

        Returns:
            True if the blob was deleted or didn't exist, False on failure
        """
        pass  # pragma: no cover

    @abstractmethod
    def exists(self, blob_ref: str) -> bool:
        """Check if a blob exists. Never raises."""
        pass  # pragma: no cover

    @abstractmethod
    def get_size(self, blob_ref: str) -> Optional[int]:
        """Size of a blob in bytes, or None if it doesn't exist."""
        pass  # pragma: no cover
