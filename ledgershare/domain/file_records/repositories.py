"""
File Record Repositories

Repository interface for record persistence (the record store).
Concrete implementations are in the infrastructure layer.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import List, Optional

from .entities import FileRecord
from .value_objects import FileStatus


class FileRecordRepository(ABC):
    """
    Abstract repository interface for file records.

    Every method that mutates ``views_remaining`` or ``status`` is atomic on
    its own. Decisions that read a record and then mutate it must be made
    while holding ``lock(record_id)``; the lock serializes all such
    decisions for one record across threads and processes.
    """

    @abstractmethod
    def insert(self, record: FileRecord) -> None:
        """
        Persist a new record.

        Raises:
            DuplicateTokenError: If the access token is already taken
            StoreError: If the store is unavailable
        """
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[FileRecord]:
        """Retrieve a record by ID, None if absent."""
        pass

    @abstractmethod
    def get_by_token(self, access_token: str) -> Optional[FileRecord]:
        """Retrieve a record by its access token, None if absent."""
        pass

    @abstractmethod
    def token_exists(self, access_token: str) -> bool:
        """Check whether an access token is already assigned to a record."""
        pass

    @abstractmethod
    def lock(self, record_id: str, wait_seconds: Optional[float] = None) -> AbstractContextManager:
        """
        Exclusive per-record lock.

        Args:
            record_id: Record identifier
            wait_seconds: Bounded wait for acquisition, store default if None

        Returns:
            Context manager holding the lock for the duration of the block

        Raises:
            StoreBusyError: If the lock could not be acquired in time
        """
        pass

    @abstractmethod
    def decrement_views(self, record_id: str) -> Optional[int]:
        """
        Atomically decrement ``views_remaining`` by exactly one.

        Only applies to an active record with at least one view left.

        Returns:
            The new ``views_remaining``, or None when the record is absent,
            not active, or already exhausted
        """
        pass

    @abstractmethod
    def transition_status(self, record_id: str, status: FileStatus) -> bool:
        """
        Move a record forward to ``status``.

        Transitions to the current status or an earlier one are no-ops.

        Returns:
            True if the status changed, False otherwise
        """
        pass

    @abstractmethod
    def find_active_past_expiry(self, now: datetime) -> List[FileRecord]:
        """Active records whose expiry time is strictly before ``now``."""
        pass

    @abstractmethod
    def find_active_exhausted(self) -> List[FileRecord]:
        """Active records with no views remaining."""
        pass

    @abstractmethod
    def find_marked_expired(self) -> List[FileRecord]:
        """Records already flipped to Expired and awaiting reclamation."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """
        Remove a record row entirely.

        Returns:
            True if a row was removed, False if it was already gone
        """
        pass
