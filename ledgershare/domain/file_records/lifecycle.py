"""
File Lifecycle Service

State machine governing a file record after creation: preview, the
atomic download decrement, the deferred purge of exhausted records and
owner-authorized deletion.

Statuses only move forward (Active -> Expired -> Deleted). Every decision
that depends on and mutates ``views_remaining`` or ``status`` on the
download and delete paths runs while holding the store's per-record lock.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from ..errors import (
    BlobStorageError,
    DuplicateTokenError,
    ErrorCategory,
    RecordGoneError,
    RecordNotFoundError,
    StoreBusyError,
    StoreError,
)
from ..events import (
    FileDeletedEvent,
    FileDownloadedEvent,
    FileExpiredEvent,
    FilePurgedEvent,
)
from ..retry_policy import RetryPolicy
from .entities import DeletionReceipt, DownloadReceipt, FileRecord, utc_now
from .repositories import FileRecordRepository
from .storage_repository import IBlobStorageRepository
from .value_objects import AccessToken, FileStatus, WalletAddress

if TYPE_CHECKING:
    from ..ownership.services import OwnershipVerifier

logger = logging.getLogger(__name__)

DEFAULT_LOCK_WAIT_SECONDS = 2.0
DEFAULT_STORE_MAX_ATTEMPTS = 3
DEFAULT_STORE_RETRY_BASE_DELAY = 0.05


def is_retryable_store_error(error: BaseException) -> bool:
    return isinstance(error, StoreError) and not isinstance(error, DuplicateTokenError)


@dataclass(frozen=True)
class DownloadGrant:
    """A consumed view: the record as it stood after the decrement."""
    record: FileRecord
    receipt: DownloadReceipt


class FileLifecycleService:
    """
    Domain service for record state transitions.

    Coordinates the record store, blob storage and ownership checks.
    """

    def __init__(
        self,
        records: FileRecordRepository,
        storage: IBlobStorageRepository,
        ownership: "OwnershipVerifier",
        clock: Callable[[], datetime] = utc_now,
        lock_wait_seconds: float = DEFAULT_LOCK_WAIT_SECONDS,
        store_retry: Optional[RetryPolicy] = None,
        event_publisher=None,
    ):
        """
        Initialize the lifecycle service.

        Args:
            records: Record store
            storage: Blob storage
            ownership: Signature and uploader checks for deletion
            clock: Source of the current time
            lock_wait_seconds: Bounded wait for a record lock
            store_retry: Retry policy for lock contention
            event_publisher: Optional publisher with a ``publish(event)`` method
        """
        self.records = records
        self.storage = storage
        self.ownership = ownership
        self.clock = clock
        self.lock_wait_seconds = lock_wait_seconds
        self.store_retry = store_retry or RetryPolicy(
            max_attempts=DEFAULT_STORE_MAX_ATTEMPTS,
            base_delay=DEFAULT_STORE_RETRY_BASE_DELAY,
            is_retryable=is_retryable_store_error,
        )
        self.event_publisher = event_publisher

    def _publish(self, event) -> None:
        if self.event_publisher is not None:
            self.event_publisher.publish(event)

    def _locked(self, record_id: str, operation: Callable[[], object]):
        """Run ``operation`` under the record lock, retrying contention."""

        def attempt():
            with self.records.lock(record_id, self.lock_wait_seconds):
                return operation()

        def on_retry(attempt_number, error, delay):
            logger.debug(f"Record {record_id} busy (attempt {attempt_number}): {error}")

        return self.store_retry.execute(attempt, on_retry=on_retry)

    def _expire(self, record: FileRecord, reason: ErrorCategory) -> None:
        if self.records.transition_status(record.id, FileStatus.EXPIRED):
            record.status = FileStatus.EXPIRED
            logger.info(f"Record {record.id} expired ({reason.value})")
            self._publish(FileExpiredEvent(
                aggregate_id=record.id,
                occurred_at=self.clock(),
                reason=reason.value,
            ))

    def _check_accessible(self, record: FileRecord) -> None:
        """
        Gate shared by preview and download.

        Raises:
            RecordGoneError: If the record is not active, past its
                deadline, or out of views (the last two flip it to Expired)
        """
        if not record.is_active():
            raise RecordGoneError(
                f"Record {record.id} is {record.status.value}",
                ErrorCategory.FILE_NOT_ACTIVE,
            )
        if record.is_expired_at(self.clock()):
            self._expire(record, ErrorCategory.FILE_EXPIRED)
            raise RecordGoneError(
                f"Record {record.id} passed its expiry time",
                ErrorCategory.FILE_EXPIRED,
            )
        if record.is_exhausted():
            self._expire(record, ErrorCategory.VIEW_LIMIT_REACHED)
            raise RecordGoneError(
                f"Record {record.id} has no views remaining",
                ErrorCategory.VIEW_LIMIT_REACHED,
            )

    def _load_by_token(self, token: str) -> FileRecord:
        access_token = AccessToken(token)
        record = self.records.get_by_token(access_token.value)
        if record is None:
            raise RecordNotFoundError(f"No record for token {access_token.masked()}")
        return record

    def preview(self, token: str) -> FileRecord:
        """
        Return a record's metadata without consuming a view.

        Raises:
            InvalidAccessTokenError: If the token is malformed
            RecordNotFoundError: If no record has this token
            RecordGoneError: If the record can no longer be accessed
        """
        record = self._load_by_token(token)
        self._check_accessible(record)
        return record

    def download(self, token: str) -> DownloadGrant:
        """
        Consume exactly one view of a record.

        The checks and the decrement run under the record lock. The blob is
        not touched here beyond an existence check; streaming and the
        deferred purge happen after the lock is released.

        Raises:
            InvalidAccessTokenError: If the token is malformed
            RecordNotFoundError: FILE_NOT_FOUND, or FILE_NOT_FOUND_ON_DISK when
                the blob is missing (the record is then marked Deleted)
            RecordGoneError: FILE_NOT_ACTIVE, FILE_EXPIRED or VIEW_LIMIT_REACHED
            StoreBusyError: If the lock stayed contended through every retry
        """
        located = self._load_by_token(token)
        return self._locked(located.id, lambda: self._consume_view(located.id))

    def _consume_view(self, record_id: str) -> DownloadGrant:
        record = self.records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record {record_id} not found")

        self._check_accessible(record)

        if not self.storage.exists(record.blob_ref):
            logger.error(f"Blob for record {record_id} is missing from storage")
            self.records.transition_status(record_id, FileStatus.DELETED)
            raise RecordNotFoundError(
                f"Blob for record {record_id} not found in storage",
                ErrorCategory.FILE_NOT_FOUND_ON_DISK,
            )

        remaining = self.records.decrement_views(record_id)
        if remaining is None:
            raise RecordGoneError(
                f"Record {record_id} could not be decremented",
                ErrorCategory.FILE_NOT_ACTIVE,
            )

        record.views_remaining = remaining
        logger.info(f"Record {record_id} downloaded, {remaining} views remaining")
        self._publish(FileDownloadedEvent(
            aggregate_id=record_id,
            occurred_at=self.clock(),
            views_remaining=remaining,
        ))
        return DownloadGrant(record=record, receipt=record.download_receipt())

    def purge_if_exhausted(self, record_id: str) -> bool:
        """
        Deferred purge for a record whose last view was consumed.

        Re-checks the record under its lock and is a no-op unless it is
        still Active with no views left. Removes the blob and marks the
        record Deleted; the row is kept. Failures leave the record for the
        next sweep.

        Returns:
            True if the record was purged
        """
        try:
            purged = self._locked(record_id, lambda: self._purge_locked(record_id))
        except StoreBusyError:
            logger.warning(f"Record {record_id} busy, leaving purge to the next sweep")
            return False
        except (StoreError, BlobStorageError) as e:
            logger.error(f"Deferred purge of record {record_id} failed: {e}", exc_info=True)
            return False

        if purged:
            self._publish(FilePurgedEvent(
                aggregate_id=record_id,
                occurred_at=self.clock(),
                reason="exhausted",
            ))
        return purged

    def _purge_locked(self, record_id: str) -> bool:
        record = self.records.get(record_id)
        if record is None or not record.is_active() or not record.is_exhausted():
            logger.debug(f"Skipping purge of record {record_id}: no longer exhausted and active")
            return False

        self._delete_blob(record)
        self.records.transition_status(record_id, FileStatus.DELETED)
        logger.info(f"Purged exhausted record {record_id}")
        return True

    def _delete_blob(self, record: FileRecord) -> None:
        try:
            deleted = self.storage.delete(record.blob_ref)
        except OSError as e:
            raise BlobStorageError(
                f"Failed to delete blob for record {record.id}: {e}", original_error=e
            )
        if not deleted:
            raise BlobStorageError(f"Failed to delete blob for record {record.id}")

    def delete_owned(
        self,
        file_id: str,
        claimed_address: str,
        message: str,
        signature: str,
    ) -> DeletionReceipt:
        """
        Delete a record on behalf of its uploader.

        Args:
            file_id: Record identifier
            claimed_address: Wallet the caller claims to control
            message: Signed message
            signature: Signature over ``message``

        Returns:
            DeletionReceipt snapshotting the record before deletion

        Raises:
            InvalidWalletAddressError: If the claimed address is malformed
            OwnershipError: If the signature or the uploader does not match
            RecordNotFoundError: If the record doesn't exist
            RecordGoneError: ALREADY_DELETED on a second deletion
            BlobStorageError: If the blob could not be removed (status unchanged)
        """
        claimed = WalletAddress(claimed_address)
        self.ownership.verify_signer(claimed, message, signature)

        record = self.records.get(file_id)
        if record is None:
            raise RecordNotFoundError(f"Record {file_id} not found")
        self.ownership.verify_owner(claimed, record.uploader_address)

        receipt = self._locked(file_id, lambda: self._delete_locked(file_id))
        logger.info(f"Record {file_id} deleted by its uploader")
        self._publish(FileDeletedEvent(
            aggregate_id=file_id,
            occurred_at=receipt.deleted_at,
            uploader_address=claimed.value,
        ))
        return receipt

    def _delete_locked(self, record_id: str) -> DeletionReceipt:
        record = self.records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        if record.status is FileStatus.DELETED:
            raise RecordGoneError(
                f"Record {record_id} is already deleted",
                ErrorCategory.ALREADY_DELETED,
            )

        self._delete_blob(record)
        self.records.transition_status(record_id, FileStatus.DELETED)
        return record.deletion_receipt(self.clock())
