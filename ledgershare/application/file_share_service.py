"""
File Share Service

Application service orchestrating record creation and the caller-facing
operations: preview, download, owner deletion and hash verification.
"""

import functools
import logging
import uuid
from datetime import datetime
from typing import BinaryIO, Callable, Optional

from ledgershare.domain.errors import (
    BlobStorageError,
    DuplicateTokenError,
    ErrorCategory,
    FileTooLargeError,
    RecordNotFoundError,
    ValidationError,
)
from ledgershare.domain.events import AnchorRecordedEvent, FileRecordCreatedEvent
from ledgershare.domain.file_records.entities import DeletionReceipt, FileRecord, utc_now
from ledgershare.domain.file_records.hashing import sha256_stream
from ledgershare.domain.file_records.lifecycle import FileLifecycleService
from ledgershare.domain.file_records.repositories import FileRecordRepository
from ledgershare.domain.file_records.storage_repository import IBlobStorageRepository
from ledgershare.domain.file_records.token_issuer import TokenIssuer
from ledgershare.domain.file_records.value_objects import (
    ExpiryWindow,
    FileHash,
    ViewLimit,
    WalletAddress,
)
from ledgershare.domain.ledger.services import LedgerAnchorClient
from ledgershare.domain.ledger.value_objects import VerificationResult

from .download_result import DownloadResult

logger = logging.getLogger(__name__)

MAX_INSERT_ATTEMPTS = 3


class FileShareService:
    """
    Application service for shared files.

    Creation order is fixed: the blob is already stored and hashed, the
    hash is anchored on the ledger outside any store lock, and only after a
    successful anchor is the record inserted. Any failure removes the blob.
    """

    def __init__(
        self,
        lifecycle: FileLifecycleService,
        records: FileRecordRepository,
        storage: IBlobStorageRepository,
        ledger_client: LedgerAnchorClient,
        token_issuer: Optional[TokenIssuer] = None,
        expiry_window: Optional[ExpiryWindow] = None,
        view_limit_min: int = 1,
        view_limit_max: int = 100,
        max_upload_bytes: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
        event_publisher=None,
    ):
        """
        Initialize FileShareService.

        Args:
            lifecycle: Record state machine
            records: Record store
            storage: Blob storage
            ledger_client: Ledger client used to anchor hashes
            token_issuer: Access token issuer
            expiry_window: Allowed lifetime of a new record
            view_limit_min: Smallest allowed view limit
            view_limit_max: Largest allowed view limit
            max_upload_bytes: Upload size ceiling, None for no limit
            clock: Source of the current time
            event_publisher: Optional EventPublisher
        """
        self.lifecycle = lifecycle
        self.records = records
        self.storage = storage
        self.ledger_client = ledger_client
        self.token_issuer = token_issuer or TokenIssuer()
        self.expiry_window = expiry_window or ExpiryWindow()
        self.view_limit_min = view_limit_min
        self.view_limit_max = view_limit_max
        self.max_upload_bytes = max_upload_bytes
        self.clock = clock
        self.event_publisher = event_publisher

    def _publish(self, event) -> None:
        if self.event_publisher is not None:
            self.event_publisher.publish(event)

    def _remove_blob(self, blob_ref: str) -> None:
        """Compensating action for a failed creation."""
        try:
            if self.storage.delete(blob_ref):
                logger.info(f"Removed blob {blob_ref} after failed record creation")
            else:
                logger.error(f"Could not remove blob {blob_ref} after failed record creation")
        except OSError as e:
            logger.error(f"Could not remove blob {blob_ref} after failed record creation: {e}")

    def create_record(
        self,
        blob_ref: str,
        file_hash: str,
        file_size: int,
        uploader_address: str,
        anonymous_mode: bool,
        view_limit: int,
        expiry_hours: float,
        filename: str = "",
        mime_type: Optional[str] = None,
    ) -> FileRecord:
        """
        Anchor a stored blob and create its record.

        Args:
            blob_ref: Reference of the already stored blob
            file_hash: Content digest of the blob
            file_size: Blob size in bytes
            uploader_address: Uploader wallet address
            anonymous_mode: Hide the uploader in previews
            view_limit: Number of downloads granted
            expiry_hours: Lifetime of the record
            filename: Original file name (metadata only)
            mime_type: Content type (metadata only)

        Returns:
            The persisted FileRecord

        Raises:
            ValidationError: On malformed input
            LedgerError: If anchoring failed terminally
            TokenGenerationError / StoreError: If the record could not be stored
        """
        try:
            return self._create_record(
                blob_ref, file_hash, file_size, uploader_address, anonymous_mode,
                view_limit, expiry_hours, filename, mime_type,
            )
        except Exception as e:
            logger.warning(f"Record creation for blob {blob_ref} aborted: {e}")
            self._remove_blob(blob_ref)
            raise

    def _create_record(
        self, blob_ref, file_hash, file_size, uploader_address, anonymous_mode,
        view_limit, expiry_hours, filename, mime_type,
    ) -> FileRecord:
        if not blob_ref:
            raise ValidationError("Blob reference is required")
        if isinstance(file_size, bool) or not isinstance(file_size, int) or file_size < 0:
            raise ValidationError(f"Invalid file size: {file_size!r}")

        uploader = WalletAddress(uploader_address)
        digest = FileHash(file_hash)
        limit = ViewLimit(view_limit, self.view_limit_min, self.view_limit_max)
        created_at = self.clock()
        expiry_time = self.expiry_window.deadline(created_at, expiry_hours)

        # Point of no return: the ledger write happens outside any store lock
        anchor = self.ledger_client.record_anchor(digest.value, created_at, uploader.value)
        self._publish(AnchorRecordedEvent(
            aggregate_id=digest.value,
            occurred_at=self.clock(),
            anchor_id=anchor.anchor_id,
            anchor_block=anchor.anchor_block,
            attempts=anchor.attempts,
        ))

        record = None
        for attempt in range(1, MAX_INSERT_ATTEMPTS + 1):
            token = self.token_issuer.generate_unique(self.records.token_exists)
            record = FileRecord.create(
                access_token=token,
                file_hash=digest.value,
                blob_ref=blob_ref,
                file_size=file_size,
                uploader_address=uploader.value,
                anonymous_mode=bool(anonymous_mode),
                view_limit=limit.value,
                expiry_time=expiry_time,
                anchor_id=anchor.anchor_id,
                anchor_block=anchor.anchor_block,
                filename=filename or "",
                mime_type=mime_type,
                created_at=created_at,
            )
            try:
                self.records.insert(record)
                break
            except DuplicateTokenError:
                if attempt == MAX_INSERT_ATTEMPTS:
                    raise
                logger.warning(f"Token taken between check and insert, retrying ({attempt})")

        logger.info(
            f"Created record {record.id} for hash {digest.value[:12]}... "
            f"(views={limit.value}, expires={expiry_time.isoformat()})"
        )
        self._publish(FileRecordCreatedEvent(
            aggregate_id=record.id,
            occurred_at=created_at,
            file_hash=record.file_hash,
            view_limit=record.view_limit,
            expiry_time=record.expiry_time,
            anchor_id=record.anchor_id,
        ))
        return record

    def upload(
        self,
        stream: BinaryIO,
        filename: str,
        uploader_address: str,
        view_limit: int,
        expiry_hours: float,
        anonymous_mode: bool = False,
        mime_type: Optional[str] = None,
    ) -> FileRecord:
        """
        Store an uploaded stream, hash it and create its record.

        Raises:
            FileTooLargeError: If the stored blob exceeds the upload ceiling
            BlobStorageError: If the blob could not be stored
            Anything create_record raises
        """
        blob_ref = uuid.uuid4().hex
        try:
            self.storage.save(blob_ref, stream)
        except (OSError, ValueError) as e:
            self._remove_blob(blob_ref)
            raise BlobStorageError(f"Failed to store upload: {e}", original_error=e)

        try:
            file_size = self.storage.get_size(blob_ref)
            if file_size is None:
                raise BlobStorageError(f"Stored blob {blob_ref} is missing")
            if self.max_upload_bytes is not None and file_size > self.max_upload_bytes:
                raise FileTooLargeError(
                    f"Upload of {file_size} bytes exceeds the {self.max_upload_bytes} byte limit"
                )
            content = self.storage.get(blob_ref)
            if content is None:
                raise BlobStorageError(f"Stored blob {blob_ref} is missing")
            with content:
                file_hash = sha256_stream(content)
        except Exception:
            self._remove_blob(blob_ref)
            raise

        return self.create_record(
            blob_ref=blob_ref,
            file_hash=file_hash,
            file_size=file_size,
            uploader_address=uploader_address,
            anonymous_mode=anonymous_mode,
            view_limit=view_limit,
            expiry_hours=expiry_hours,
            filename=filename,
            mime_type=mime_type,
        )

    def preview(self, token: str) -> FileRecord:
        return self.lifecycle.preview(token)

    def download(self, token: str) -> DownloadResult:
        """
        Consume one view and open the blob for streaming.

        When the view was the last one, the returned result carries a
        completion hook running the deferred purge once the transfer ends.
        """
        grant = self.lifecycle.download(token)
        record = grant.record

        stream = self.storage.get(record.blob_ref)
        if stream is None:
            logger.error(f"Blob for record {record.id} vanished after the view was consumed")
            raise RecordNotFoundError(
                f"Blob for record {record.id} not found in storage",
                ErrorCategory.FILE_NOT_FOUND_ON_DISK,
            )

        on_complete = None
        if grant.receipt.exhausted:
            on_complete = functools.partial(self.lifecycle.purge_if_exhausted, record.id)

        return DownloadResult(record, grant.receipt, stream, on_complete)

    def delete_owned(
        self, file_id: str, claimed_address: str, message: str, signature: str
    ) -> DeletionReceipt:
        return self.lifecycle.delete_owned(file_id, claimed_address, message, signature)

    def verify(self, provided_hash: str, anchor_id: Optional[str] = None) -> VerificationResult:
        """Compare a hash against the ledger."""
        return self.ledger_client.verify_hash(provided_hash, anchor_id)
