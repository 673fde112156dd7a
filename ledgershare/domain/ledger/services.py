"""
Ledger Services

Domain service wrapping the external ledger with bounded retries.
"""

import dataclasses
import logging
import time
from datetime import datetime
from typing import Callable, Optional

from ..errors import (
    InvalidFileHashError,
    LedgerError,
    LedgerRejectedError,
    LedgerUnavailableError,
)
from ..file_records.value_objects import FileHash, WalletAddress
from ..retry_policy import RetryPolicy
from .repositories import AnchorLedger
from .value_objects import Anchor, AnchorReceipt, VerificationResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 2.0


def is_retryable_ledger_error(error: BaseException) -> bool:
    """
    Classify a ledger failure.

    Timeouts, connectivity problems and resource-estimation failures are
    transient. Explicit rejections and anything unrecognised are terminal.
    """
    if isinstance(error, LedgerError):
        return bool(error.retryable)
    return isinstance(error, (TimeoutError, ConnectionError))


class LedgerAnchorClient:
    """
    Domain service for anchoring content hashes.

    Owns the retry policy for every ledger operation so callers never
    loop on ledger errors themselves.
    """

    def __init__(
        self,
        ledger: AnchorLedger,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the client.

        Args:
            ledger: Anchor store implementation
            max_retries: Default total attempts per operation
            base_delay: Delay after the first failure, doubled per attempt
            sleep: Sleep function, injectable for tests
        """
        self.ledger = ledger
        self.retry_policy = RetryPolicy(
            max_attempts=max_retries,
            base_delay=base_delay,
            is_retryable=is_retryable_ledger_error,
            sleep=sleep,
        )

    def _run(self, operation_name: str, operation, policy: RetryPolicy):
        attempts = {"count": 0}

        def attempt():
            attempts["count"] += 1
            return operation()

        def on_retry(attempt_number, error, delay):
            logger.warning(
                f"Ledger {operation_name} attempt {attempt_number}/{policy.max_attempts} "
                f"failed: {error}. Retrying in {delay:.1f}s"
            )

        try:
            result = policy.execute(attempt, on_retry=on_retry)
        except LedgerRejectedError:
            logger.error(f"Ledger {operation_name} rejected, not retrying")
            raise
        except Exception as e:
            if is_retryable_ledger_error(e):
                logger.error(
                    f"Ledger {operation_name} failed after {attempts['count']} attempts: {e}"
                )
                raise LedgerUnavailableError(
                    f"Ledger {operation_name} failed after {attempts['count']} attempts: {e}",
                    original_error=e,
                )
            if isinstance(e, LedgerError):
                raise
            logger.error(f"Ledger {operation_name} failed with unexpected error: {e}", exc_info=True)
            raise LedgerError(f"Ledger {operation_name} failed: {e}", original_error=e)
        return result, attempts["count"]

    def record_anchor(
        self,
        file_hash: str,
        timestamp: datetime,
        uploader_address: str,
        max_retries: Optional[int] = None,
    ) -> AnchorReceipt:
        """
        Anchor a (hash, timestamp, uploader) triple.

        Args:
            file_hash: Content digest, optional 0x prefix
            timestamp: Anchor timestamp
            uploader_address: Uploader wallet address
            max_retries: Override for the total attempts of this call

        Returns:
            AnchorReceipt with the number of attempts used

        Raises:
            InvalidFileHashError / InvalidWalletAddressError: On malformed input
            LedgerUnavailableError: After exhausting retries on transient errors
            LedgerRejectedError: Immediately when the ledger declines the write
            LedgerError: On unrecognised failures
        """
        normalized_hash = FileHash(file_hash).value
        uploader = WalletAddress(uploader_address).value
        policy = self.retry_policy
        if max_retries is not None:
            policy = policy.with_attempts(max_retries)

        receipt, attempts = self._run(
            "anchor",
            lambda: self.ledger.submit(normalized_hash, timestamp, uploader),
            policy,
        )
        logger.info(
            f"Anchored hash {normalized_hash[:12]}... as {receipt.anchor_id} "
            f"(block {receipt.anchor_block}, attempts {attempts})"
        )
        return dataclasses.replace(receipt, attempts=attempts)

    def get_anchor(self, file_hash: str) -> Optional[Anchor]:
        """
        Read the anchor for a hash.

        Returns:
            Anchor, or None when the hash was never anchored
        """
        normalized_hash = FileHash(file_hash).value
        anchor, _ = self._run(
            "lookup", lambda: self.ledger.lookup(normalized_hash), self.retry_policy
        )
        return anchor

    def get_transaction(self, anchor_id: str) -> Optional[Anchor]:
        """Read the anchor written by a specific transaction."""
        anchor, _ = self._run(
            "transaction lookup",
            lambda: self.ledger.lookup_transaction(anchor_id),
            self.retry_policy,
        )
        return anchor

    @staticmethod
    def verify(provided_hash: str, anchor: Optional[Anchor]) -> bool:
        """Case-insensitive equality between a supplied hash and an anchor."""
        if anchor is None:
            return False
        try:
            return FileHash(provided_hash).matches(anchor.file_hash)
        except InvalidFileHashError:
            return False

    def verify_hash(self, provided_hash: str, anchor_id: Optional[str] = None) -> VerificationResult:
        """
        Verify a hash against the ledger.

        Args:
            provided_hash: Caller-supplied digest
            anchor_id: Optional transaction to compare against instead of
                the anchor recorded for ``provided_hash``

        Returns:
            VerificationResult; unknown hashes verify as False

        Raises:
            InvalidFileHashError: If the supplied hash is malformed
        """
        normalized_hash = FileHash(provided_hash).value
        if anchor_id:
            anchor = self.get_transaction(anchor_id)
        else:
            anchor = self.get_anchor(normalized_hash)

        if anchor is None:
            return VerificationResult(verified=False, provided_hash=normalized_hash)

        return VerificationResult(
            verified=self.verify(normalized_hash, anchor),
            provided_hash=normalized_hash,
            anchored_hash=anchor.file_hash,
            timestamp=anchor.timestamp,
            uploader=anchor.uploader,
            anchor_id=anchor.anchor_id,
        )
