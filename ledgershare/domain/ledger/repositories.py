"""
Ledger Repository Interface

The external append-only ledger, treated as a black-box anchor store.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from .value_objects import Anchor, AnchorReceipt


class AnchorLedger(ABC):
    """
    Abstract append-only anchor store.

    Implementations translate their own failures into the ledger error
    hierarchy: LedgerUnavailableError (or LedgerEstimationError) for
    transient problems, LedgerRejectedError when the write is declined.
    """

    @abstractmethod
    def submit(self, file_hash: str, timestamp: datetime, uploader: str) -> AnchorReceipt:
        """
        Write one anchor.

        Args:
            file_hash: Lower-case hex content digest
            timestamp: Anchor timestamp
            uploader: Lower-case wallet address of the uploader

        Returns:
            AnchorReceipt for the write

        Raises:
            LedgerError: On any failure, with a retryable subtype when transient
        """
        pass

    @abstractmethod
    def lookup(self, file_hash: str) -> Optional[Anchor]:
        """Return the anchor recorded for a hash, None if there is none."""
        pass

    @abstractmethod
    def lookup_transaction(self, anchor_id: str) -> Optional[Anchor]:
        """Return the anchor written by a specific transaction, None if unknown."""
        pass

    @abstractmethod
    def anchor_count(self) -> int:
        """Number of anchors written so far."""
        pass
