"""
Domain Events

Immutable records of significant state changes in the domain.
Events decouple side effects (logging, notifications) from core business logic.
"""

from abc import ABC
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DomainEvent(ABC):
    """
    Base class for all domain events.

    Attributes:
        aggregate_id: ID of the aggregate that generated the event (e.g., record id)
        occurred_at: Timestamp when the event occurred
    """
    aggregate_id: str
    occurred_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert event to dictionary for serialization.

        Returns:
            Dictionary representation of the event
        """
        return {
            "event_type": self.__class__.__name__,
            "aggregate_id": self.aggregate_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class FileRecordCreatedEvent(DomainEvent):
    """
    Event emitted when a file record is persisted after a successful anchor.

    Attributes:
        aggregate_id: Record ID
        occurred_at: When the record was created
        file_hash: Anchored content digest
        view_limit: Number of downloads granted
        expiry_time: Access deadline
        anchor_id: Ledger transaction identifier
    """
    file_hash: str
    view_limit: int
    expiry_time: datetime
    anchor_id: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "file_hash": self.file_hash,
            "view_limit": self.view_limit,
            "expiry_time": self.expiry_time.isoformat(),
            "anchor_id": self.anchor_id,
        })
        return base_dict


@dataclass(frozen=True)
class FileDownloadedEvent(DomainEvent):
    """Event emitted after a download consumed one view."""
    views_remaining: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict["views_remaining"] = self.views_remaining
        return base_dict


@dataclass(frozen=True)
class FileExpiredEvent(DomainEvent):
    """
    Event emitted when a record is flipped from Active to Expired.

    Attributes:
        reason: Error category value that caused the flip (file_expired or view_limit_reached)
    """
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict["reason"] = self.reason
        return base_dict


@dataclass(frozen=True)
class FileDeletedEvent(DomainEvent):
    """Event emitted when the uploader deletes a record."""
    uploader_address: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict["uploader_address"] = self.uploader_address
        return base_dict


@dataclass(frozen=True)
class FilePurgedEvent(DomainEvent):
    """
    Event emitted when a record's blob is reclaimed without an owner request.

    Attributes:
        reason: "exhausted" for the post-download purge, "sweep" for the scheduler
        row_removed: Whether the record row itself was removed
    """
    reason: str
    row_removed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "reason": self.reason,
            "row_removed": self.row_removed,
        })
        return base_dict


@dataclass(frozen=True)
class AnchorRecordedEvent(DomainEvent):
    """
    Event emitted when a content hash is anchored on the ledger.

    Attributes:
        aggregate_id: File hash
        anchor_id: Ledger transaction identifier
        anchor_block: Ledger position, None when the ledger has no blocks
        attempts: Number of attempts the write took
    """
    anchor_id: str
    anchor_block: Optional[int]
    attempts: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "anchor_id": self.anchor_id,
            "anchor_block": self.anchor_block,
            "attempts": self.attempts,
        })
        return base_dict


@dataclass(frozen=True)
class SweepCompletedEvent(DomainEvent):
    """Event emitted at the end of every reclamation sweep."""
    candidates: int
    purged: int
    errors: int
    duration_ms: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "candidates": self.candidates,
            "purged": self.purged,
            "errors": self.errors,
            "duration_ms": self.duration_ms,
        })
        return base_dict
