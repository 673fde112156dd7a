"""
Ledger Value Objects

Immutable value objects describing anchors written to the ledger.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AnchorReceipt:
    """
    Result of a successful ledger write.

    Attributes:
        anchor_id: Ledger transaction/receipt identifier
        anchor_block: Ledger position, None when the ledger has no blocks
        attempts: Number of attempts the write took
    """
    anchor_id: str
    anchor_block: Optional[int] = None
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"anchor_id": self.anchor_id, "anchor_block": self.anchor_block}


@dataclass(frozen=True)
class Anchor:
    """A (hash, timestamp, uploader) triple recorded on the ledger."""
    file_hash: str
    timestamp: datetime
    uploader: str
    anchor_id: Optional[str] = None
    anchor_block: Optional[int] = None

    @property
    def exists(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_hash": self.file_hash,
            "timestamp": self.timestamp.isoformat(),
            "uploader": self.uploader,
            "anchor_id": self.anchor_id,
            "anchor_block": self.anchor_block,
            "exists": self.exists,
        }


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of comparing a caller-supplied hash against the ledger."""
    verified: bool
    provided_hash: str
    anchored_hash: Optional[str] = None
    timestamp: Optional[datetime] = None
    uploader: Optional[str] = None
    anchor_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verified": self.verified,
            "provided_hash": self.provided_hash,
            "anchored_hash": self.anchored_hash,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "uploader": self.uploader,
            "anchor_id": self.anchor_id,
        }
