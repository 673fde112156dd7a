"""
File Record Entities

Domain entities for shared file records and the receipts they produce.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .value_objects import FileStatus


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class DeletionReceipt:
    """Snapshot of a record's fields taken just before it was deleted."""
    id: str
    filename: str
    file_size: int
    file_hash: str
    uploader_address: str
    views_remaining_at_deletion: int
    expiry_time: datetime
    anchor_id: str
    anchor_block: Optional[int]
    deleted_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "file_size": self.file_size,
            "file_hash": self.file_hash,
            "uploader_address": self.uploader_address,
            "views_remaining_at_deletion": self.views_remaining_at_deletion,
            "expiry_time": self.expiry_time.isoformat(),
            "anchor_id": self.anchor_id,
            "anchor_block": self.anchor_block,
            "deleted_at": self.deleted_at.isoformat(),
        }


@dataclass(frozen=True)
class DownloadReceipt:
    """Outcome of a successful view decrement."""
    record_id: str
    filename: str
    views_remaining: int
    view_limit: int

    @property
    def exhausted(self) -> bool:
        """True when this download consumed the last view."""
        return self.views_remaining == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "filename": self.filename,
            "views_remaining": self.views_remaining,
            "view_limit": self.view_limit,
            "exhausted": self.exhausted,
        }


@dataclass
class FileRecord:
    """
    Entity representing one uploaded blob and its access rules.

    Everything except ``views_remaining`` and ``status`` is fixed at
    creation. ``views_remaining`` never increases and ``status`` only
    moves forward (see FileStatus).
    """

    id: str
    access_token: str
    file_hash: str
    blob_ref: str
    file_size: int
    uploader_address: str
    anonymous_mode: bool
    view_limit: int
    views_remaining: int
    expiry_time: datetime
    anchor_id: str
    anchor_block: Optional[int]
    status: FileStatus
    created_at: datetime
    filename: str = ""
    mime_type: Optional[str] = None
    updated_at: Optional[datetime] = field(default=None)

    @classmethod
    def create(
        cls,
        access_token: str,
        file_hash: str,
        blob_ref: str,
        file_size: int,
        uploader_address: str,
        anonymous_mode: bool,
        view_limit: int,
        expiry_time: datetime,
        anchor_id: str,
        anchor_block: Optional[int],
        filename: str = "",
        mime_type: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> "FileRecord":
        """
        Factory method to create a new active record.

        Inputs are expected to be validated already; the record starts
        with every view available.
        """
        now = created_at or utc_now()
        return cls(
            id=str(uuid.uuid4()),
            access_token=access_token,
            file_hash=file_hash,
            blob_ref=blob_ref,
            file_size=file_size,
            uploader_address=uploader_address,
            anonymous_mode=anonymous_mode,
            view_limit=view_limit,
            views_remaining=view_limit,
            expiry_time=expiry_time,
            anchor_id=anchor_id,
            anchor_block=anchor_block,
            status=FileStatus.ACTIVE,
            created_at=now,
            filename=filename,
            mime_type=mime_type,
            updated_at=now,
        )

    def is_active(self) -> bool:
        return self.status is FileStatus.ACTIVE

    def is_expired_at(self, now: datetime) -> bool:
        """A deadline equal to ``now`` counts as expired."""
        return now >= self.expiry_time

    def is_exhausted(self) -> bool:
        return self.views_remaining <= 0

    def deletion_receipt(self, deleted_at: datetime) -> DeletionReceipt:
        """Snapshot the pre-deletion fields of this record."""
        return DeletionReceipt(
            id=self.id,
            filename=self.filename,
            file_size=self.file_size,
            file_hash=self.file_hash,
            uploader_address=self.uploader_address,
            views_remaining_at_deletion=self.views_remaining,
            expiry_time=self.expiry_time,
            anchor_id=self.anchor_id,
            anchor_block=self.anchor_block,
            deleted_at=deleted_at,
        )

    def download_receipt(self) -> DownloadReceipt:
        return DownloadReceipt(
            record_id=self.id,
            filename=self.filename,
            views_remaining=self.views_remaining,
            view_limit=self.view_limit,
        )

    def to_metadata(self) -> Dict[str, Any]:
        """
        Public metadata returned by preview.

        The uploader address is withheld in anonymous mode and the access
        token and blob reference are never exposed.
        """
        metadata = {
            "id": self.id,
            "filename": self.filename,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "views_remaining": self.views_remaining,
            "view_limit": self.view_limit,
            "expiry_time": self.expiry_time.isoformat(),
            "created_at": self.created_at.isoformat(),
            "file_hash": self.file_hash,
            "anchor_id": self.anchor_id,
            "anchor_block": self.anchor_block,
            "anonymous_mode": self.anonymous_mode,
            "status": self.status.value,
        }
        if not self.anonymous_mode:
            metadata["uploader_address"] = self.uploader_address
        return metadata

    def to_dict(self) -> dict:
        """Convert record to dictionary for persistence."""
        return {
            "id": self.id,
            "access_token": self.access_token,
            "file_hash": self.file_hash,
            "blob_ref": self.blob_ref,
            "file_size": self.file_size,
            "uploader_address": self.uploader_address,
            "anonymous_mode": self.anonymous_mode,
            "view_limit": self.view_limit,
            "views_remaining": self.views_remaining,
            "expiry_time": self.expiry_time.isoformat(),
            "anchor_id": self.anchor_id,
            "anchor_block": self.anchor_block,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "filename": self.filename,
            "mime_type": self.mime_type,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FileRecord":
        """Create record from dictionary."""
        return cls(
            id=data["id"],
            access_token=data["access_token"],
            file_hash=data["file_hash"],
            blob_ref=data["blob_ref"],
            file_size=int(data["file_size"]),
            uploader_address=data["uploader_address"],
            anonymous_mode=bool(data.get("anonymous_mode", False)),
            view_limit=int(data["view_limit"]),
            views_remaining=int(data["views_remaining"]),
            expiry_time=_parse_datetime(data["expiry_time"]),
            anchor_id=data["anchor_id"],
            anchor_block=data.get("anchor_block"),
            status=FileStatus(data["status"]),
            created_at=_parse_datetime(data["created_at"]),
            filename=data.get("filename", ""),
            mime_type=data.get("mime_type"),
            updated_at=_parse_datetime(data.get("updated_at")),
        )
