"""
File Records Domain

Handles file records, access tokens, view counting and the record lifecycle.
"""

from .entities import DeletionReceipt, DownloadReceipt, FileRecord
from .lifecycle import DownloadGrant, FileLifecycleService
from .repositories import FileRecordRepository
from .storage_repository import IBlobStorageRepository
from .token_issuer import TokenIssuer
from .value_objects import (
    AccessToken,
    ExpiryWindow,
    FileHash,
    FileStatus,
    ViewLimit,
    WalletAddress,
)

__all__ = [
    "AccessToken",
    "DeletionReceipt",
    "DownloadGrant",
    "DownloadReceipt",
    "ExpiryWindow",
    "FileHash",
    "FileLifecycleService",
    "FileRecord",
    "FileRecordRepository",
    "FileStatus",
    "IBlobStorageRepository",
    "TokenIssuer",
    "ViewLimit",
    "WalletAddress",
]
