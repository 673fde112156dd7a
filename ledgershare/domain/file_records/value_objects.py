"""
File Record Value Objects

Immutable value objects for type safety and validation.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from ..errors import (
    InvalidAccessTokenError,
    InvalidExpiryError,
    InvalidFileHashError,
    InvalidViewLimitError,
    InvalidWalletAddressError,
)

TOKEN_BYTES = 32
TOKEN_LENGTH = TOKEN_BYTES * 2
HASH_LENGTH = 64

_TOKEN_PATTERN = re.compile(r"[a-fA-F0-9]{64}")
_ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
_HASH_PATTERN = re.compile(r"[a-fA-F0-9]{64}")


class FileStatus(Enum):
    """
    File record status enumeration.

    Statuses only move forward: ACTIVE -> EXPIRED -> DELETED, or
    ACTIVE -> DELETED directly. DELETED is terminal.
    """
    ACTIVE = "active"
    EXPIRED = "expired"
    DELETED = "deleted"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def can_transition_to(self, target: "FileStatus") -> bool:
        """Check if moving to ``target`` is a forward transition."""
        return target.rank > self.rank

    def is_terminal(self) -> bool:
        return self is FileStatus.DELETED


_STATUS_RANK = {
    FileStatus.ACTIVE: 0,
    FileStatus.EXPIRED: 1,
    FileStatus.DELETED: 2,
}


@dataclass(frozen=True)
class AccessToken:
    """
    Value object representing a validated access token.

    Tokens are 32 random bytes encoded as 64 hexadecimal characters.
    Validation is a pure format check and happens before any store lookup.
    """
    value: str

    def __post_init__(self):
        if not self.is_valid(self.value):
            length = len(self.value) if isinstance(self.value, str) else 0
            raise InvalidAccessTokenError(
                f"Invalid access token: expected {TOKEN_LENGTH} hex characters, got {length}"
            )

    @staticmethod
    def is_valid(value) -> bool:
        return isinstance(value, str) and bool(_TOKEN_PATTERN.fullmatch(value))

    def masked(self) -> str:
        """Return a truncated form safe for logs."""
        return f"{self.value[:8]}..."

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class WalletAddress:
    """
    Value object representing a wallet address.

    Addresses are ``0x`` followed by 40 hex characters. They are stored
    lower-case so equality is case-insensitive.
    """
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not _ADDRESS_PATTERN.fullmatch(self.value):
            raise InvalidWalletAddressError(f"Invalid wallet address: {self.value!r}")
        object.__setattr__(self, "value", self.value.lower())

    def matches(self, other: str) -> bool:
        """Case-insensitive comparison against a raw address string."""
        return isinstance(other, str) and self.value == other.lower()

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FileHash:
    """
    Value object representing a SHA-256 content digest.

    Accepts an optional ``0x`` prefix and normalizes to lower-case hex.
    """
    value: str

    def __post_init__(self):
        raw = self.value
        if isinstance(raw, str) and raw[:2].lower() == "0x":
            raw = raw[2:]
        if not isinstance(raw, str) or not _HASH_PATTERN.fullmatch(raw):
            raise InvalidFileHashError(
                f"Invalid file hash: expected {HASH_LENGTH} hex characters"
            )
        object.__setattr__(self, "value", raw.lower())

    def matches(self, other: str) -> bool:
        """Case-insensitive comparison; a ``0x`` prefix on ``other`` is ignored."""
        if not isinstance(other, str):
            return False
        if other[:2].lower() == "0x":
            other = other[2:]
        return self.value == other.lower()

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ViewLimit:
    """Value object representing the number of downloads granted to a record."""
    value: int
    minimum: int = 1
    maximum: int = 100

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidViewLimitError(f"View limit must be an integer, got {self.value!r}")
        if not self.minimum <= self.value <= self.maximum:
            raise InvalidViewLimitError(
                f"View limit must be between {self.minimum} and {self.maximum}, got {self.value}"
            )

    def __int__(self) -> int:
        return self.value


@dataclass(frozen=True)
class ExpiryWindow:
    """
    Allowed distance between creation time and the access deadline.

    The bound is checked once, at creation, and never revalidated.
    """
    min_hours: float = 1
    max_hours: float = 720

    def __post_init__(self):
        if self.min_hours <= 0 or self.max_hours < self.min_hours:
            raise ValueError(
                f"Invalid expiry window: {self.min_hours}h to {self.max_hours}h"
            )

    def deadline(self, created_at: datetime, expiry_hours) -> datetime:
        """
        Compute the access deadline for a new record.

        Args:
            created_at: Creation timestamp
            expiry_hours: Requested lifetime in hours

        Returns:
            Deadline as ``created_at + expiry_hours``

        Raises:
            InvalidExpiryError: If the lifetime falls outside the window
        """
        if isinstance(expiry_hours, bool) or not isinstance(expiry_hours, (int, float)):
            raise InvalidExpiryError(f"Expiry hours must be a number, got {expiry_hours!r}")
        if not self.min_hours <= expiry_hours <= self.max_hours:
            raise InvalidExpiryError(
                f"Expiry must be between {self.min_hours} and {self.max_hours} hours, "
                f"got {expiry_hours}"
            )
        return created_at + timedelta(hours=expiry_hours)
