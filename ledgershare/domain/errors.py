"""
Error Handling Module

Defines domain exceptions and error categories for the application.
Domain exceptions are pure and have no external dependencies.
Every domain exception carries an ErrorCategory so the API layer can
translate it into a structured response without inspecting messages.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Error category enumeration for structured error handling."""

    INVALID_REQUEST = "invalid_request"
    INVALID_ACCESS_TOKEN = "invalid_access_token"
    INVALID_WALLET_ADDRESS = "invalid_wallet_address"
    INVALID_FILE_HASH = "invalid_file_hash"
    MISSING_AUTH_HEADERS = "missing_auth_headers"
    FILE_NOT_FOUND = "file_not_found"
    FILE_NOT_FOUND_ON_DISK = "file_not_found_on_disk"
    FILE_NOT_ACTIVE = "file_not_active"
    FILE_EXPIRED = "file_expired"
    VIEW_LIMIT_REACHED = "view_limit_reached"
    ALREADY_DELETED = "already_deleted"
    SIGNATURE_VERIFICATION_FAILED = "signature_verification_failed"
    UNAUTHORIZED = "unauthorized"
    OWNERSHIP_UNAVAILABLE = "ownership_unavailable"
    STORE_BUSY = "store_busy"
    LEDGER_UNAVAILABLE = "ledger_unavailable"
    LEDGER_REJECTED = "ledger_rejected"
    FILE_TOO_LARGE = "file_too_large"
    SYSTEM_ERROR = "system_error"


# User-friendly error messages with actionable guidance
ERROR_MESSAGES: Dict[ErrorCategory, Dict[str, str]] = {
    ErrorCategory.INVALID_REQUEST: {
        "title": "Invalid Request",
        "message": "The request is missing required information or contains invalid data.",
        "action": "Please check your input and try again.",
    },
    ErrorCategory.INVALID_ACCESS_TOKEN: {
        "title": "Invalid Access Token",
        "message": "The share link is malformed.",
        "action": "Copy the full link from the sender and try again.",
    },
    ErrorCategory.INVALID_WALLET_ADDRESS: {
        "title": "Invalid Wallet Address",
        "message": "The wallet address must be 0x followed by 40 hexadecimal characters.",
        "action": "Check the connected wallet address and try again.",
    },
    ErrorCategory.INVALID_FILE_HASH: {
        "title": "Invalid File Hash",
        "message": "The file hash must be a 64 character hexadecimal SHA-256 digest.",
        "action": "Recompute the SHA-256 hash of the file and try again.",
    },
    ErrorCategory.MISSING_AUTH_HEADERS: {
        "title": "Authentication Required",
        "message": "This operation requires a wallet address, a message and its signature.",
        "action": "Sign the request with the wallet that uploaded the file.",
    },
    ErrorCategory.FILE_NOT_FOUND: {
        "title": "File Not Found",
        "message": "The requested file could not be found.",
        "action": "Check the link or ask the sender for a new one.",
    },
    ErrorCategory.FILE_NOT_FOUND_ON_DISK: {
        "title": "File Not Found",
        "message": "The file contents are no longer available on the server.",
        "action": "Ask the sender to upload the file again.",
    },
    ErrorCategory.FILE_NOT_ACTIVE: {
        "title": "File No Longer Available",
        "message": "This file is no longer available for download.",
        "action": "Ask the sender to share the file again.",
    },
    ErrorCategory.FILE_EXPIRED: {
        "title": "File Expired",
        "message": "The share link has passed its expiry time.",
        "action": "Ask the sender to share the file again.",
    },
    ErrorCategory.VIEW_LIMIT_REACHED: {
        "title": "View Limit Reached",
        "message": "This file has been downloaded the maximum number of times.",
        "action": "Ask the sender to share the file again.",
    },
    ErrorCategory.ALREADY_DELETED: {
        "title": "Already Deleted",
        "message": "This file has already been deleted.",
        "action": "No further action is needed.",
    },
    ErrorCategory.SIGNATURE_VERIFICATION_FAILED: {
        "title": "Signature Verification Failed",
        "message": "The signature does not match the claimed wallet address.",
        "action": "Sign the message again with the claimed wallet.",
    },
    ErrorCategory.UNAUTHORIZED: {
        "title": "Not Allowed",
        "message": "You do not have permission to perform this action.",
        "action": "Only the wallet that uploaded the file can delete it.",
    },
    ErrorCategory.OWNERSHIP_UNAVAILABLE: {
        "title": "Ownership Verification Unavailable",
        "message": "Signature verification is not configured on this server.",
        "action": "Please try again later. If the problem persists, contact support.",
    },
    ErrorCategory.STORE_BUSY: {
        "title": "Server Busy",
        "message": "The file is being accessed by another request.",
        "action": "Please try again in a moment.",
    },
    ErrorCategory.LEDGER_UNAVAILABLE: {
        "title": "Ledger Unavailable",
        "message": "The verification ledger could not be reached.",
        "action": "Please try the upload again in a few minutes.",
    },
    ErrorCategory.LEDGER_REJECTED: {
        "title": "Ledger Rejected",
        "message": "The verification ledger rejected the anchoring request.",
        "action": "Check the file and wallet details before uploading again.",
    },
    ErrorCategory.FILE_TOO_LARGE: {
        "title": "File Too Large",
        "message": "The uploaded file exceeds the maximum allowed size.",
        "action": "Compress the file or split it into smaller parts.",
    },
    ErrorCategory.SYSTEM_ERROR: {
        "title": "System Error",
        "message": "An unexpected error occurred while processing your request.",
        "action": "Please try again later. If the problem persists, contact support.",
    },
}


HTTP_STATUS_BY_CATEGORY: Dict[ErrorCategory, int] = {
    ErrorCategory.INVALID_REQUEST: 400,
    ErrorCategory.INVALID_ACCESS_TOKEN: 400,
    ErrorCategory.INVALID_WALLET_ADDRESS: 400,
    ErrorCategory.INVALID_FILE_HASH: 400,
    ErrorCategory.MISSING_AUTH_HEADERS: 401,
    ErrorCategory.SIGNATURE_VERIFICATION_FAILED: 403,
    ErrorCategory.UNAUTHORIZED: 403,
    ErrorCategory.FILE_NOT_FOUND: 404,
    ErrorCategory.FILE_NOT_FOUND_ON_DISK: 404,
    ErrorCategory.FILE_NOT_ACTIVE: 410,
    ErrorCategory.FILE_EXPIRED: 410,
    ErrorCategory.VIEW_LIMIT_REACHED: 410,
    ErrorCategory.ALREADY_DELETED: 410,
    ErrorCategory.FILE_TOO_LARGE: 413,
    ErrorCategory.SYSTEM_ERROR: 500,
    ErrorCategory.OWNERSHIP_UNAVAILABLE: 503,
    ErrorCategory.STORE_BUSY: 503,
    ErrorCategory.LEDGER_UNAVAILABLE: 503,
    ErrorCategory.LEDGER_REJECTED: 502,
}


def status_code_for(category: ErrorCategory) -> int:
    """Return the HTTP status code used for an error category."""
    return HTTP_STATUS_BY_CATEGORY.get(category, 500)


# ============================================================================
# Domain Exceptions (Pure - No External Dependencies)
# ============================================================================

class DomainError(Exception):
    """
    Base exception for all domain errors.

    Domain exceptions are pure and have no external dependencies.
    They can optionally wrap original errors for context.

    Attributes:
        category: ErrorCategory used to build API responses
        retryable: True/False when the caller may (not) retry, None if unknown
    """

    category: ErrorCategory = ErrorCategory.SYSTEM_ERROR
    retryable: Optional[bool] = None

    def __init__(self, message: str, original_error: Exception = None):
        """
        Initialize domain error.

        Args:
            message: Error message
            original_error: Optional original exception that caused this error
        """
        super().__init__(message)
        self.original_error = original_error


class ValidationError(DomainError):
    """Raised when caller-supplied input is malformed. Caller-correctable."""

    category = ErrorCategory.INVALID_REQUEST


class InvalidAccessTokenError(ValidationError):
    """Raised when an access token is not 64 hexadecimal characters."""

    category = ErrorCategory.INVALID_ACCESS_TOKEN


class InvalidWalletAddressError(ValidationError):
    """Raised when a wallet address is not 0x + 40 hex characters."""

    category = ErrorCategory.INVALID_WALLET_ADDRESS


class InvalidFileHashError(ValidationError):
    """Raised when a file hash is not a 32 byte hex digest."""

    category = ErrorCategory.INVALID_FILE_HASH


class InvalidViewLimitError(ValidationError):
    pass


class InvalidExpiryError(ValidationError):
    pass


class FileTooLargeError(ValidationError):
    category = ErrorCategory.FILE_TOO_LARGE


class RecordNotFoundError(DomainError):
    """
    Raised when no record (or no stored blob) exists for a lookup.

    The category distinguishes a missing record (FILE_NOT_FOUND) from a
    record whose bytes vanished from storage (FILE_NOT_FOUND_ON_DISK).
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.FILE_NOT_FOUND,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error)
        self.category = category


class RecordGoneError(DomainError):
    """
    Raised when a record exists but can no longer be accessed.

    Terminal for the access attempt: never retried automatically.
    """

    retryable = False

    def __init__(self, message: str, category: ErrorCategory):
        super().__init__(message)
        self.category = category


class OwnershipError(DomainError):
    """Raised when a signature or ownership check fails. Terminal without new credentials."""

    retryable = False

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SIGNATURE_VERIFICATION_FAILED,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error)
        self.category = category


class OwnershipUnavailableError(DomainError):
    """Raised when no signature recovery backend is configured."""

    category = ErrorCategory.OWNERSHIP_UNAVAILABLE


class TokenGenerationError(DomainError):
    """
    Raised when a unique access token could not be produced.

    Never a normal outcome: it means the random source or the
    uniqueness check is broken.
    """


class StoreError(DomainError):
    """Raised when the record store fails."""


class StoreBusyError(StoreError):
    """Raised when a record lock could not be acquired within the bounded wait."""

    category = ErrorCategory.STORE_BUSY
    retryable = True


class DuplicateTokenError(StoreError):
    """Raised when inserting a record whose access token is already taken."""


class BlobStorageError(DomainError):
    """Raised when the blob storage backend fails to write or remove content."""


class LedgerError(DomainError):
    """Base class for failures talking to the external ledger."""

    category = ErrorCategory.LEDGER_UNAVAILABLE
    retryable = False


class LedgerUnavailableError(LedgerError):
    """Transient ledger failure (timeout, connectivity). Safe to retry."""

    retryable = True


class LedgerEstimationError(LedgerUnavailableError):
    """The ledger could not estimate the resources needed for a write."""


class LedgerRejectedError(LedgerError):
    """The ledger or the counterparty explicitly declined the write. Never retried."""

    category = ErrorCategory.LEDGER_REJECTED


# ============================================================================
# Application Layer Exceptions (Can have infrastructure concerns)
# ============================================================================

class ApplicationError(Exception):
    """
    Base application error with category and user-friendly messaging.

    This is an application-layer concern that bridges domain errors
    with user-facing error messages and HTTP responses.
    """

    def __init__(
        self,
        category: ErrorCategory,
        technical_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ):
        """
        Initialize application error.

        Args:
            category: Error category
            technical_message: Technical error details for logging
            context: Additional context information
            retryable: Whether the caller may retry the same request
        """
        self.category = category
        self.technical_message = technical_message or ""
        self.context = context or {}
        self.retryable = retryable

        # Get user-friendly message
        error_info = ERROR_MESSAGES.get(
            category, ERROR_MESSAGES[ErrorCategory.SYSTEM_ERROR]
        )
        self.title = error_info["title"]
        self.message = error_info["message"]
        self.action = error_info["action"]

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for API response.

        Returns:
            Dictionary with error information
        """
        payload = {
            "error": self.category.value,
            "code": self.category.name,
            "title": self.title,
            "message": self.message,
            "action": self.action,
        }
        if self.retryable is not None:
            payload["retryable"] = self.retryable
        return payload


def create_error_response(
    category: ErrorCategory,
    technical_message: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    status_code: Optional[int] = None,
    retryable: Optional[bool] = None,
) -> tuple[Dict[str, Any], int]:
    """
    Create a structured error response for API endpoints.

    Args:
        category: Error category
        technical_message: Technical error details for logging
        context: Additional context information
        status_code: HTTP status code, derived from the category when omitted
        retryable: Whether the caller may retry

    Returns:
        Tuple of (error_dict, status_code)
    """
    error = ApplicationError(category, technical_message, context, retryable)
    if status_code is None:
        status_code = status_code_for(category)
    return error.to_dict(), status_code


def error_response_for(error: DomainError) -> tuple[Dict[str, Any], int]:
    """Build the API response for a domain error from its category."""
    return create_error_response(
        error.category, str(error), retryable=error.retryable
    )
