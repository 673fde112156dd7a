"""
Ownership Services

Signature-based ownership checks. The domain never implements signature
cryptography; it only compares the address a recoverer returns against
the claimed and stored addresses.
"""

import logging
from abc import ABC, abstractmethod

from ..errors import ErrorCategory, OwnershipError, OwnershipUnavailableError
from ..file_records.value_objects import WalletAddress

logger = logging.getLogger(__name__)


class SignatureRecoverer(ABC):
    """External signature recovery primitive."""

    @abstractmethod
    def recover(self, message: str, signature: str) -> str:
        """
        Recover the address that signed ``message``.

        Returns:
            Signer address as ``0x`` + 40 hex characters

        Raises:
            Exception: On malformed signatures
        """
        pass


class UnconfiguredSignatureRecoverer(SignatureRecoverer):
    """Recoverer used when no backend is configured; every call fails."""

    def recover(self, message: str, signature: str) -> str:
        raise OwnershipUnavailableError("No signature recoverer is configured")


class OwnershipVerifier:
    """Domain service checking that a request was signed by the claimed wallet."""

    def __init__(self, recoverer: SignatureRecoverer):
        self.recoverer = recoverer

    def verify_signer(self, claimed: WalletAddress, message: str, signature: str) -> None:
        """
        Check that ``signature`` over ``message`` recovers to ``claimed``.

        Raises:
            OwnershipError: SIGNATURE_VERIFICATION_FAILED on mismatch or on
                signatures the recoverer cannot parse
            OwnershipUnavailableError: If no recoverer is configured
        """
        try:
            recovered = self.recoverer.recover(message, signature)
        except OwnershipUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Signature recovery failed for {claimed}: {e}")
            raise OwnershipError(
                "Signature could not be verified",
                ErrorCategory.SIGNATURE_VERIFICATION_FAILED,
                original_error=e,
            )

        if not claimed.matches(recovered or ""):
            logger.warning(f"Signature recovered to a different address than {claimed}")
            raise OwnershipError(
                "Signature does not match the claimed address",
                ErrorCategory.SIGNATURE_VERIFICATION_FAILED,
            )

    @staticmethod
    def verify_owner(claimed: WalletAddress, uploader_address: str) -> None:
        """
        Check that the claimed wallet uploaded the record.

        Raises:
            OwnershipError: UNAUTHORIZED when the addresses differ
        """
        if not claimed.matches(uploader_address):
            raise OwnershipError(
                "Only the uploader can delete this file",
                ErrorCategory.UNAUTHORIZED,
            )
