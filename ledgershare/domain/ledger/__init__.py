"""
Ledger Domain

Anchoring content hashes on the external append-only ledger.
"""

from .repositories import AnchorLedger
from .services import LedgerAnchorClient, is_retryable_ledger_error
from .value_objects import Anchor, AnchorReceipt, VerificationResult

__all__ = [
    "Anchor",
    "AnchorLedger",
    "AnchorReceipt",
    "LedgerAnchorClient",
    "VerificationResult",
    "is_retryable_ledger_error",
]
