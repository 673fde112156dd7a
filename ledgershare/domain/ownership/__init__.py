"""Ownership Domain"""

from .services import OwnershipVerifier, SignatureRecoverer, UnconfiguredSignatureRecoverer

__all__ = [
    "OwnershipVerifier",
    "SignatureRecoverer",
    "UnconfiguredSignatureRecoverer",
]
