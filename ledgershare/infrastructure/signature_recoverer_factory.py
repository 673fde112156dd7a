"""
Signature Recoverer Factory

Builds the SignatureRecoverer the ownership checks delegate to. The
recovery primitive is external; it is plugged in by import path.
"""

import importlib
import logging
from typing import Optional

from ledgershare.domain.ownership.services import (
    SignatureRecoverer,
    UnconfiguredSignatureRecoverer,
)

logger = logging.getLogger(__name__)


class SignatureRecovererFactory:
    """Factory resolving a SignatureRecoverer from a ``module:ClassName`` path."""

    @staticmethod
    def create(import_path: Optional[str]) -> SignatureRecoverer:
        """
        Create the configured recoverer.

        Args:
            import_path: ``package.module:ClassName``; None or empty selects a
                recoverer that reports ownership checks as unavailable

        Returns:
            SignatureRecoverer instance

        Raises:
            RuntimeError: If the path cannot be imported or does not name a
                SignatureRecoverer
        """
        if not import_path:
            logger.warning("No signature recoverer configured, owner deletion is disabled")
            return UnconfiguredSignatureRecoverer()

        module_name, _, class_name = import_path.partition(":")
        if not module_name or not class_name:
            raise RuntimeError(
                f"Signature recoverer must be given as 'module:ClassName', got {import_path!r}"
            )

        try:
            recoverer_class = getattr(importlib.import_module(module_name), class_name)
        except (ImportError, AttributeError) as e:
            raise RuntimeError(f"Failed to load signature recoverer {import_path}: {e}") from e

        if not (isinstance(recoverer_class, type) and issubclass(recoverer_class, SignatureRecoverer)):
            raise RuntimeError(f"{import_path} is not a SignatureRecoverer")

        logger.info(f"Using signature recoverer {import_path}")
        return recoverer_class()
