"""
Access Token Issuer

Generates high-entropy access tokens and guarantees their uniqueness
against the record store.
"""

import logging
import secrets
from typing import Callable

from ..errors import TokenGenerationError
from .value_objects import TOKEN_BYTES, AccessToken

logger = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 5


class TokenIssuer:
    """
    Domain service issuing access tokens.

    Tokens are 32 bytes from ``secrets`` rendered as 64 hex characters.
    """

    def __init__(
        self,
        max_attempts: int = MAX_GENERATION_ATTEMPTS,
        random_hex: Callable[[int], str] = secrets.token_hex,
    ):
        """
        Initialize the issuer.

        Args:
            max_attempts: Bound on uniqueness retries
            random_hex: Source of random hex strings, injectable for tests
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self._max_attempts = max_attempts
        self._random_hex = random_hex

    def generate(self) -> str:
        """Return a new random 64 hex character token."""
        return self._random_hex(TOKEN_BYTES)

    def generate_unique(self, exists: Callable[[str], bool]) -> str:
        """
        Generate a token the store has not assigned yet.

        Args:
            exists: Predicate returning True when a token is already taken

        Returns:
            Unused token

        Raises:
            TokenGenerationError: If every attempt collided. This means the
                random source or the uniqueness check is broken.
        """
        for attempt in range(1, self._max_attempts + 1):
            token = self.generate()
            if not exists(token):
                return token
            logger.warning(
                f"Access token collision on attempt {attempt}/{self._max_attempts}"
            )

        logger.critical(
            f"Failed to generate a unique access token after {self._max_attempts} attempts"
        )
        raise TokenGenerationError(
            f"Failed to generate a unique access token after {self._max_attempts} attempts"
        )

    @staticmethod
    def validate(token) -> bool:
        """Pure format check: 64 hexadecimal characters."""
        return AccessToken.is_valid(token)
