"""
Retry Policy

Reusable bounded-retry policy with exponential backoff.
Shared by every ledger operation and by the record store lock acquisition,
so retry decisions live in one place instead of inline loops.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _retry_everything(error: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with a doubling delay.

    The delay before attempt ``n + 1`` is ``base_delay * 2 ** (n - 1)``,
    so a base of 2 seconds waits 2s, 4s, 8s...

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        base_delay: Delay in seconds after the first failed attempt
        is_retryable: Predicate deciding whether an error may be retried
        sleep: Sleep function, injectable for tests
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    is_retryable: Callable[[BaseException], bool] = _retry_everything
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay cannot be negative, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        """Return the backoff delay after the given (1-based) failed attempt."""
        return self.base_delay * (2 ** (attempt - 1))

    def with_attempts(self, max_attempts: int) -> "RetryPolicy":
        """Return a copy of this policy with a different attempt bound."""
        return RetryPolicy(
            max_attempts=max_attempts,
            base_delay=self.base_delay,
            is_retryable=self.is_retryable,
            sleep=self.sleep,
        )

    def execute(
        self,
        operation: Callable[[], T],
        on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    ) -> T:
        """
        Run an operation, retrying retryable failures.

        Args:
            operation: Zero-argument callable to run
            on_retry: Optional callback(attempt, error, delay) invoked before each sleep

        Returns:
            The operation's result

        Raises:
            The last error raised by the operation when it is not retryable
            or when the attempt bound is exhausted.
        """
        attempt = 1
        while True:
            try:
                return operation()
            except Exception as error:
                if not self.is_retryable(error) or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.debug(
                    f"Attempt {attempt}/{self.max_attempts} failed ({error}); "
                    f"retrying in {delay:.2f}s"
                )
                if on_retry is not None:
                    on_retry(attempt, error, delay)
                self.sleep(delay)
                attempt += 1
