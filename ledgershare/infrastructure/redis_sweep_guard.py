"""
Redis Sweep Guard

Cross-process single-flight guard for reclamation sweeps, so the web
process and Celery workers never sweep at the same time.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

import redis
from redis.exceptions import LockError

from .redis_repository import RedisRepository

logger = logging.getLogger(__name__)


class RedisSweepGuard(RedisRepository):
    """Non-blocking Redis lock with a lease, held for the length of one sweep."""

    LOCK_NAME = "reclamation_sweep"

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "", lease_seconds: float = 900):
        """
        Args:
            redis_client: Redis client
            key_prefix: Prefix for the lock key
            lease_seconds: Lock expiry, bounds how long a crashed sweeper blocks others
        """
        super().__init__(redis_client, key_prefix)
        self.lease_seconds = lease_seconds

    @property
    def lock_key(self) -> str:
        return self._make_key(f"lock:{self.LOCK_NAME}")

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """
        Try to take the guard without waiting.

        Yields:
            True if this caller holds the guard, False if another sweep does
        """
        lock = self.redis.lock(self.lock_key, timeout=self.lease_seconds)
        if not lock.acquire(blocking=False):
            logger.info("Another process is sweeping, skipping")
            yield False
            return

        try:
            yield True
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning("Sweep guard lease expired before the sweep finished")

    def is_held(self) -> bool:
        return self.redis.exists(self.lock_key) > 0
