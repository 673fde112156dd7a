"""
Redis Repository Base Class

Provides JSON storage, Lua-scripted atomic operations and distributed
locking for Redis-backed repositories. Redis errors propagate to the
concrete repositories, which translate them into domain errors.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import LockError

logger = logging.getLogger(__name__)


class LockNotAcquiredError(LockError):
    """Raised when a distributed lock could not be acquired in time."""
    pass


class RedisRepository:
    """Base Redis repository with atomic operations and distributed locking."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = ""):
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _make_key(self, key: str) -> str:
        """Create a prefixed key for Redis storage."""
        return f"{self.key_prefix}:{key}" if self.key_prefix else key

    @staticmethod
    def _decode(value) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode('utf-8')
        return value

    def set_json(self, key: str, data: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        """
        Set JSON data with optional TTL.

        Args:
            key: Redis key (unprefixed)
            data: Dictionary to store as JSON
            ttl: Time to live in seconds

        Returns:
            True if successful
        """
        redis_key = self._make_key(key)
        json_data = json.dumps(data)
        if ttl:
            return bool(self.redis.setex(redis_key, ttl, json_data))
        return bool(self.redis.set(redis_key, json_data))

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Get JSON data from Redis.

        Returns:
            Dictionary if found, None otherwise
        """
        data = self.redis.get(self._make_key(key))
        if data is None:
            return None
        return json.loads(self._decode(data))

    def get_many_json(self, keys: List[str]) -> List[Optional[Dict[str, Any]]]:
        """Fetch several JSON values in one round trip, None for missing keys."""
        if not keys:
            return []
        values = self.redis.mget([self._make_key(key) for key in keys])
        return [json.loads(self._decode(value)) if value is not None else None for value in values]

    def get_string(self, key: str) -> Optional[str]:
        return self._decode(self.redis.get(self._make_key(key)))

    def delete(self, key: str) -> bool:
        """
        Delete a key from Redis.

        Returns:
            True if key was deleted, False if it didn't exist
        """
        return self.redis.delete(self._make_key(key)) > 0

    def exists(self, key: str) -> bool:
        """Check if a key exists in Redis."""
        return self.redis.exists(self._make_key(key)) > 0

    def run_script(self, script: str, keys: List[str], args: List[Any]):
        """
        Evaluate a Lua script atomically.

        Args:
            script: Lua source
            keys: Unprefixed keys passed as KEYS
            args: Values passed as ARGV

        Returns:
            The script's return value
        """
        redis_keys = [self._make_key(key) for key in keys]
        return self.redis.eval(script, len(redis_keys), *redis_keys, *args)

    @contextmanager
    def distributed_lock(self, lock_name: str, timeout: float = 10, blocking_timeout: Optional[float] = 5):
        """
        Distributed lock context manager using Redis.

        Args:
            lock_name: Name of the lock
            timeout: Lock lease in seconds
            blocking_timeout: How long to wait for acquisition; 0 for a
                single non-blocking attempt

        Yields:
            Lock object if acquired successfully

        Raises:
            LockNotAcquiredError: If the lock cannot be acquired
        """
        lock_key = self._make_key(f"lock:{lock_name}")
        lock = self.redis.lock(lock_key, timeout=timeout)

        if blocking_timeout == 0:
            acquired = lock.acquire(blocking=False)
        else:
            acquired = lock.acquire(blocking=True, blocking_timeout=blocking_timeout)
        if not acquired:
            raise LockNotAcquiredError(f"Could not acquire lock: {lock_name}")

        try:
            yield lock
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning(f"Lock {lock_name} expired before release")


class RedisConnectionManager:
    """Manages Redis connection with connection pooling."""

    def __init__(self, host: str = 'localhost', port: int = 6379, db: int = 0,
                 password: Optional[str] = None, max_connections: int = 20,
                 decode_responses: bool = False):
        self.connection_pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            max_connections=max_connections,
            decode_responses=decode_responses,
            retry_on_timeout=True,
            socket_keepalive=True,
        )
        self._client = None

    @property
    def client(self) -> redis.Redis:
        """Get Redis client instance with connection pooling."""
        if self._client is None:
            self._client = redis.Redis(connection_pool=self.connection_pool)
        return self._client

    def health_check(self) -> bool:
        """Check if Redis connection is healthy."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    def close(self):
        """Close the connection pool."""
        if self.connection_pool:
            self.connection_pool.disconnect()
