"""
Redis File Record Repository

Record store backed by Redis. Each record is a JSON document; the access
token maps to the record id through a unique key, and sorted sets index
active records by expiry time and remaining views for the sweep queries.
Every mutation of ``views_remaining`` or ``status`` is a single Lua script
so it is atomic against other clients.
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

import redis

from ledgershare.domain.errors import DuplicateTokenError, StoreBusyError, StoreError
from ledgershare.domain.file_records.entities import FileRecord, utc_now
from ledgershare.domain.file_records.repositories import FileRecordRepository
from ledgershare.domain.file_records.value_objects import FileStatus

from .redis_repository import LockNotAcquiredError, RedisRepository

logger = logging.getLogger(__name__)

EXPIRY_INDEX = "file_records:active_expiry"
VIEWS_INDEX = "file_records:active_views"
EXPIRED_SET = "file_records:expired"

# KEYS: record, token, expiry index, views index, expired set
# ARGV: record json, id, expiry score, views remaining, status
_INSERT_SCRIPT = """
if redis.call('EXISTS', KEYS[2]) == 1 then
    return 0
end
redis.call('SET', KEYS[1], ARGV[1])
redis.call('SET', KEYS[2], ARGV[2])
if ARGV[5] == 'active' then
    redis.call('ZADD', KEYS[3], ARGV[3], ARGV[2])
    redis.call('ZADD', KEYS[4], ARGV[4], ARGV[2])
elseif ARGV[5] == 'expired' then
    redis.call('SADD', KEYS[5], ARGV[2])
end
return 1
"""

# KEYS: record, views index
# ARGV: updated_at, id
# Returns the new count, -1 when not decrementable, -2 when missing
_DECREMENT_SCRIPT = """
local data = redis.call('GET', KEYS[1])
if not data then
    return -2
end
local record = cjson.decode(data)
local remaining = tonumber(record['views_remaining'])
if record['status'] ~= 'active' or remaining <= 0 then
    return -1
end
remaining = remaining - 1
record['views_remaining'] = remaining
record['updated_at'] = ARGV[1]
redis.call('SET', KEYS[1], cjson.encode(record))
redis.call('ZADD', KEYS[2], remaining, ARGV[2])
return remaining
"""

# KEYS: record, expiry index, views index, expired set
# ARGV: target status, updated_at, id
_TRANSITION_SCRIPT = """
local ranks = {active = 0, expired = 1, deleted = 2}
local data = redis.call('GET', KEYS[1])
if not data then
    return 0
end
local record = cjson.decode(data)
if ranks[ARGV[1]] <= ranks[record['status']] then
    return 0
end
record['status'] = ARGV[1]
record['updated_at'] = ARGV[2]
redis.call('SET', KEYS[1], cjson.encode(record))
redis.call('ZREM', KEYS[2], ARGV[3])
redis.call('ZREM', KEYS[3], ARGV[3])
if ARGV[1] == 'expired' then
    redis.call('SADD', KEYS[4], ARGV[3])
else
    redis.call('SREM', KEYS[4], ARGV[3])
end
return 1
"""


class RedisFileRecordRepository(RedisRepository, FileRecordRepository):
    """Redis implementation of the record store."""

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "",
        lock_timeout: float = 10,
        default_lock_wait: float = 2,
    ):
        """
        Initialize the store.

        Args:
            redis_client: Redis client
            key_prefix: Prefix for every key
            lock_timeout: Lease of a record lock in seconds
            default_lock_wait: Bounded wait for a record lock in seconds
        """
        super().__init__(redis_client, key_prefix)
        self.lock_timeout = lock_timeout
        self.default_lock_wait = default_lock_wait

    @staticmethod
    def _record_key(record_id: str) -> str:
        return f"file_record:{record_id}"

    @staticmethod
    def _token_key(access_token: str) -> str:
        return f"file_record_token:{access_token}"

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as e:
            logger.error(f"Record store {operation} failed: {e}")
            raise StoreError(f"Record store {operation} failed: {e}", original_error=e)

    def insert(self, record: FileRecord) -> None:
        """Persist a new record, enforcing a unique access token."""
        with self._store_errors("insert"):
            inserted = self.run_script(
                _INSERT_SCRIPT,
                [
                    self._record_key(record.id),
                    self._token_key(record.access_token),
                    EXPIRY_INDEX,
                    VIEWS_INDEX,
                    EXPIRED_SET,
                ],
                [
                    json.dumps(record.to_dict()),
                    record.id,
                    record.expiry_time.timestamp(),
                    record.views_remaining,
                    record.status.value,
                ],
            )
        if not inserted:
            raise DuplicateTokenError(f"Access token already assigned for record {record.id}")
        logger.debug(f"Inserted record {record.id}")

    def get(self, record_id: str) -> Optional[FileRecord]:
        with self._store_errors("get"):
            data = self.get_json(self._record_key(record_id))
        return FileRecord.from_dict(data) if data else None

    def get_by_token(self, access_token: str) -> Optional[FileRecord]:
        with self._store_errors("token lookup"):
            record_id = self.get_string(self._token_key(access_token))
        if record_id is None:
            return None
        return self.get(record_id)

    def token_exists(self, access_token: str) -> bool:
        with self._store_errors("token check"):
            return self.exists(self._token_key(access_token))

    @contextmanager
    def lock(self, record_id: str, wait_seconds: Optional[float] = None):
        """
        Per-record distributed lock with a bounded wait.

        Raises:
            StoreBusyError: If the lock is held elsewhere past the wait
        """
        wait = self.default_lock_wait if wait_seconds is None else wait_seconds
        try:
            with self.distributed_lock(
                f"record:{record_id}", timeout=self.lock_timeout, blocking_timeout=wait
            ) as held:
                yield held
        except LockNotAcquiredError as e:
            raise StoreBusyError(f"Record {record_id} is locked", original_error=e)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            raise StoreError(f"Record lock for {record_id} failed: {e}", original_error=e)

    def decrement_views(self, record_id: str) -> Optional[int]:
        with self._store_errors("decrement"):
            result = int(self.run_script(
                _DECREMENT_SCRIPT,
                [self._record_key(record_id), VIEWS_INDEX],
                [utc_now().isoformat(), record_id],
            ))
        if result < 0:
            logger.debug(f"Record {record_id} not decrementable (code {result})")
            return None
        return result

    def transition_status(self, record_id: str, status: FileStatus) -> bool:
        with self._store_errors("status transition"):
            changed = self.run_script(
                _TRANSITION_SCRIPT,
                [self._record_key(record_id), EXPIRY_INDEX, VIEWS_INDEX, EXPIRED_SET],
                [status.value, utc_now().isoformat(), record_id],
            )
        return bool(changed)

    def _load_many(self, record_ids: List[str]) -> List[FileRecord]:
        keys = [self._record_key(record_id) for record_id in record_ids]
        return [FileRecord.from_dict(data) for data in self.get_many_json(keys) if data]

    def find_active_past_expiry(self, now: datetime) -> List[FileRecord]:
        with self._store_errors("expiry query"):
            ids = self.redis.zrangebyscore(
                self._make_key(EXPIRY_INDEX), "-inf", f"({now.timestamp()}"
            )
            records = self._load_many([self._decode(i) for i in ids])
        return [r for r in records if r.is_active() and r.expiry_time < now]

    def find_active_exhausted(self) -> List[FileRecord]:
        with self._store_errors("exhausted query"):
            ids = self.redis.zrangebyscore(self._make_key(VIEWS_INDEX), "-inf", 0)
            records = self._load_many([self._decode(i) for i in ids])
        return [r for r in records if r.is_active() and r.is_exhausted()]

    def find_marked_expired(self) -> List[FileRecord]:
        with self._store_errors("expired query"):
            ids = self.redis.smembers(self._make_key(EXPIRED_SET))
            records = self._load_many(sorted(self._decode(i) for i in ids))
        return [r for r in records if r.status is FileStatus.EXPIRED]

    def delete(self, record_id: str) -> bool:
        """Remove the row, its token mapping and every index entry."""
        with self._store_errors("delete"):
            data = self.get_json(self._record_key(record_id))
            if data is None:
                return False
            pipe = self.redis.pipeline(transaction=True)
            pipe.delete(self._make_key(self._record_key(record_id)))
            pipe.delete(self._make_key(self._token_key(data["access_token"])))
            pipe.zrem(self._make_key(EXPIRY_INDEX), record_id)
            pipe.zrem(self._make_key(VIEWS_INDEX), record_id)
            pipe.srem(self._make_key(EXPIRED_SET), record_id)
            removed = pipe.execute()[0]
        return removed > 0
