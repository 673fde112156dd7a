"""
Redis Anchor Ledger

Append-only anchor store kept in Redis. Every write becomes a transaction
with a monotonically increasing block number; the first transaction
anchoring a hash stays the anchor for that hash.
"""

import json
import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Optional

import redis

from ledgershare.domain.errors import LedgerError, LedgerRejectedError, LedgerUnavailableError
from ledgershare.domain.ledger.repositories import AnchorLedger
from ledgershare.domain.ledger.value_objects import Anchor, AnchorReceipt

from .redis_repository import RedisRepository

logger = logging.getLogger(__name__)

_HASH_PATTERN = re.compile(r"[a-f0-9]{64}")

# KEYS: height, transaction, hash anchor
# ARGV: anchor id, file hash, timestamp, uploader
_SUBMIT_SCRIPT = """
local block = redis.call('INCR', KEYS[1])
local tx = cjson.encode({
    anchor_id = ARGV[1],
    anchor_block = block,
    file_hash = ARGV[2],
    timestamp = ARGV[3],
    uploader = ARGV[4],
})
redis.call('SET', KEYS[2], tx)
redis.call('SETNX', KEYS[3], ARGV[1])
return block
"""


class RedisAnchorLedger(RedisRepository, AnchorLedger):
    """AnchorLedger implementation storing transactions in Redis."""

    HEIGHT_KEY = "height"

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "ledger"):
        super().__init__(redis_client, key_prefix)

    @staticmethod
    def _tx_key(anchor_id: str) -> str:
        return f"tx:{anchor_id}"

    @staticmethod
    def _hash_key(file_hash: str) -> str:
        return f"hash:{file_hash}"

    @staticmethod
    def _translate(error: redis.RedisError, operation: str) -> LedgerError:
        if isinstance(error, (redis.ConnectionError, redis.TimeoutError)):
            return LedgerUnavailableError(f"Ledger {operation} unavailable: {error}", original_error=error)
        return LedgerError(f"Ledger {operation} failed: {error}", original_error=error)

    @staticmethod
    def _to_anchor(data: dict) -> Anchor:
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return Anchor(
            file_hash=data["file_hash"],
            timestamp=timestamp,
            uploader=data["uploader"],
            anchor_id=data["anchor_id"],
            anchor_block=int(data["anchor_block"]),
        )

    def submit(self, file_hash: str, timestamp: datetime, uploader: str) -> AnchorReceipt:
        if not _HASH_PATTERN.fullmatch(file_hash or ""):
            raise LedgerRejectedError("File hash must be 32 bytes (64 hex characters)")

        anchor_id = "0x" + secrets.token_hex(32)
        try:
            block = self.run_script(
                _SUBMIT_SCRIPT,
                [self.HEIGHT_KEY, self._tx_key(anchor_id), self._hash_key(file_hash)],
                [anchor_id, file_hash, timestamp.isoformat(), uploader],
            )
        except redis.RedisError as e:
            raise self._translate(e, "submit")

        logger.debug(f"Ledger transaction {anchor_id} at block {block}")
        return AnchorReceipt(anchor_id=anchor_id, anchor_block=int(block))

    def lookup(self, file_hash: str) -> Optional[Anchor]:
        try:
            anchor_id = self.get_string(self._hash_key(file_hash))
            if anchor_id is None:
                return None
            data = self.get_json(self._tx_key(anchor_id))
        except redis.RedisError as e:
            raise self._translate(e, "lookup")
        return self._to_anchor(data) if data else None

    def lookup_transaction(self, anchor_id: str) -> Optional[Anchor]:
        try:
            data = self.get_json(self._tx_key(anchor_id))
        except redis.RedisError as e:
            raise self._translate(e, "transaction lookup")
        return self._to_anchor(data) if data else None

    def anchor_count(self) -> int:
        try:
            height = self.get_string(self.HEIGHT_KEY)
        except redis.RedisError as e:
            raise self._translate(e, "height")
        return int(height) if height else 0
