"""Infrastructure layer for Redis, local storage and external services."""

from .local_blob_storage_repository import LocalBlobStorageRepository
from .redis_anchor_ledger import RedisAnchorLedger
from .redis_file_record_repository import RedisFileRecordRepository
from .redis_repository import RedisConnectionManager, RedisRepository
from .redis_sweep_guard import RedisSweepGuard
from .signature_recoverer_factory import SignatureRecovererFactory

__all__ = [
    'LocalBlobStorageRepository',
    'RedisAnchorLedger',
    'RedisConnectionManager',
    'RedisFileRecordRepository',
    'RedisRepository',
    'RedisSweepGuard',
    'SignatureRecovererFactory',
]
