"""Configuration for Redis, Celery, logging and the application services."""

from .logging_config import configure_logging
from .redis_config import RedisConfig
from .settings import AppConfig, LedgerConfig, LifecycleConfig, SchedulerConfig, StorageConfig

__all__ = [
    "AppConfig",
    "LedgerConfig",
    "LifecycleConfig",
    "RedisConfig",
    "SchedulerConfig",
    "StorageConfig",
    "configure_logging",
]
