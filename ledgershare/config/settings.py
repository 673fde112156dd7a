"""
Application Settings

Plain configuration classes read from environment variables, one per
concern. Each is constructible with no arguments.
"""

import os

from .redis_config import RedisConfig


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class LifecycleConfig:
    """Record creation bounds and record lock settings."""

    def __init__(self):
        self.view_limit_min = int(os.getenv("VIEW_LIMIT_MIN", 1))
        self.view_limit_max = int(os.getenv("VIEW_LIMIT_MAX", 100))
        self.expiry_min_hours = float(os.getenv("EXPIRY_MIN_HOURS", 1))
        self.expiry_max_hours = float(os.getenv("EXPIRY_MAX_HOURS", 720))  # 30 days

        # Lease of a record lock, and how long a request waits for it
        self.record_lock_timeout = float(os.getenv("RECORD_LOCK_TIMEOUT_SECONDS", 10))
        self.record_lock_wait = float(os.getenv("RECORD_LOCK_WAIT_SECONDS", 2))

        self.store_max_attempts = int(os.getenv("STORE_MAX_ATTEMPTS", 3))
        self.store_retry_base_delay = float(os.getenv("STORE_RETRY_BASE_DELAY", 0.05))


class LedgerConfig:
    """Ledger retry settings."""

    def __init__(self):
        self.max_retries = int(os.getenv("LEDGER_MAX_RETRIES", 3))
        # Delays of 2s, 4s, ... between attempts
        self.retry_base_delay = float(os.getenv("LEDGER_RETRY_BASE_DELAY", 2.0))
        self.namespace = os.getenv("LEDGER_NAMESPACE", "ledger")


class SchedulerConfig:
    """Reclamation sweep settings."""

    def __init__(self):
        self.enabled = _env_bool("SCHEDULER_ENABLED", "true")
        self.interval_seconds = float(os.getenv("SWEEP_INTERVAL_SECONDS", 3600))
        self.sweep_on_startup = _env_bool("SWEEP_ON_STARTUP", "false")
        self.lock_timeout = float(os.getenv("SWEEP_LOCK_TIMEOUT_SECONDS", 900))


class StorageConfig:
    """Blob storage settings."""

    def __init__(self):
        self.blob_storage_path = os.getenv("BLOB_STORAGE_PATH", "/tmp/ledgershare/blobs")
        self.max_upload_bytes = int(os.getenv("MAX_UPLOAD_BYTES", 100 * 1024 * 1024))


class AppConfig:
    """Application configuration."""

    def __init__(self):
        self.api_version = os.getenv("API_VERSION", "v1")
        self.flask_env = os.getenv("FLASK_ENV", "development")
        self.is_production = self.flask_env == "production"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # module:ClassName of the SignatureRecoverer, unset disables owner deletion
        self.signature_recoverer = os.getenv("SIGNATURE_RECOVERER")

        self.redis = RedisConfig()
        self.lifecycle = LifecycleConfig()
        self.ledger = LedgerConfig()
        self.scheduler = SchedulerConfig()
        self.storage = StorageConfig()
