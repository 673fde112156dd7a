"""
Application Factory

Creates and configures the Flask application with all dependencies.
A prebuilt DependencyContainer can be passed in so tests run without
Redis or Celery.
"""

import atexit
import logging
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from ledgershare.application.dependency_container import DependencyContainer
from ledgershare.application.event_publisher import EventPublisher
from ledgershare.application.file_share_service import FileShareService
from ledgershare.application.reclamation_scheduler import ReclamationScheduler
from ledgershare.config.celery_config import make_celery
from ledgershare.config.logging_config import configure_logging
from ledgershare.config.redis_config import get_redis_client, init_redis, redis_health_check
from ledgershare.config.settings import AppConfig
from ledgershare.domain.file_records.lifecycle import (
    FileLifecycleService,
    is_retryable_store_error,
)
from ledgershare.domain.file_records.repositories import FileRecordRepository
from ledgershare.domain.file_records.storage_repository import IBlobStorageRepository
from ledgershare.domain.file_records.token_issuer import TokenIssuer
from ledgershare.domain.file_records.value_objects import ExpiryWindow
from ledgershare.domain.ledger.repositories import AnchorLedger
from ledgershare.domain.ledger.services import LedgerAnchorClient
from ledgershare.domain.ownership.services import OwnershipVerifier, SignatureRecoverer
from ledgershare.domain.retry_policy import RetryPolicy
from ledgershare.infrastructure.local_blob_storage_repository import LocalBlobStorageRepository
from ledgershare.infrastructure.redis_anchor_ledger import RedisAnchorLedger
from ledgershare.infrastructure.redis_file_record_repository import RedisFileRecordRepository
from ledgershare.infrastructure.redis_sweep_guard import RedisSweepGuard
from ledgershare.infrastructure.signature_recoverer_factory import SignatureRecovererFactory

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 30.0


def create_app(
    config: Optional[AppConfig] = None,
    container: Optional[DependencyContainer] = None,
    start_scheduler: Optional[bool] = None,
) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config: Application configuration, uses default if None
        container: Prebuilt container; when given, Redis and Celery are not initialized
        start_scheduler: Start the in-process sweep ticker, defaults to the config.
            A started scheduler is stopped at interpreter exit.

    Returns:
        Configured Flask application
    """
    if config is None:
        config = AppConfig()

    configure_logging(config.log_level)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.storage.max_upload_bytes
    app.config["RESTX_MASK_SWAGGER"] = False

    CORS(
        app,
        resources={
            r"/*": {
                "origins": "*",
                "methods": ["GET", "POST", "DELETE", "OPTIONS"],
                "allow_headers": [
                    "Content-Type",
                    "X-Wallet-Address",
                    "X-Signature",
                    "X-Message",
                ],
                "expose_headers": ["Content-Disposition", "X-Views-Remaining"],
                "max_age": 3600,
            }
        },
    )

    if container is None:
        _initialize_infrastructure(app)
        container = _initialize_services(config)
    else:
        app.celery = None
    app.container = container

    if start_scheduler is None:
        start_scheduler = config.scheduler.enabled
    if start_scheduler and container.is_registered(ReclamationScheduler):
        container.resolve(ReclamationScheduler).start()
        atexit.register(container.shutdown, SHUTDOWN_TIMEOUT_SECONDS)

    _register_blueprints(app, config)
    _register_health_endpoint(app)

    return app


def _initialize_infrastructure(app: Flask) -> None:
    """
    Initialize infrastructure components (Redis, Celery).

    Args:
        app: Flask application
    """
    init_redis()
    logger.info("Redis initialized")

    try:
        app.celery = make_celery(app)
        logger.info("Celery initialized")
    except Exception as e:
        logger.warning(f"Could not initialize Celery: {e}")
        app.celery = None


def _initialize_services(config: AppConfig) -> DependencyContainer:
    """
    Build the dependency container.

    Infrastructure adapters are registered under their domain interfaces,
    then the domain and application services built on top of them.

    Args:
        config: Application configuration

    Returns:
        Populated DependencyContainer
    """
    container = DependencyContainer()
    redis_client = get_redis_client()
    prefix = config.redis.key_prefix

    event_publisher = EventPublisher()
    container.wire_event_handlers(event_publisher)
    container.register_singleton(EventPublisher, event_publisher)

    # Infrastructure adapters
    records = RedisFileRecordRepository(
        redis_client,
        key_prefix=prefix,
        lock_timeout=config.lifecycle.record_lock_timeout,
        default_lock_wait=config.lifecycle.record_lock_wait,
    )
    ledger_prefix = f"{prefix}:{config.ledger.namespace}" if prefix else config.ledger.namespace
    ledger = RedisAnchorLedger(redis_client, key_prefix=ledger_prefix)
    storage = LocalBlobStorageRepository(config.storage.blob_storage_path)
    recoverer = SignatureRecovererFactory.create(config.signature_recoverer)

    container.register_singleton(FileRecordRepository, records)
    container.register_singleton(AnchorLedger, ledger)
    container.register_singleton(IBlobStorageRepository, storage)
    container.register_singleton(SignatureRecoverer, recoverer)

    # Domain services
    ownership = OwnershipVerifier(recoverer)
    ledger_client = LedgerAnchorClient(
        ledger,
        max_retries=config.ledger.max_retries,
        base_delay=config.ledger.retry_base_delay,
    )
    lifecycle = FileLifecycleService(
        records,
        storage,
        ownership,
        lock_wait_seconds=config.lifecycle.record_lock_wait,
        store_retry=RetryPolicy(
            max_attempts=config.lifecycle.store_max_attempts,
            base_delay=config.lifecycle.store_retry_base_delay,
            is_retryable=is_retryable_store_error,
        ),
        event_publisher=event_publisher,
    )

    container.register_singleton(OwnershipVerifier, ownership)
    container.register_singleton(LedgerAnchorClient, ledger_client)
    container.register_singleton(FileLifecycleService, lifecycle)

    # Application services
    file_share_service = FileShareService(
        lifecycle,
        records,
        storage,
        ledger_client,
        token_issuer=TokenIssuer(),
        expiry_window=ExpiryWindow(
            config.lifecycle.expiry_min_hours, config.lifecycle.expiry_max_hours
        ),
        view_limit_min=config.lifecycle.view_limit_min,
        view_limit_max=config.lifecycle.view_limit_max,
        max_upload_bytes=config.storage.max_upload_bytes,
        event_publisher=event_publisher,
    )
    scheduler = ReclamationScheduler(
        records,
        storage,
        interval_seconds=config.scheduler.interval_seconds,
        guard=RedisSweepGuard(
            redis_client, key_prefix=prefix, lease_seconds=config.scheduler.lock_timeout
        ),
        event_publisher=event_publisher,
        run_on_start=config.scheduler.sweep_on_startup,
    )

    container.register_singleton(FileShareService, file_share_service)
    container.register_singleton(ReclamationScheduler, scheduler)

    logger.info(f"Application services initialized ({len(container)} services)")
    return container


def _register_blueprints(app: Flask, config: AppConfig) -> None:
    """
    Register API blueprints.

    Args:
        app: Flask application
        config: Application configuration
    """
    from ledgershare.api.v1 import create_api_blueprint

    app.register_blueprint(create_api_blueprint(config.api_version))
    logger.info(
        f"API {config.api_version} registered at /api/{config.api_version} "
        f"with Swagger UI at /api/{config.api_version}/docs"
    )


def _get_health_status(app: Flask) -> tuple[dict, int]:
    """
    Get health status of all system components.

    Checks Redis, the reclamation scheduler and the anchor ledger.

    Args:
        app: Flask application instance

    Returns:
        Tuple of (health_status_dict, http_status_code)
    """
    health_status = {
        "status": "ok",
        "redis": "unknown",
        "scheduler": "unknown",
        "ledger": "unknown",
    }

    try:
        if redis_health_check():
            health_status["redis"] = "connected"
        else:
            health_status["redis"] = "disconnected"
            health_status["status"] = "degraded"
    except Exception as e:
        health_status["redis"] = f"error: {e}"
        health_status["status"] = "degraded"

    container = app.container
    scheduler = container.try_resolve(ReclamationScheduler)
    if scheduler is None:
        health_status["scheduler"] = "not_configured"
    else:
        health_status["scheduler"] = {
            "running": scheduler.is_running,
            "sweep_in_progress": scheduler.sweep_in_progress,
            "last_sweep": scheduler.last_report.to_dict() if scheduler.last_report else None,
        }

    ledger = container.try_resolve(AnchorLedger)
    if ledger is None:
        health_status["ledger"] = "not_configured"
    else:
        try:
            health_status["ledger"] = {"anchors": ledger.anchor_count()}
        except Exception as e:
            health_status["ledger"] = f"error: {e}"
            health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code


def _register_health_endpoint(app: Flask) -> None:
    """
    Register health check endpoint.

    Args:
        app: Flask application
    """

    @app.route("/health", methods=["GET"])
    def health():
        """Overall health of the application and its dependencies."""
        health_status, status_code = _get_health_status(app)
        return jsonify(health_status), status_code

