"""
Celery Configuration

Configures Celery with Flask integration, Redis broker, and task routing.
"""

import os

from celery import Celery
from kombu import Queue


class CeleryConfig:
    """Celery configuration settings."""

    # Broker settings
    broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")

    # Task settings
    task_serializer = "json"
    accept_content = ["json"]
    result_serializer = "json"
    timezone = "UTC"
    enable_utc = True

    # Worker settings
    worker_prefetch_multiplier = 1
    task_acks_late = True

    # Task routing
    task_routes = {
        "tasks.reclaim_expired_files": {"queue": "cleanup_queue"},
    }

    # Queue definitions
    task_default_queue = "default"
    task_queues = (
        Queue("default", routing_key="default"),
        Queue("cleanup_queue", routing_key="cleanup"),
    )

    # Beat schedule for periodic tasks
    beat_schedule = {
        "reclaim-expired-files": {
            "task": "tasks.reclaim_expired_files",
            "schedule": float(os.getenv("SWEEP_INTERVAL_SECONDS", 3600)),
        },
    }

    # A sweep is bounded by the sweep guard lease
    task_soft_time_limit = int(os.getenv("CELERY_TASK_SOFT_TIME_LIMIT", 840))
    task_time_limit = int(os.getenv("CELERY_TASK_TIME_LIMIT", 900))

    result_expires = 3600  # 1 hour

    worker_concurrency = int(os.getenv("CELERY_WORKER_CONCURRENCY", 2))


def make_celery(app):
    """
    Create Celery instance with Flask app context.

    Args:
        app: Flask application instance

    Returns:
        Configured Celery instance
    """
    celery = Celery(
        app.import_name,
        backend=CeleryConfig.result_backend,
        broker=CeleryConfig.broker_url,
    )

    celery.config_from_object(CeleryConfig)

    class ContextTask(celery.Task):
        """Make celery tasks work with Flask app context."""

        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask
    return celery
