"""
Celery Application Instance

Creates the Celery app instance for use by workers and beat scheduler.
Uses the app factory so the task sees the same dependency container as
the web process. Workers never run the in-process sweep ticker; beat
drives sweeps instead.
"""

from ledgershare.app_factory import create_app

flask_app = create_app(start_scheduler=False)

celery_app = flask_app.celery

# Task modules are imported by name when the worker starts, once
# `celery_app` exists for the task decorators.
celery_app.conf.imports = ("ledgershare.tasks.reclamation_task",)
