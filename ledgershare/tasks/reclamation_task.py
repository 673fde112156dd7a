"""
Reclamation Task

Celery beat task running one reclamation sweep. The scheduler's
single-flight guards apply, so a beat tick while another process is
sweeping is a no-op.
"""

import logging

from flask import current_app

from ledgershare.application.reclamation_scheduler import ReclamationScheduler
from ledgershare.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="tasks.reclaim_expired_files")
def reclaim_expired_files(self):
    """
    Run one reclamation sweep.

    Returns:
        dict: Sweep report, or a skipped/failed marker. Never raises.
    """
    logger.info("Starting reclamation task")

    try:
        scheduler = current_app.container.resolve(ReclamationScheduler)
        report = scheduler.run_sweep()
    except Exception as e:
        logger.error(f"Reclamation task failed: {e}", exc_info=True)
        return {"status": "failed", "errors": [str(e)]}

    if report is None:
        logger.info("Another sweep is in progress, skipping")
        return {"status": "skipped"}

    result = report.to_dict()
    result["status"] = "completed" if not report.errors else "completed_with_errors"
    return result
