"""Scheduled catalog repairs."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.services.cleanup import CLEANUP_JOBS
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def run_cleanup_jobs(db: Session, job: Optional[str] = None) -> dict:
    """Run one named job, or all of them in CLEANUP_JOBS order."""
    if job is not None and job not in CLEANUP_JOBS:
        raise ValueError(f"Unknown cleanup job: {job}")
    names = [job] if job else list(CLEANUP_JOBS)
    results = {}
    for name in names:
        logger.info(f"Running cleanup job: {name}")
        results[name] = CLEANUP_JOBS[name](db)
    return results


@celery_app.task(bind=True, max_retries=3)
def run_cleanup(self, job: Optional[str] = None):
    db = SessionLocal()
    try:
        return {"status": "success", "jobs": run_cleanup_jobs(db, job)}
    except Exception as e:
        logger.error(f"Error in cleanup: {e}")
        self.retry(exc=e, countdown=60)
    finally:
        db.close()
