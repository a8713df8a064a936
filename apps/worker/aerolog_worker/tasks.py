"""Celery tasks for the recurring compliance jobs."""

import logging
from dataclasses import asdict
from typing import Optional

from celery import Task
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from aerolog_core.errors import ExternalUnavailableError, TransientError
from aerolog_core.jobs.budget import RunBudget
from aerolog_core.jobs.context import build_jobs
from aerolog_core.settings import get_settings
from aerolog_core.utils.metrics import job_runs_total
from aerolog_worker.celery_app import celery_app
from aerolog_worker.db import get_db
from aerolog_worker.retry import sync_retry_countdown

settings = get_settings()
logger = logging.getLogger(__name__)

# Business errors are not listed and never retried
JOB_RETRY_POLICY = dict(
    autoretry_for=(TransientError, OperationalError),
    max_retries=settings.job_max_retries,
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
)


class DatabaseTask(Task):
    """Task with database session."""

    _db: Optional[Session] = None

    @property
    def db(self) -> Session:
        """Get database session."""
        if self._db is None:
            self._db = next(get_db())
        return self._db

    def after_return(self, *args, **kwargs):
        """Close database session after task."""
        if self._db:
            self._db.close()
            self._db = None


class ComplianceTask(DatabaseTask):
    """Job task; a run that exhausts its retries is abandoned until the next schedule."""

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        job_runs_total.labels(job=self.name, status="retry").inc()
        if self._db:
            self._db.rollback()

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        job_runs_total.labels(job=self.name, status="failed").inc()
        logger.critical(
            f"Job {self.name} fatal for this run: {exc}",
            extra={"task": self.name, "task_id": task_id, "retries": self.request.retries},
        )

    def on_success(self, retval, task_id, args, kwargs):
        job_runs_total.labels(job=self.name, status="success").inc()


def _budget() -> RunBudget:
    return RunBudget(settings.job_time_budget_seconds)


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def deadline_sweep(self):
    """Hourly deadline sweep with overdue escalation."""
    return build_jobs(self.db).deadlines.run_hourly(budget=_budget())


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def notify_near_deadline(self):
    return {"sent": build_jobs(self.db).deadlines.notify_near_deadline(budget=_budget())}


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def daily_compliance_report(self):
    return build_jobs(self.db).deadlines.daily_report()


def _sync_with_retry(task, run):
    try:
        result = run(build_jobs(task.db).sync)
    except (ExternalUnavailableError, TransientError) as e:
        countdown = sync_retry_countdown(task.request.retries, settings.sync_retry_delays)
        logger.warning(
            f"{task.name} failed ({e.kind}), retrying in {countdown}s",
            extra={"task": task.name, "retries": task.request.retries},
        )
        raise task.retry(exc=e, countdown=countdown)
    return asdict(result)


@celery_app.task(base=ComplianceTask, bind=True, max_retries=settings.sync_job_max_retries)
def sync_pending(self):
    """Submit completed records to the regulator."""
    return _sync_with_retry(self, lambda job: job.sync_pending(_budget()))


@celery_app.task(base=ComplianceTask, bind=True, max_retries=settings.sync_job_max_retries)
def reprocess_failed_sync(self):
    return _sync_with_retry(self, lambda job: job.reprocess_failed(_budget()))


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def check_connectivity(self):
    return build_jobs(self.db).sync.check_connectivity()


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def daily_sync_report(self):
    return build_jobs(self.db).sync.sync_report()


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def cache_evict(self):
    return {"evicted": build_jobs(self.db).cache.evict()}


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def cache_preheat(self):
    return build_jobs(self.db).cache.preheat(budget=_budget())


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def cache_performance_report(self):
    return build_jobs(self.db).cache.performance_report()


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def cache_integrity_check(self):
    """Weekly sample check; inconsistent entries are rebuilt."""
    return build_jobs(self.db).cache.verify_integrity()


@celery_app.task(base=ComplianceTask, bind=True, **JOB_RETRY_POLICY)
def conformance_audit(self):
    return build_jobs(self.db).conformance.run()
