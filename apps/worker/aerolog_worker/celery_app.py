"""Celery application configuration."""

from celery import Celery

from aerolog_core.settings import get_settings
from aerolog_core.utils.logging import configure_logging
from aerolog_worker.schedule import BEAT_SCHEDULE

settings = get_settings()
settings.validate_production_settings()
configure_logging()

celery_app = Celery(
    "aerolog_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.scheduler_timezone,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.task_time_limit_seconds,
    task_soft_time_limit=settings.task_soft_time_limit_seconds,
    beat_schedule=BEAT_SCHEDULE,
)

# Import tasks to register them with Celery
# This must be done after celery_app is created
from aerolog_worker import tasks  # noqa: F401, E402
