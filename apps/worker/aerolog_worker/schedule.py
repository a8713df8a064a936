"""Celery beat schedule for the compliance jobs."""

from celery.schedules import crontab

TASK_PREFIX = "aerolog_worker.tasks"

BEAT_SCHEDULE = {
    "deadline-sweep-hourly": {
        "task": f"{TASK_PREFIX}.deadline_sweep",
        "schedule": crontab(minute=0),
    },
    "near-deadline-notifications": {
        "task": f"{TASK_PREFIX}.notify_near_deadline",
        "schedule": crontab(minute="*/30", hour="8-18", day_of_week="mon-fri"),
    },
    "regulator-sync-hourly": {
        "task": f"{TASK_PREFIX}.sync_pending",
        "schedule": crontab(minute=15),
    },
    "regulator-connectivity": {
        "task": f"{TASK_PREFIX}.check_connectivity",
        "schedule": crontab(minute=30, hour="*/4"),
    },
    "sync-failure-reprocessing": {
        "task": f"{TASK_PREFIX}.reprocess_failed_sync",
        "schedule": crontab(minute=0, hour=6),
    },
    "daily-compliance-report": {
        "task": f"{TASK_PREFIX}.daily_compliance_report",
        "schedule": crontab(minute=0, hour=8),
    },
    "daily-sync-report": {
        "task": f"{TASK_PREFIX}.daily_sync_report",
        "schedule": crontab(minute=0, hour=23),
    },
    "cache-eviction": {
        "task": f"{TASK_PREFIX}.cache_evict",
        "schedule": crontab(minute=0, hour=2),
    },
    "cache-preheat": {
        "task": f"{TASK_PREFIX}.cache_preheat",
        "schedule": crontab(minute=0, hour=5),
    },
    "cache-performance-report": {
        "task": f"{TASK_PREFIX}.cache_performance_report",
        "schedule": crontab(minute=30, hour=23),
    },
    "cache-integrity-weekly": {
        "task": f"{TASK_PREFIX}.cache_integrity_check",
        "schedule": crontab(minute=0, hour=3, day_of_week="sun"),
    },
    "conformance-audit-weekly": {
        "task": f"{TASK_PREFIX}.conformance_audit",
        "schedule": crontab(minute=0, hour=4, day_of_week="sun"),
    },
}
