"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "cutover_monitor",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.monitor.*": {"queue": "monitor"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    # A tick that overlaps the previous one is skipped by the tick lock.
    beat_schedule={
        "reconcile-cutovers": {
            "task": "workers.monitor.reconcile_cutovers",
            "schedule": crontab(minute=f"*/{settings.monitor_interval_minutes}"),
            "options": {"queue": "monitor"},
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["workers"], related_name="monitor")
