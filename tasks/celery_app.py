"""
tasks/celery_app.py
Celery application instance and the beat schedule that drives dispatch.

Workers are started with:
    celery -A tasks.celery_app worker --loglevel=info --concurrency=1

Beat scheduler (triggers dispatch once per minute):
    celery -A tasks.celery_app beat --loglevel=info
"""

from celery import Celery

from config.settings import settings

celery_app = Celery(
    "adzan_console",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "tasks.dispatch_tasks",
    ],
)

# ── Configuration ─────────────────────────────────────────────────────────────

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.APP_TIMEZONE,
    enable_utc=True,

    # A late tick is worthless: the minute it was meant for has passed
    task_acks_late=False,
    result_expires=3600,

    task_routes={
        "tasks.dispatch_tasks.*": {"queue": "dispatch"},
    },

    worker_prefetch_multiplier=1,
)

# ── Periodic Tasks (Beat Schedule) ────────────────────────────────────────────

celery_app.conf.beat_schedule = {
    # Adzan + custom reminder jobs for the current minute.
    # Overlapping ticks are harmless; the dedupe key decides who sends.
    "run-dispatch-jobs": {
        "task": "tasks.dispatch_tasks.run_dispatch_jobs",
        "schedule": float(settings.CRON_INTERVAL_SECONDS),
        "options": {"expires": settings.CRON_INTERVAL_SECONDS},
    },
}
