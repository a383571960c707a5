from celery import Celery
from celery.schedules import crontab
from marketplace.core.config import settings

celery_app = Celery(
    "marketplace",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["marketplace.tasks.rating_tasks"]
)

# Celery Configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_track_started=True,

    task_time_limit=600,        # Hard limit (10 min)
    task_soft_time_limit=540,   # Soft limit (9 min)

    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    result_expires=3600,  # 1 hour
)

celery_app.conf.task_routes = {
    "marketplace.tasks.rating_tasks.*": {"queue": "ratings"},
}

celery_app.conf.beat_schedule = {
    "reconcile-rating-summaries-daily": {
        "task": "marketplace.tasks.rating_tasks.reconcile_rating_summaries",
        "schedule": crontab(hour=settings.RATING_RECONCILE_HOUR, minute=0),
    },
}
