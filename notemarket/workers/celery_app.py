"""
Celery Application Configuration
"""
from celery import Celery

from notemarket.core.config import settings

celery_app = Celery(
    "notemarket",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["notemarket.workers.tasks"]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "reconcile-ledgers-hourly": {
        "task": "notemarket.workers.tasks.reconcile_ledgers",
        "schedule": 3600.0,  # 1 hour
    },
    # access never depends on the flag; this only keeps is_active tidy
    "expire-subscriptions-every-15-minutes": {
        "task": "notemarket.workers.tasks.expire_subscriptions",
        "schedule": 900.0,  # 15 minutes
    },
}
