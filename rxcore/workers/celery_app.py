from datetime import timedelta

from celery import Celery
from rxcore.core.config import settings

# Create Celery app
celery_app = Celery(
    "prescription_lifecycle",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["rxcore.workers.tasks"]
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    # Task routing
    task_routes={
        "rxcore.workers.tasks.*": {"queue": "default"},
    },

    # Beat schedule (periodic tasks)
    beat_schedule={
        "prescription-monitoring": {
            "task": "rxcore.workers.tasks.run_prescription_monitoring",
            "schedule": timedelta(minutes=settings.MONITORING_INTERVAL_MINUTES),
        },
    },
)
