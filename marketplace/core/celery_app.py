"""
Celery application configuration.

Redis is both the message broker and the result backend. Beat drives the
periodic jobs: scheduled notification dispatch, subscription expiry,
free listing expiry and verification code cleanup.
"""

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging
from marketplace.core.config import settings
from marketplace.core.logging_config import setup_logging

celery_app = Celery(
    "squares_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task behavior
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per task
    task_soft_time_limit=240,

    # Result backend
    result_expires=3600,

    # Worker behavior
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,

    beat_schedule={
        "dispatch-scheduled-notifications": {
            "task": "dispatch_scheduled_notifications",
            "schedule": 60.0,
        },
        "expire-subscriptions": {
            "task": "expire_subscriptions",
            "schedule": crontab(minute=15),
        },
        "cleanup-verification-codes": {
            "task": "cleanup_expired_verification_codes",
            "schedule": crontab(hour=3, minute=0),
        },
        "expire-free-listings": {
            "task": "expire_free_listings",
            "schedule": crontab(hour=2, minute=30),
        },
    },
)

celery_app.autodiscover_tasks(["marketplace"])


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Workers log in the same format as the API instead of Celery's default."""
    setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
