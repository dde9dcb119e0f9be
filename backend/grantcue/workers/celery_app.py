"""Celery application configuration."""

import logging

from celery import Celery
from celery.schedules import crontab

from grantcue.config import settings

logging.basicConfig(level=settings.log_level)

celery_app = Celery(
    "grantcue",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "grantcue.workers.tasks.check_alerts",
        "grantcue.workers.tasks.check_deadlines",
    ],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per run
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,  # Runs must not overlap on one worker
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# Scheduled tasks (beat schedule)
celery_app.conf.beat_schedule = {
    # Match alerts against new catalog grants every hour
    "hourly-alert-check": {
        "task": "grantcue.workers.tasks.check_alerts.check_all_alerts",
        "schedule": crontab(minute=0),
    },
    # Deadline reminders daily at 9 AM UTC
    "daily-deadline-check": {
        "task": "grantcue.workers.tasks.check_deadlines.check_all_deadlines",
        "schedule": crontab(hour=9, minute=0),
    },
}
