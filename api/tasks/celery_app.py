"""
Celery application configuration.
"""
from celery import Celery
from celery.schedules import crontab
from config import settings

# Create Celery app
celery_app = Celery(
    "reading_tracker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["tasks.leaderboard_tasks", "tasks.reconciliation_tasks"]  # Include task modules
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=1800,  # 30 minutes max per task
    task_soft_time_limit=1500,
    worker_prefetch_multiplier=1,
)

celery_app.conf.result_expires = 3600  # Results expire after 1 hour

# Celery Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "settle-weekly-leaderboard": {
        "task": "tasks.settle_weekly_leaderboard",
        # Monday, after the previous week closed at Sunday 23:59:59 UTC
        "schedule": crontab(day_of_week="mon", hour=settings.SETTLEMENT_HOUR_UTC, minute=0),
    },
    "apply-pending-session-stats-hourly": {
        "task": "tasks.apply_pending_session_stats",
        "schedule": crontab(minute=15),
    },
}

if __name__ == "__main__":
    celery_app.start()
