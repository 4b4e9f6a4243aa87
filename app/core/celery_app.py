"""
Celery application configuration for TCT.

Celery beat drives the periodic trip alert sweep and the duplicate alert
reconciliation so that detection keeps running between location pings.

Usage:
    # Start worker (from project root):
    celery -A app.core.celery_app worker --loglevel=info

    # Start the scheduler:
    celery -A app.core.celery_app beat --loglevel=info
"""
from celery import Celery

from app.core.config import settings

# Create Celery application
celery_app = Celery(
    "tct",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.services.tasks"],  # Auto-discover tasks
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution
    task_acks_late=True,  # Acknowledge after task completes (safety)
    task_reject_on_worker_lost=True,

    # Result backend
    result_expires=3600,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Task routing
    task_routes={
        "app.services.tasks.*": {"queue": "alerts"},
    },

    # Task time limits
    task_soft_time_limit=240,
    task_time_limit=300,

    # Retry settings
    task_default_retry_delay=30,
)

# Define task queues
celery_app.conf.task_queues = {
    "alerts": {
        "exchange": "alerts",
        "routing_key": "alerts",
    },
}

# Periodic schedule
celery_app.conf.beat_schedule = {
    "trip-alert-sweep": {
        "task": "app.services.tasks.run_trip_alert_sweep",
        "schedule": float(settings.alert_sweep_interval_seconds),
    },
    "reconcile-duplicate-alerts": {
        "task": "app.services.tasks.reconcile_alerts",
        "schedule": float(settings.reconcile_interval_seconds),
    },
}
