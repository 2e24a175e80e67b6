"""
Celery configuration.

Out-of-band work (operator-scheduled or event-triggered push broadcasts)
runs on a Redis-backed Celery worker using the same services as the API.
"""

from typing import List
import logging

from celery import Celery
from celery.signals import task_prerun, task_postrun, task_failure

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

TASK_MODULES: List[str] = [
    "campaign_hub.domains.push.tasks",
]


class CeleryConfig:
    """Celery configuration class."""

    # Task execution settings
    task_time_limit = 5 * 60
    task_soft_time_limit = 4 * 60
    task_acks_late = True
    task_reject_on_worker_lost = True
    task_track_started = True

    # Serialization settings
    task_serializer = "json"
    accept_content = ["json"]
    result_serializer = "json"

    timezone = "UTC"
    enable_utc = True

    result_expires = 60 * 60 * 24  # 24 hours

    # Worker settings
    worker_prefetch_multiplier = 1
    worker_max_tasks_per_child = 1000
    worker_hijack_root_logger = False

    broker_connection_retry_on_startup = True

    task_routes = {
        "campaign_hub.domains.push.tasks.*": {"queue": "push"},
    }
    task_default_queue = "default"

    task_annotations = {
        "campaign_hub.domains.push.tasks.broadcast_campaign_notification": {
            "rate_limit": "30/m",
        },
    }


def create_celery_app(settings: Settings) -> Celery:
    """Create the Celery application for the given settings."""
    app = Celery(
        "campaign_hub",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
        include=TASK_MODULES,
    )
    app.config_from_object(CeleryConfig)
    setup_signal_handlers()
    logger.info("Celery application created")
    return app


def setup_signal_handlers() -> None:
    """Log task lifecycle events."""

    @task_prerun.connect(weak=False)
    def task_prerun_handler(sender=None, task_id=None, task=None, **kwds):
        logger.info(f"Task {task.name} [{task_id}] started")

    @task_postrun.connect(weak=False)
    def task_postrun_handler(sender=None, task_id=None, task=None, state=None, **kwds):
        logger.info(f"Task {task.name} [{task_id}] completed with state: {state}")

    @task_failure.connect(weak=False)
    def task_failure_handler(sender=None, task_id=None, exception=None, **kwds):
        logger.error(f"Task {sender.name} [{task_id}] failed: {exception}")


# Worker entry point: celery -A campaign_hub.core.celery_config worker -Q push
celery_app = create_celery_app(get_settings())
