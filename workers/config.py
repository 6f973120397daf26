# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Applied to the Celery app via app.config_from_object().
#
# Asset pack processing shells out to ffmpeg and can run for many minutes,
# so it gets its own "media" queue and longer time limits.
# =============================================================================

from app.config import settings


class CeleryConfig:
    """Celery configuration settings."""

    # -------------------------------------------------------------------------
    # Broker (Redis)
    # -------------------------------------------------------------------------

    broker_url = settings.REDIS_URL
    result_backend = settings.REDIS_URL

    # -------------------------------------------------------------------------
    # Task Execution
    # -------------------------------------------------------------------------

    # Acknowledge after completion so a crashed worker's task is redelivered
    task_acks_late = True
    worker_prefetch_multiplier = 1

    # Results are polled by the admin UI for a day
    result_expires = 86400

    # Default limits; media tasks override below
    task_time_limit = 300
    task_soft_time_limit = 240

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Queues
    # -------------------------------------------------------------------------

    task_queues = {
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "media": {
            "exchange": "media",
            "routing_key": "media",
        },
    }

    task_routes = {
        "workers.tasks.process_asset_zip": {"queue": "media"},
    }

    task_default_queue = "default"

    task_annotations = {
        "workers.tasks.process_asset_zip": {
            "time_limit": 3600,
            "soft_time_limit": 3300,
        },
        "workers.tasks.backfill_mux_durations": {
            "time_limit": 1800,
            "soft_time_limit": 1700,
        },
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    worker_send_task_events = True
    task_send_sent_event = True

    timezone = "UTC"
    enable_utc = True
