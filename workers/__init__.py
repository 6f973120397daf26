# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# Components:
# - celery_app.py: Celery application and lifecycle logging
# - config.py: Queues (default, media), limits, serialization
# - tasks.py: Asset pack processing and maintenance tasks
#
# Usage:
#   celery -A workers.celery_app worker --loglevel=info -Q default,media
#
#   from workers.tasks import process_asset_zip
#   result = process_asset_zip.delay(storage_path, category)
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
