# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Tasks:
# - process_asset_zip: Expand an uploaded asset pack (media queue)
# - backfill_mux_durations: Fill missing lesson durations from Mux
# =============================================================================

import logging
from typing import Any

from celery import current_task, shared_task

logger = logging.getLogger(__name__)


# =============================================================================
# Task State Updates
# =============================================================================

def update_progress(current: int, total: int, message: str = "Processing..."):
    """
    Update task progress for polling.

    Args:
        current: Current step number
        total: Total steps
        message: Status message
    """
    if current_task and current_task.request.id:
        current_task.update_state(
            state="PROGRESS",
            meta={
                "current": current,
                "total": total,
                "percent": int((current / total) * 100) if total else 0,
                "message": message,
            }
        )


# =============================================================================
# Asset Packs
# =============================================================================

@shared_task(bind=True, name="workers.tasks.process_asset_zip")
def process_asset_zip(self, storage_path: str, category: str) -> dict[str, Any]:
    """
    Expand an asset pack ZIP already stored at storage_path.

    Args:
        storage_path: "assets/{folder}/{pack}.zip"
        category: Category label, e.g. "LUTs & Presets"

    Returns:
        Dict with success plus the ingest counters (assetId, filesProcessed,
        documentsCreated, errors, ...)
    """
    from core.services.asset_ingest_service import AssetIngestService

    logger.info(f"Processing asset pack {storage_path} ({category})")
    update_progress(0, 100, "Starting...")

    try:
        result = AssetIngestService.process_zip(
            storage_path,
            category,
            progress=lambda percent, message: update_progress(percent, 100, message),
        )
    except Exception as e:
        logger.exception(f"Asset pack processing failed for {storage_path}: {e}")
        return {"success": False, "storagePath": storage_path, "error": str(e)}

    return {
        "success": True,
        "storagePath": storage_path,
        **result.model_dump(by_alias=True),
    }


# =============================================================================
# Maintenance
# =============================================================================

@shared_task(bind=True, name="workers.tasks.backfill_mux_durations")
def backfill_mux_durations(self, dry_run: bool = False) -> dict[str, Any]:
    """Fill durationSec on lessons whose Mux asset duration was never recorded."""
    from core.services.maintenance_service import backfill_mux_durations as run_backfill

    update_progress(0, 1, "Scanning lessons...")
    summary = run_backfill(dry_run=dry_run)
    logger.info(f"Duration backfill: {summary['updated']} updated of {summary['scanned']} scanned")
    return {"success": True, **summary}
