# =============================================================================
# app/routers/assets.py - Digital Asset Packs
# =============================================================================
# Admins upload pack ZIPs (processed in the background by the media worker);
# members download them through short-lived signed URLs.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, Path, UploadFile

from app.dependencies import AdminUser, CurrentUser
from app.exceptions import FileTooLargeError
from app.config import settings
from core.models.asset import AssetCategory
from core.services.asset_ingest_service import AssetIngestService

logger = logging.getLogger(__name__)

# Mounted at /api/v1/admin/assets
admin_router = APIRouter()

# Mounted at /api/v1/assets
router = APIRouter()


@admin_router.post("/upload")
async def upload_asset_pack(
    file: Annotated[UploadFile, File(description="Asset pack (.zip)")],
    category: Annotated[AssetCategory, Form(description="Storefront category")],
    admin: AdminUser,
):
    """
    Upload an asset pack ZIP.

    The ZIP is stored at assets/{folder}/{file} and expanded by a background
    task; poll GET /api/v1/tasks/{task_id} for progress.
    """
    filename = file.filename or "assets.zip"
    if file.size is not None and file.size > settings.max_asset_upload_bytes:
        raise FileTooLargeError(round(file.size / (1024 * 1024), 1), settings.MAX_ASSET_UPLOAD_MB)

    content = await file.read()
    storage_path = AssetIngestService.store_zip(filename, content, category.value)
    logger.info(f"Asset pack uploaded by {admin.uid}: {storage_path} ({len(content) / (1024 * 1024):.2f}MB)")

    try:
        from workers.tasks import process_asset_zip

        task = process_asset_zip.delay(storage_path, category.value)
    except Exception as e:
        logger.error(f"Error queueing asset processing: {e}")
        raise HTTPException(
            status_code=503,
            detail=f"Asset stored but processing could not be queued. Is Redis running? Error: {e}",
        )

    return {
        "success": True,
        "task_id": task.id,
        "storagePath": storage_path,
    }


@router.get("/{asset_id}/download")
async def download_asset(
    asset_id: Annotated[str, Path(description="Asset ID")],
    user: CurrentUser,
):
    """Signed download URL (valid for one hour). Requires an active membership."""
    return AssetIngestService.download_url(user.uid, asset_id)
