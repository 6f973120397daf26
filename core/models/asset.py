# =============================================================================
# core/models/asset.py - Digital Asset Packs
# =============================================================================
# Asset packs (overlays, sound effects, LUTs, templates) are uploaded as ZIP
# files and expanded into per-item subcollection documents.
# =============================================================================

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AssetCategory(str, Enum):
    """Category labels as shown in the storefront."""
    OVERLAYS = "Overlays & Transitions"
    SFX = "SFX & Plugins"
    LUTS = "LUTs & Presets"
    TEMPLATES = "Templates"


# Storage folder per category: assets/{folder}/...
CATEGORY_FOLDERS: dict[str, str] = {
    AssetCategory.OVERLAYS.value: "overlays",
    AssetCategory.SFX.value: "sfx",
    AssetCategory.LUTS.value: "luts",
    AssetCategory.TEMPLATES.value: "templates",
}

OVERLAY_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".tiff", ".tif"}
OVERLAY_VIDEO_EXTENSIONS = {".mov", ".mp4", ".avi", ".mkv", ".webm", ".m4v"}
OVERLAY_EXTENSIONS = OVERLAY_IMAGE_EXTENSIONS | OVERLAY_VIDEO_EXTENSIONS
AUDIO_EXTENSIONS = {".mp3", ".wav", ".aiff", ".m4a", ".ogg", ".flac"}
LUT_EXTENSIONS = {".cube"}

CONTENT_TYPES: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".mov": "video/quicktime",
    ".mp4": "video/mp4",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
    ".m4v": "video/x-m4v",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".aiff": "audio/aiff",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".zip": "application/zip",
    ".cube": "application/octet-stream",
}


class IngestResult(BaseModel):
    """Counters reported when an asset ZIP has been processed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    asset_id: str | None = None
    files_processed: int = 0
    conversions_completed: int = 0
    previews_generated: int = 0
    durations_extracted: int = 0
    lut_previews_created: int = 0
    documents_created: int = 0
    errors: list[str] = Field(default_factory=list)
