# =============================================================================
# core/models/legacy.py - Legacy Creator Schemas
# =============================================================================
# Legacy creators live at legacy_creators/{creatorId} with their videos in
# legacy_creators/{creatorId}/videos. Request bodies use the camelCase keys
# the web client sends; snake_case names are accepted too.
# =============================================================================

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic.alias_generators import to_camel

KIT_SLUG_PATTERN = r"^[a-z0-9][a-z0-9-]*$"


class FeaturedVideo(BaseModel):
    """Video highlighted at the top of a creator's public page."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    playback_id: str = Field(..., min_length=1)
    title: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=2000)
    duration_sec: int = Field(default=0, ge=0)


class LegacyProfileUpdate(BaseModel):
    """Body of POST /legacy/creators/save; omitted fields are unchanged."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    handle: str | None = Field(default=None, max_length=50)
    bio: str | None = Field(default=None, max_length=5000)
    kit_slug: str | None = Field(default=None, max_length=60, pattern=KIT_SLUG_PATTERN)
    avatar_url: HttpUrl | None = None
    banner_url: HttpUrl | None = None
    featured: FeaturedVideo | None = None
    # {"overlays": [{title, tag, image}], "sfx": [...]}
    assets: dict[str, list[dict[str, Any]]] | None = None
    # [{name, category, image, url}]
    gear: list[dict[str, Any]] | None = Field(default=None, max_length=50)


class LegacyVideoAttach(BaseModel):
    """Body of POST /legacy/videos/attach."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    creator_id: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)
    is_sample: bool = False
    title: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=5000)


class LegacyUploadCreate(BaseModel):
    """Body of POST /legacy/videos/upload."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    creator_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    is_sample: bool = False
