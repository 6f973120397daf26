# =============================================================================
# app/routers/legacy.py - Legacy Creator Pages
# =============================================================================
# Creator pages and listings are public (signed-in callers with access also
# see full videos). Profile edits, videos and the subscription list belong
# to the signed-in user. Legacy+ checkout lives under /checkout/legacy.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path, Query

from app.dependencies import CurrentUser, OptionalUser
from core.models.legacy import LegacyProfileUpdate, LegacyUploadCreate, LegacyVideoAttach
from core.services.legacy_service import LegacyService

router = APIRouter()


@router.get("/creators")
async def list_creators():
    return {"creators": LegacyService.list_creators()}


@router.get("/creators/{slug}")
async def get_creator(
    slug: Annotated[str, Path(description="kitSlug, creator ID or owner user ID")],
    user: OptionalUser,
):
    """Creator profile, samples and (with access) the full video catalogue."""
    return LegacyService.get_creator(slug, user)


@router.get("/creators/{slug}/listings")
async def creator_listings(slug: Annotated[str, Path(description="kitSlug, creator ID or owner user ID")]):
    return {"listings": LegacyService.creator_listings(slug)}


@router.post("/creators/save")
async def save_profile(body: LegacyProfileUpdate, user: CurrentUser):
    creator_id = LegacyService.save_profile(user.uid, body)
    return {"success": True, "creatorId": creator_id}


@router.post("/creators/enable")
async def enable_creator(user: CurrentUser):
    """Requires a Stripe Connect account that can take charges."""
    creator_id = LegacyService.enable(user.uid)
    return {"success": True, "creatorId": creator_id}


@router.post("/videos/attach")
async def attach_video(body: LegacyVideoAttach, user: CurrentUser):
    return {"success": True, **LegacyService.attach_video(user.uid, body)}


@router.post("/videos/upload")
async def create_upload(body: LegacyUploadCreate, user: CurrentUser):
    """Mux direct upload; the asset webhook adds the video when it's ready."""
    return {"success": True, **LegacyService.create_upload(user.uid, body)}


@router.delete("/videos/{video_id}")
async def delete_video(
    video_id: Annotated[str, Path(description="Video ID")],
    user: CurrentUser,
    delete_mux: Annotated[bool, Query(alias="deleteMux")] = True,
):
    mux_deleted = LegacyService.delete_video(user.uid, video_id, delete_mux=delete_mux)
    return {"success": True, "muxDeleted": mux_deleted}


@router.get("/subscriptions")
async def list_subscriptions(user: CurrentUser):
    return LegacyService.list_subscriptions(user.uid)
