# =============================================================================
# core/services/playback_service.py - Signed Playback Authorization
# =============================================================================
# Issues Mux playback tokens after checking who may watch a playback ID.
#
# Lookup order:
#   1. Legacy creator videos (legacy_creators/{id}/videos/*)
#        sample videos are public, the rest need creator access
#   2. Course lessons (courses/{id}/modules/*/lessons/*)
#        free previews are public, the rest need enrollment or membership
#   3. Lessons whose direct upload produced this playback ID but whose
#      webhook hasn't landed yet
# =============================================================================

import logging
from typing import Any

from firebase_admin import firestore

from app.auth.models import AuthUser
from app.exceptions import (
    AccessDeniedError,
    AuthenticationRequiredError,
    CollectiveException,
    InvalidRequestError,
    ResourceNotFoundError,
)
from core.services.audit_service import AuditService
from core.services.entitlement_service import EntitlementService
from lib.firebase_client import FirebaseClient
from lib.mux_client import MuxClient
from lib.mux_signing import DEFAULT_TOKEN_TTL, sign_playback_token

logger = logging.getLogger(__name__)

PENDING_UPLOAD_SCAN_LIMIT = 50


def ancestor_id(path: str, collection: str) -> str | None:
    """
    ID of the document under `collection` in a document path.

    Example:
        ancestor_id("courses/c1/modules/m1/lessons/l1", "courses")  # "c1"
    """
    parts = path.split("/")
    for i, part in enumerate(parts[:-1]):
        if part == collection:
            return parts[i + 1] or None
    return None


def _first(query) -> Any:
    return next(iter(query.limit(1).stream()), None)


def _find_lesson_by_pending_upload(playback_id: str):
    """
    Lesson whose Mux upload became an asset with this playback ID.

    Links the lesson to the asset when found.
    """
    db = FirebaseClient.get_db()
    candidates = (
        db.collection_group("lessons")
        .where(filter=firestore.FieldFilter("muxUploadId", "!=", None))
        .limit(PENDING_UPLOAD_SCAN_LIMIT)
        .stream()
    )
    for doc in candidates:
        upload_id = (doc.to_dict() or {}).get("muxUploadId")
        if not upload_id:
            continue
        try:
            upload = MuxClient.get_upload(upload_id)
            if not upload.get("asset_id"):
                continue
            asset = MuxClient.get_asset(upload["asset_id"])
        except CollectiveException as e:
            logger.debug(f"Skipping upload {upload_id}: {e.message}")
            continue
        if MuxClient.first_playback_id(asset) == playback_id:
            doc.reference.set({
                "muxAssetId": asset.get("id"),
                "muxPlaybackId": playback_id,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }, merge=True)
            logger.info(f"Linked upload {upload_id} to playback ID {playback_id}")
            return doc
    return None


class PlaybackService:
    """Authorize and sign Mux playback."""

    @staticmethod
    def issue_token(user: AuthUser | None, playback_id: str) -> dict[str, Any]:
        """
        Token for a playback ID the caller is allowed to watch.

        Returns:
            {"token": jwt, "expiresIn": seconds}

        Raises:
            AuthenticationRequiredError: Protected video and no user
            AccessDeniedError: The user lacks the required entitlement
            ResourceNotFoundError: The playback ID isn't attached to any video
        """
        db = FirebaseClient.get_db()

        video = _first(
            db.collection_group("videos").where(filter=firestore.FieldFilter("muxPlaybackId", "==", playback_id))
        )
        if video is not None:
            creator_id = ancestor_id(video.reference.path, "legacy_creators")
            if not creator_id:
                raise InvalidRequestError("Invalid path")
            is_sample = bool((video.to_dict() or {}).get("isSample"))
            if not is_sample:
                if user is None:
                    raise AuthenticationRequiredError()
                if not EntitlementService.has_access_to_creator(user.uid, creator_id):
                    logger.warning(f"Playback denied: {user.uid} has no access to creator {creator_id}")
                    raise AccessDeniedError()
            return PlaybackService._sign(playback_id, {"scope": "legacy", "creatorId": creator_id, "isSample": is_sample})

        lesson = _first(
            db.collection_group("lessons").where(filter=firestore.FieldFilter("muxPlaybackId", "==", playback_id))
        )
        if lesson is None:
            lesson = _find_lesson_by_pending_upload(playback_id)
        if lesson is None:
            logger.warning(f"Playback ID {playback_id} not found")
            raise ResourceNotFoundError("Video", playback_id)

        course_id = ancestor_id(lesson.reference.path, "courses")
        if not course_id:
            raise InvalidRequestError("Invalid path")

        data = lesson.to_dict() or {}
        free_preview = bool(data.get("freePreview"))
        if not free_preview:
            if user is None:
                raise AuthenticationRequiredError()
            if not (
                EntitlementService.has_course_enrollment(user.uid, course_id)
                or EntitlementService.has_global_membership(user.uid)
            ):
                logger.warning(f"Playback denied: {user.uid} not enrolled in {course_id}")
                raise AccessDeniedError()

        return PlaybackService._sign(playback_id, {"scope": "course", "courseId": course_id, "freePreview": free_preview})

    @staticmethod
    def _sign(playback_id: str, audit: dict[str, Any]) -> dict[str, Any]:
        token = sign_playback_token(playback_id, audience="v", expires_in=DEFAULT_TOKEN_TTL)
        logger.info(f"Mux token issued for {playback_id} ({audit['scope']})")
        AuditService.record("mux_token_issued", {"playbackId": playback_id, **audit})
        return {"token": token, "expiresIn": DEFAULT_TOKEN_TTL}
