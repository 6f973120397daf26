# =============================================================================
# core/services/mux_webhook_service.py - Mux Asset Events
# =============================================================================
# When Mux finishes processing an upload it posts video.asset.ready. The
# asset's passthrough string identifies the lesson it belongs to; the lesson
# is then updated with the asset ID, playback ID and duration.
# Uploads made for a legacy creator carry {"legacyCreatorId", ...} instead
# and are saved as that creator's videos.
# =============================================================================

import hashlib
import hmac
import json
import logging
import re
from typing import Any

from firebase_admin import firestore

from app.config import settings
from app.exceptions import InvalidRequestError, WebhookSignatureError
from core.services.legacy_service import LegacyService
from lib.firebase_client import FirebaseClient
from lib.mux_client import MuxClient
from lib.mux_thumbnails import animated_gif_url

logger = logging.getLogger(__name__)

ASSET_EVENTS = {"video.asset.ready", "video.asset.updated"}
# "key:value" or "key=value"
PAIR_PATTERN = re.compile(r"^\s*([^:=\s]+)\s*[:=]\s*(\S.*?)\s*$")


def verify_signature(raw_body: bytes, header: str | None, secret: str | None = None) -> None:
    """
    Check a `Mux-Signature: t=<timestamp>,v1=<hex>` header.

    The signature is HMAC-SHA256 of "<timestamp>.<raw body>" keyed with the
    webhook secret. No-op when no secret is configured.

    Raises:
        WebhookSignatureError: If the header is missing, malformed or wrong
    """
    secret = settings.MUX_WEBHOOK_SECRET if secret is None else secret
    if not secret:
        return

    parts: dict[str, str] = {}
    for item in (header or "").split(","):
        key, _, value = item.strip().partition("=")
        if key and value:
            parts[key] = value

    timestamp, signature = parts.get("t"), parts.get("v1")
    if not timestamp or not signature:
        logger.warning("Mux webhook without signature fields")
        raise WebhookSignatureError("Mux")

    message = timestamp.encode() + b"." + raw_body
    expected = hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature):
        logger.warning("Mux webhook signature mismatch")
        raise WebhookSignatureError("Mux")


def parse_passthrough(value: Any) -> dict[str, str]:
    """
    Extract courseId/moduleId/lessonId from an asset passthrough.

    Accepted forms:
        '{"courseId": "c", "moduleId": "m", "lessonId": "l"}'
        'course:c|module:m|lesson:l'   (also "=" and "," separators)
        'c/m/l'

    Returns:
        Dict with whichever of courseId, moduleId, lessonId were found
    """
    if not value or not isinstance(value, str):
        return {}
    text = value.strip()

    try:
        obj = json.loads(text)
    except ValueError:
        obj = None
    if isinstance(obj, dict) and (obj.get("courseId") or obj.get("course") or obj.get("slug")):
        return _compact({
            "courseId": obj.get("courseId") or obj.get("course") or obj.get("slug"),
            "moduleId": obj.get("moduleId") or obj.get("module"),
            "lessonId": obj.get("lessonId") or obj.get("lesson"),
        })

    pairs: dict[str, str] = {}
    for part in re.split(r"[|,]", text):
        match = PAIR_PATTERN.match(part)
        if match:
            pairs[match.group(1).lower()] = match.group(2)
    if pairs:
        return _compact({
            "courseId": pairs.get("courseid") or pairs.get("course") or pairs.get("slug"),
            "moduleId": pairs.get("moduleid") or pairs.get("module"),
            "lessonId": pairs.get("lessonid") or pairs.get("lesson"),
        })

    segments = text.split("/")
    if len(segments) == 3:
        return _compact(dict(zip(("courseId", "moduleId", "lessonId"), segments)))
    return {}


def _compact(values: dict[str, Any]) -> dict[str, str]:
    return {k: str(v) for k, v in values.items() if v}


def _lesson_update(asset: dict[str, Any]) -> dict[str, Any]:
    playback_id = MuxClient.first_playback_id(asset)
    return {
        "muxAssetId": asset.get("id"),
        "muxPlaybackId": playback_id,
        "durationSec": MuxClient.duration_seconds(asset),
        "muxAnimatedGifUrl": animated_gif_url(playback_id) if playback_id else None,
        "updatedAt": firestore.SERVER_TIMESTAMP,
    }


def legacy_target(value: Any) -> dict[str, Any] | None:
    """Decoded passthrough of a legacy creator upload, or None."""
    if not value or not isinstance(value, str):
        return None
    try:
        obj = json.loads(value)
    except ValueError:
        return None
    if isinstance(obj, dict) and obj.get("legacyCreatorId"):
        return obj
    return None


def _file_legacy_video(asset: dict[str, Any], target: dict[str, Any]) -> int:
    creator = FirebaseClient.get_db().collection("legacy_creators").document(str(target["legacyCreatorId"])).get()
    if not creator.exists:
        logger.warning(f"Mux asset {asset.get('id')} names unknown legacy creator {target['legacyCreatorId']}")
        return 0

    playback_id = MuxClient.first_playback_id(asset)
    if not playback_id:
        logger.info(f"Mux asset {asset.get('id')} has no playback id yet")
        return 0

    video_id = LegacyService.save_video(
        creator,
        asset["id"],
        playback_id,
        MuxClient.duration_seconds(asset),
        bool(target.get("isSample")),
        str(target.get("title") or ""),
        str(target.get("description") or ""),
    )

    if asset.get("upload_id"):
        uploads = creator.reference.collection("uploads").where(
            filter=firestore.FieldFilter("uploadId", "==", asset["upload_id"])
        )
        for doc in uploads.stream():
            doc.reference.set({
                "status": "ready",
                "assetId": asset["id"],
                "videoId": video_id,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }, merge=True)
    return 1


def handle_event(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Apply an asset event to the matching lessons or legacy creator.

    Returns:
        {"received": True, "updated": n} for asset events, else {"received": True}

    Raises:
        InvalidRequestError: If an asset event carries no asset ID
    """
    event_type = payload.get("type")
    if event_type not in ASSET_EVENTS:
        logger.debug(f"Ignoring Mux event {event_type}")
        return {"received": True}

    asset = payload.get("data") or {}
    asset_id = asset.get("id")
    if not asset_id:
        raise InvalidRequestError("Missing asset id")

    target = legacy_target(asset.get("passthrough"))
    if target is not None:
        updated = _file_legacy_video(asset, target)
        logger.info(f"Mux {event_type} for asset {asset_id}: {updated} legacy video(s) saved")
        return {"received": True, "updated": updated}

    db = FirebaseClient.get_db()
    fields = _lesson_update(asset)
    locator = parse_passthrough(asset.get("passthrough"))
    updated = 0

    if {"courseId", "moduleId", "lessonId"} <= locator.keys():
        ref = (
            db.collection("courses").document(locator["courseId"])
            .collection("modules").document(locator["moduleId"])
            .collection("lessons").document(locator["lessonId"])
        )
        ref.set(fields, merge=True)
        updated = 1
    else:
        seen: set[str] = set()
        lookups = [("muxAssetId", asset_id)]
        if asset.get("upload_id"):
            lookups.append(("muxUploadId", asset["upload_id"]))
        for field, value in lookups:
            docs = db.collection_group("lessons").where(filter=firestore.FieldFilter(field, "==", value)).stream()
            for doc in docs:
                if doc.reference.path in seen:
                    continue
                seen.add(doc.reference.path)
                doc.reference.set(fields, merge=True)
                updated += 1

    logger.info(f"Mux {event_type} for asset {asset_id}: {updated} lesson(s) updated")
    return {"received": True, "updated": updated}
