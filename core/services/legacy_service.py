# =============================================================================
# core/services/legacy_service.py - Legacy Creator Profiles and Videos
# =============================================================================
# Legacy creators sell a monthly Legacy+ subscription to their channel.
#
# Collections:
# - legacy_creators/{creatorId}: public profile, ownerUserId, connectAccountId
# - legacy_creators/{creatorId}/videos/{videoId}: Mux-backed videos; samples
#   are public, the rest need Legacy+ or an all-access membership
# - legacySubscriptions/{id}: per-creator subscriptions (written by webhooks)
#
# A creator document is found by kitSlug, then document ID, then
# ownerUserId, so old links keep working after a creator picks a slug.
# =============================================================================

import json
import logging
from typing import Any

from firebase_admin import firestore

from app.auth.models import AuthUser
from app.config import settings
from app.exceptions import (
    AccessDeniedError,
    InvalidRequestError,
    MuxApiError,
    ResourceNotFoundError,
)
from core.models.legacy import LegacyProfileUpdate, LegacyUploadCreate, LegacyVideoAttach
from core.models.subscription import ACTIVE_SUBSCRIPTION_STATUSES
from core.services.audit_service import AuditService
from core.services.connect_service import ConnectService
from core.services.entitlement_service import EntitlementService
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient, snapshot_to_dict, to_millis
from lib.mux_client import MuxClient
from lib.mux_thumbnails import animated_gif_url

logger = logging.getLogger(__name__)

SAMPLE_LIMIT = 3
LISTING_LIMIT = 50
LISTING_IMAGE_COUNT = 3
# Legacy+ list price (cents) reported when a subscription doc has no amount
DEFAULT_SUBSCRIPTION_AMOUNT = 1000


def legacy_passthrough(creator_id: str, title: str, description: str = "", is_sample: bool = False) -> str:
    """Mux passthrough that routes a finished upload to a creator's videos."""
    return json.dumps({
        "legacyCreatorId": creator_id,
        "title": title,
        "description": description,
        "isSample": is_sample,
    })


def _creators():
    return FirebaseClient.get_db().collection("legacy_creators")


def _first(query):
    return next(iter(query.limit(1).stream()), None)


def _video(doc) -> dict[str, Any]:
    data = doc.to_dict() or {}
    return {
        **data,
        "id": doc.id,
        "createdAt": to_millis(data.get("createdAt")),
        "updatedAt": to_millis(data.get("updatedAt")),
    }


def _newest_first(docs) -> list:
    return sorted(docs, key=lambda d: to_millis((d.to_dict() or {}).get("createdAt")) or 0, reverse=True)


class LegacyService:
    """Public creator pages plus the owner's profile and video management."""

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @staticmethod
    def find_creator(slug: str):
        """Creator snapshot by kitSlug, document ID or ownerUserId; None if unknown."""
        if not slug:
            return None
        by_slug = _first(_creators().where(filter=firestore.FieldFilter("kitSlug", "==", slug)))
        if by_slug is not None:
            return by_slug
        by_id = _creators().document(slug).get()
        if by_id.exists:
            return by_id
        return _first(_creators().where(filter=firestore.FieldFilter("ownerUserId", "==", slug)))

    @staticmethod
    def owned_creator_ref(user_id: str, must_exist: bool = False):
        """
        The creator document a user owns.

        Prefers a document with ownerUserId == user_id, then legacy_creators/{uid}.

        Raises:
            ResourceNotFoundError: must_exist and the user owns no creator
        """
        owned = _first(_creators().where(filter=firestore.FieldFilter("ownerUserId", "==", user_id)))
        if owned is not None:
            return owned.reference
        ref = _creators().document(user_id)
        if must_exist and not ref.get().exists:
            raise ResourceNotFoundError("Legacy creator", user_id)
        return ref

    # -------------------------------------------------------------------------
    # Public pages
    # -------------------------------------------------------------------------

    @staticmethod
    def list_creators() -> list[dict[str, Any]]:
        """Every creator's public card, by the admin-set `order` then name."""
        creators = []
        for doc in _creators().stream():
            data = doc.to_dict() or {}
            creators.append({
                "id": doc.id,
                "handle": data.get("handle") or "",
                "displayName": data.get("displayName") or "",
                "avatarUrl": data.get("avatarUrl"),
                "bannerUrl": data.get("bannerUrl"),
                "connectAccountId": data.get("connectAccountId"),
                "samplesCount": int(data.get("samplesCount") or 0),
                "kitSlug": data.get("kitSlug") or doc.id,
                "order": data.get("order"),
            })
        creators.sort(key=lambda c: (c["order"] is None, c["order"] or 0, c["displayName"].lower()))
        return creators

    @staticmethod
    def get_creator(slug: str, user: AuthUser | None = None) -> dict[str, Any]:
        """
        A creator's public page.

        Everyone sees up to three sample videos; callers with access to the
        creator also get the full catalogue.

        Raises:
            ResourceNotFoundError: If no creator matches the slug
        """
        doc = LegacyService.find_creator(slug)
        if doc is None:
            raise ResourceNotFoundError("Legacy creator", slug)

        data = doc.to_dict() or {}
        creator = {
            "id": doc.id,
            "displayName": data.get("displayName") or data.get("handle") or "Creator",
            "handle": data.get("handle") or "",
            "avatarUrl": data.get("avatarUrl"),
            "bannerUrl": data.get("bannerUrl"),
            "bio": data.get("bio") or "",
            "kitSlug": data.get("kitSlug") or doc.id,
            "featured": data.get("featured"),
            "assets": data.get("assets"),
            "gear": data.get("gear"),
        }

        subscribed = bool(user) and EntitlementService.has_access_to_creator(user.uid, doc.id)

        videos = list(doc.reference.collection("videos").stream())
        samples = [v for v in videos if (v.to_dict() or {}).get("isSample")]
        full = [v for v in videos if not (v.to_dict() or {}).get("isSample")] if subscribed else []

        return {
            "creator": creator,
            "subscribed": subscribed,
            "samples": [_video(v) for v in _newest_first(samples)[:SAMPLE_LIMIT]],
            "full": [_video(v) for v in _newest_first(full)],
        }

    @staticmethod
    def creator_listings(slug: str) -> list[dict[str, Any]]:
        """Marketplace listings of the user behind a creator page (empty when unknown)."""
        doc = LegacyService.find_creator(slug)
        if doc is None:
            return []
        seller_id = (doc.to_dict() or {}).get("ownerUserId") or doc.id

        query = (
            FirebaseClient.get_db()
            .collection("listings")
            .where(filter=firestore.FieldFilter("creatorId", "==", seller_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(LISTING_LIMIT)
        )
        listings = []
        for listing in query.stream():
            data = listing.to_dict() or {}
            listings.append({
                "id": listing.id,
                "title": data.get("title") or "",
                "price": data.get("price") or 0,
                "condition": data.get("condition") or "",
                "images": (data.get("images") or [])[:LISTING_IMAGE_COUNT],
                "location": data.get("location") or "",
                "shipping": data.get("shipping") or 0,
                "createdAt": to_millis(data.get("createdAt")),
            })
        return listings

    # -------------------------------------------------------------------------
    # Owner actions
    # -------------------------------------------------------------------------

    @staticmethod
    def save_profile(user_id: str, update: LegacyProfileUpdate) -> str:
        """
        Merge profile fields into the caller's creator document.

        Returns:
            The creator document ID

        Raises:
            InvalidRequestError: Nothing to update, or the kitSlug is taken
        """
        fields = update.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not fields:
            raise InvalidRequestError("No fields to update")

        ref = LegacyService.owned_creator_ref(user_id)
        slug = fields.get("kitSlug")
        if slug:
            taken = _first(_creators().where(filter=firestore.FieldFilter("kitSlug", "==", slug)))
            if taken is not None and taken.id != ref.id:
                raise InvalidRequestError(f"kitSlug '{slug}' is already in use")
        else:
            existing = ref.get().to_dict() or {}
            fields["kitSlug"] = existing.get("kitSlug") or user_id

        ref.set({**fields, "ownerUserId": user_id, "updatedAt": firestore.SERVER_TIMESTAMP}, merge=True)
        logger.info(f"Legacy profile {ref.id} saved by {user_id} ({', '.join(sorted(fields))})")
        return ref.id

    @staticmethod
    def enable(user_id: str) -> str:
        """
        Turn a user with a charge-ready Connect account into a legacy creator.

        Raises:
            InvalidRequestError: No Connect account, or charges not enabled
        """
        user = UserService.get_user(user_id) or {}
        account_id = user.get("connectAccountId")
        if not account_id:
            raise InvalidRequestError(
                "Stripe Connect account not linked",
                suggestion="Complete Stripe onboarding first",
            )
        if not ConnectService.status(str(account_id))["charges_enabled"]:
            raise InvalidRequestError("Stripe Connect charges not enabled")

        ref = LegacyService.owned_creator_ref(user_id)
        doc: dict[str, Any] = {
            "ownerUserId": user_id,
            "displayName": user.get("displayName") or user.get("handle") or "Creator",
            "kitSlug": user.get("kitSlug") or user_id,
            "connectAccountId": account_id,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        if not ref.get().exists:
            doc["createdAt"] = firestore.SERVER_TIMESTAMP
        ref.set(doc, merge=True)

        AuditService.record("legacy_creator_enabled", {"userId": user_id, "creatorId": ref.id})
        logger.info(f"Legacy creator {ref.id} enabled for {user_id}")
        return ref.id

    @staticmethod
    def owned_creator(user_id: str, creator_id: str):
        """
        Creator snapshot by document ID or owner user ID, checked against the caller.

        Raises:
            ResourceNotFoundError: Unknown creator
            AccessDeniedError: The caller doesn't own the creator
        """
        snapshot = _creators().document(creator_id).get()
        if not snapshot.exists:
            snapshot = _first(_creators().where(filter=firestore.FieldFilter("ownerUserId", "==", creator_id)))
        if snapshot is None or not snapshot.exists:
            raise ResourceNotFoundError("Legacy creator", creator_id)

        if ((snapshot.to_dict() or {}).get("ownerUserId") or snapshot.id) != user_id:
            logger.warning(f"User {user_id} tried to manage creator {snapshot.id}")
            raise AccessDeniedError()
        return snapshot

    @staticmethod
    def save_video(
        creator_snapshot,
        asset_id: str,
        playback_id: str,
        duration: int,
        is_sample: bool,
        title: str = "",
        description: str = "",
    ) -> str:
        """
        Create or update the video document for a Mux asset.

        Blank titles and descriptions keep what an existing document has.
        The first sample becomes the featured video if none is set.

        Returns:
            The video document ID
        """
        videos = creator_snapshot.reference.collection("videos")
        existing = _first(videos.where(filter=firestore.FieldFilter("muxAssetId", "==", asset_id)))
        fields = {
            "muxPlaybackId": playback_id,
            "muxAnimatedGifUrl": animated_gif_url(playback_id),
            "isSample": is_sample,
            "durationSec": duration,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        if existing is not None:
            previous = existing.to_dict() or {}
            existing.reference.set({
                **fields,
                "title": title or previous.get("title") or "Untitled Video",
                "description": description or previous.get("description") or "",
            }, merge=True)
            video_id = existing.id
        else:
            _, ref = videos.add({
                **fields,
                "muxAssetId": asset_id,
                "title": title or "Untitled Video",
                "description": description,
                "createdAt": firestore.SERVER_TIMESTAMP,
            })
            video_id = ref.id

        creator = creator_snapshot.to_dict() or {}
        if is_sample and not (creator.get("featured") or {}).get("playbackId"):
            creator_snapshot.reference.set({
                "featured": {
                    "playbackId": playback_id,
                    "title": title or "Featured",
                    "description": description,
                    "durationSec": duration,
                },
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }, merge=True)
        return video_id

    @staticmethod
    def attach_video(user_id: str, body: LegacyVideoAttach) -> dict[str, Any]:
        """
        Add an existing Mux asset to the caller's creator catalogue.

        Creates a playback ID when the asset has none (public for samples,
        signed otherwise). Re-attaching an asset updates its video document.

        Raises:
            ResourceNotFoundError: Unknown creator
            AccessDeniedError: The caller doesn't own the creator
            MuxApiError: The asset can't be read or given a playback ID
        """
        snapshot = LegacyService.owned_creator(user_id, body.creator_id)

        asset = MuxClient.get_asset(body.asset_id)
        playback_id = MuxClient.first_playback_id(asset)
        if not playback_id:
            policy = "public" if body.is_sample else "signed"
            playback_id = MuxClient.create_playback_id(body.asset_id, policy).get("id")
        if not playback_id:
            raise MuxApiError(f"/assets/{body.asset_id}/playback-ids", "Failed to create playback id")

        video_id = LegacyService.save_video(
            snapshot,
            body.asset_id,
            playback_id,
            MuxClient.duration_seconds(asset),
            body.is_sample,
            body.title,
            body.description,
        )
        logger.info(f"Asset {body.asset_id} attached to creator {snapshot.id} as video {video_id}")
        return {"videoId": video_id, "playbackId": playback_id}

    @staticmethod
    def create_upload(user_id: str, body: LegacyUploadCreate) -> dict[str, Any]:
        """
        Direct upload URL for a new creator video.

        The Mux asset webhook files the finished asset under the creator's
        videos using the passthrough written here.
        """
        snapshot = LegacyService.owned_creator(user_id, body.creator_id)

        cors_origin = "*" if settings.is_development else (settings.cors_origins_list[0] if settings.cors_origins_list else settings.BASE_URL)
        upload = MuxClient.create_direct_upload(
            passthrough=legacy_passthrough(snapshot.id, body.title, body.description, body.is_sample),
            cors_origin=cors_origin,
            signed=not body.is_sample,
        )
        upload_id = upload.get("id")
        snapshot.reference.collection("uploads").add({
            "uploadId": upload_id,
            "title": body.title,
            "description": body.description,
            "isSample": body.is_sample,
            "status": "pending",
            "createdAt": firestore.SERVER_TIMESTAMP,
        })

        AuditService.record("legacy_upload_created", {"creatorId": snapshot.id, "uploadId": upload_id, "isSample": body.is_sample})
        logger.info(f"Mux upload {upload_id} created for creator {snapshot.id}")
        return {"uploadId": upload_id, "uploadUrl": upload.get("url")}

    @staticmethod
    def delete_video(user_id: str, video_id: str, delete_mux: bool = True) -> bool:
        """
        Delete one of the caller's videos, and its Mux asset unless told not to.

        A Mux failure is logged and does not undo the Firestore delete.

        Returns:
            Whether the Mux asset was deleted
        """
        creator_ref = _creators().document(user_id)
        if not creator_ref.get().exists:
            creator_ref = LegacyService.owned_creator_ref(user_id, must_exist=True)

        video_ref = creator_ref.collection("videos").document(video_id)
        video = snapshot_to_dict(video_ref.get())
        if video is None:
            raise ResourceNotFoundError("Video", video_id)

        video_ref.delete()
        logger.info(f"Video {video_id} deleted from creator {creator_ref.id}")

        asset_id = video.get("muxAssetId")
        if not (delete_mux and asset_id):
            return False
        try:
            MuxClient.delete_asset(asset_id)
        except MuxApiError as e:
            logger.warning(f"Mux asset {asset_id} not deleted: {e.message}")
            return False
        return True

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    @staticmethod
    def list_subscriptions(user_id: str) -> dict[str, Any]:
        """
        The creators a user can watch.

        All-access members get a virtual active entry for every creator;
        otherwise their active or trialing Legacy+ subscriptions are listed.
        """
        db = FirebaseClient.get_db()
        has_all_access = EntitlementService.has_all_access_membership(user_id)

        if has_all_access:
            subscriptions = [
                {
                    "id": f"all-access-{doc.id}",
                    "creatorId": doc.id,
                    "subscriptionId": None,
                    "status": "active",
                    "amount": 0,
                    "currency": "usd",
                    "createdAt": None,
                    "updatedAt": None,
                }
                for doc in _creators().stream()
            ]
        else:
            docs = (
                db.collection("legacySubscriptions")
                .where(filter=firestore.FieldFilter("userId", "==", user_id))
                .where(filter=firestore.FieldFilter("status", "in", sorted(ACTIVE_SUBSCRIPTION_STATUSES)))
                .stream()
            )
            subscriptions = []
            for doc in docs:
                data = doc.to_dict() or {}
                subscriptions.append({
                    "id": doc.id,
                    "creatorId": data.get("creatorId"),
                    "subscriptionId": data.get("subscriptionId"),
                    "status": data.get("status"),
                    "amount": data.get("amount") or DEFAULT_SUBSCRIPTION_AMOUNT,
                    "currency": data.get("currency") or "usd",
                    "createdAt": to_millis(data.get("createdAt")),
                    "updatedAt": to_millis(data.get("updatedAt")),
                })

        for subscription in subscriptions:
            creator = snapshot_to_dict(_creators().document(str(subscription["creatorId"])).get())
            if creator is not None:
                subscription["creator"] = {
                    "id": creator["id"],
                    "displayName": creator.get("displayName") or creator.get("handle") or "Creator",
                    "handle": creator.get("handle"),
                    "avatarUrl": creator.get("avatarUrl"),
                }

        return {"subscriptions": subscriptions, "hasAllAccess": has_all_access}
