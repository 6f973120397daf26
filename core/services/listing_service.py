# =============================================================================
# core/services/listing_service.py - Marketplace Listings
# =============================================================================
# CRUD over the listings collection. Only the creator of a listing may edit
# or delete it. The public feed is paged newest-first with a createdAt cursor.
# =============================================================================

import logging
from datetime import datetime, timezone
from typing import Any

from firebase_admin import firestore

from app.exceptions import AccessDeniedError, ResourceNotFoundError
from core.models.marketplace import ListingCreate, ListingUpdate
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient, snapshot_to_dict, to_millis
from lib.utils import clamp

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 24
MAX_PAGE_SIZE = 100
FEED_IMAGE_COUNT = 3


class ListingService:
    """Service for marketplace listings."""

    @staticmethod
    def _owned_ref(user_id: str, listing_id: str):
        """
        Reference to a listing the user owns.

        Raises:
            ResourceNotFoundError: If the listing doesn't exist
            AccessDeniedError: If the user isn't its creator
        """
        ref = FirebaseClient.get_db().collection("listings").document(listing_id)
        listing = snapshot_to_dict(ref.get())
        if listing is None:
            raise ResourceNotFoundError("Listing", listing_id)
        if str(listing.get("creatorId")) != user_id:
            logger.warning(f"User {user_id} tried to modify listing {listing_id}")
            raise AccessDeniedError()
        return ref

    @staticmethod
    def create_listing(user_id: str, data: ListingCreate) -> str:
        """Create a listing owned by user_id; returns its ID."""
        _, ref = FirebaseClient.get_db().collection("listings").add({
            **data.model_dump(mode="json"),
            "creatorId": user_id,
            "createdAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Listing {ref.id} created by {user_id}")
        return ref.id

    @staticmethod
    def update_listing(user_id: str, listing_id: str, data: ListingUpdate) -> None:
        """Merge the provided fields into the listing."""
        ref = ListingService._owned_ref(user_id, listing_id)
        fields = data.model_dump(mode="json", exclude_none=True)
        ref.set({**fields, "updatedAt": firestore.SERVER_TIMESTAMP}, merge=True)
        logger.info(f"Listing {listing_id} updated ({', '.join(sorted(fields)) or 'no fields'})")

    @staticmethod
    def delete_listing(user_id: str, listing_id: str) -> None:
        ListingService._owned_ref(user_id, listing_id).delete()
        logger.info(f"Listing {listing_id} deleted by {user_id}")

    @staticmethod
    def get_listing(listing_id: str) -> dict[str, Any]:
        """
        Single listing.

        Raises:
            ResourceNotFoundError: If the listing doesn't exist
        """
        listing = snapshot_to_dict(FirebaseClient.get_db().collection("listings").document(listing_id).get())
        if listing is None:
            raise ResourceNotFoundError("Listing", listing_id)
        return listing

    @staticmethod
    def list_listings(limit: int = DEFAULT_PAGE_SIZE, cursor: int | None = None) -> dict[str, Any]:
        """
        Newest-first page of listings for the marketplace feed.

        Args:
            limit: Page size, clamped to 1..100
            cursor: createdAt (epoch millis) of the last listing of the previous page

        Returns:
            {"listings": [...], "nextCursor": int | None}
        """
        limit = clamp(limit, 1, MAX_PAGE_SIZE)
        query = (
            FirebaseClient.get_db()
            .collection("listings")
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        if cursor is not None:
            query = query.start_after({"createdAt": datetime.fromtimestamp(cursor / 1000, tz=timezone.utc)})

        docs = list(query.limit(limit).stream())

        names: dict[str, str | None] = {}
        listings = []
        for doc in docs:
            data = doc.to_dict() or {}
            creator_id = data.get("creatorId")
            if creator_id and creator_id not in names:
                summary = UserService.summary(creator_id)
                names[creator_id] = summary["displayName"] if summary else None

            listings.append({
                "id": doc.id,
                "title": data.get("title") or "Untitled Listing",
                "price": data.get("price") or 0,
                "shipping": data.get("shipping") or 0,
                "condition": data.get("condition") or "",
                "location": data.get("location") or "",
                "images": (data.get("images") or [])[:FEED_IMAGE_COUNT],
                "creatorId": creator_id,
                "creatorName": names.get(creator_id),
                "createdAt": to_millis(data.get("createdAt")),
            })

        next_cursor = listings[-1]["createdAt"] if len(listings) == limit else None
        return {"listings": listings, "nextCursor": next_cursor}
