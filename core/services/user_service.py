# =============================================================================
# core/services/user_service.py - User Profile Lookups
# =============================================================================
# Read helpers over the users collection shared by the other services.
# =============================================================================

import logging
from typing import Any

from firebase_admin import firestore

from app.exceptions import ResourceNotFoundError
from lib.firebase_client import FirebaseClient, snapshot_to_dict

logger = logging.getLogger(__name__)


class UserService:
    """Lookups on users/{uid}."""

    @staticmethod
    def get_user(user_id: str) -> dict[str, Any] | None:
        """User document with its ID, or None when missing."""
        snapshot = FirebaseClient.get_db().collection("users").document(user_id).get()
        return snapshot_to_dict(snapshot)

    @staticmethod
    def require_user(user_id: str) -> dict[str, Any]:
        """
        User document or 404.

        Raises:
            ResourceNotFoundError: If the user doesn't exist
        """
        user = UserService.get_user(user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        return user

    @staticmethod
    def find_by_email(email: str) -> dict[str, Any] | None:
        """First user with this email address, if any."""
        if not email:
            return None
        docs = (
            FirebaseClient.get_db()
            .collection("users")
            .where(filter=firestore.FieldFilter("email", "==", email))
            .limit(1)
            .stream()
        )
        for doc in docs:
            return snapshot_to_dict(doc)
        return None

    @staticmethod
    def summary(user_id: str | None) -> dict[str, Any] | None:
        """Public fields used to enrich admin listings."""
        if not user_id:
            return None
        user = UserService.get_user(user_id)
        if user is None:
            return None
        return {
            "id": user["id"],
            "displayName": user.get("displayName"),
            "email": user.get("email"),
            "photoURL": user.get("photoURL"),
        }

    @staticmethod
    def update(user_id: str, fields: dict[str, Any]) -> None:
        """Merge fields into the user document."""
        FirebaseClient.get_db().collection("users").document(user_id).set(fields, merge=True)
