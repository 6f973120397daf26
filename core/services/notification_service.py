# =============================================================================
# core/services/notification_service.py - In-App Notifications
# =============================================================================
# Notifications are stored per user at users/{uid}/notifications and read by
# the web client. Creating a notification is a side effect of another action
# (order placed, strike issued), so create failures are logged, not raised.
# =============================================================================

import logging
from typing import Any

from firebase_admin import firestore

from app.exceptions import ResourceNotFoundError
from core.models.notification import NotificationType
from lib.firebase_client import FirebaseClient, snapshot_to_dict

logger = logging.getLogger(__name__)

# Firestore caps a write batch at 500 operations
BATCH_LIMIT = 500


def _notification_doc(
    notification_type: NotificationType,
    title: str,
    message: str,
    action_url: str | None,
    action_label: str | None,
    metadata: dict[str, Any] | None,
) -> dict[str, Any]:
    doc = {
        "type": notification_type.value,
        "title": title,
        "message": message,
        "read": False,
        "createdAt": firestore.SERVER_TIMESTAMP,
    }
    if action_url:
        doc["actionUrl"] = action_url
    if action_label:
        doc["actionLabel"] = action_label
    if metadata:
        doc["metadata"] = metadata
    return doc


class NotificationService:
    """Create and read user notifications."""

    @staticmethod
    def _collection(user_id: str):
        return (
            FirebaseClient.get_db()
            .collection("users")
            .document(user_id)
            .collection("notifications")
        )

    @staticmethod
    def create(
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        action_url: str | None = None,
        action_label: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str | None:
        """
        Create a notification for one user.

        Returns:
            The notification ID, or None if the write failed
        """
        try:
            _, ref = NotificationService._collection(user_id).add(
                _notification_doc(notification_type, title, message, action_url, action_label, metadata)
            )
            logger.debug(f"Notification {notification_type.value} -> {user_id}")
            return ref.id
        except Exception as e:
            logger.warning(f"Failed to notify {user_id} ({notification_type.value}): {e}")
            return None

    @staticmethod
    def create_for_users(
        user_ids: list[str],
        notification_type: NotificationType,
        title: str,
        message: str,
        action_url: str | None = None,
        action_label: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """
        Create the same notification for many users with batched writes.

        Returns:
            Number of notifications written
        """
        db = FirebaseClient.get_db()
        written = 0

        unique_ids = list(dict.fromkeys(uid for uid in user_ids if uid))
        for start in range(0, len(unique_ids), BATCH_LIMIT):
            chunk = unique_ids[start:start + BATCH_LIMIT]
            batch = db.batch()
            for uid in chunk:
                ref = NotificationService._collection(uid).document()
                batch.set(ref, _notification_doc(notification_type, title, message, action_url, action_label, metadata))
            try:
                batch.commit()
                written += len(chunk)
            except Exception as e:
                logger.warning(f"Failed to write notification batch ({notification_type.value}): {e}")

        return written

    @staticmethod
    def list_for_user(user_id: str, limit: int = 50, unread_only: bool = False) -> list[dict[str, Any]]:
        """Newest-first notifications for a user."""
        query = NotificationService._collection(user_id)
        if unread_only:
            query = query.where(filter=firestore.FieldFilter("read", "==", False))
        query = query.order_by("createdAt", direction=firestore.Query.DESCENDING).limit(limit)
        return [snapshot_to_dict(doc) for doc in query.stream()]

    @staticmethod
    def mark_read(user_id: str, notification_id: str) -> None:
        """
        Mark one notification read.

        Raises:
            ResourceNotFoundError: If the notification doesn't exist
        """
        ref = NotificationService._collection(user_id).document(notification_id)
        if not ref.get().exists:
            raise ResourceNotFoundError("Notification", notification_id)
        ref.update({"read": True, "readAt": firestore.SERVER_TIMESTAMP})

    @staticmethod
    def mark_all_read(user_id: str) -> int:
        """Mark every unread notification read; returns how many changed."""
        db = FirebaseClient.get_db()
        unread = list(
            NotificationService._collection(user_id)
            .where(filter=firestore.FieldFilter("read", "==", False))
            .stream()
        )
        for start in range(0, len(unread), BATCH_LIMIT):
            batch = db.batch()
            for doc in unread[start:start + BATCH_LIMIT]:
                batch.update(doc.reference, {"read": True, "readAt": firestore.SERVER_TIMESTAMP})
            batch.commit()
        return len(unread)
