# =============================================================================
# core/services/message_board_service.py - Community Message Board
# =============================================================================
# The web client creates posts, comments and reactions directly in
# Firestore. The API handles what needs another user's documents or a
# trusted clock:
# - editing a post (author only, within EDIT_WINDOW_HOURS, with history)
# - bookmarks (users/{uid}/bookmarkedPosts/{postId})
# - follows (users/{uid}/following/{target} + users/{target}/followers/{uid})
# - comment, reply, mention and follow notifications
# - badge awards (users/{uid}/badges/{badgeId})
# =============================================================================

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any

from firebase_admin import firestore

from app.exceptions import AccessDeniedError, InvalidRequestError, ResourceNotFoundError
from core.models.message_board import BADGE_DEFINITIONS, EDIT_WINDOW_HOURS, BadgeDefinition
from core.models.notification import NotificationType
from core.services.notification_service import NotificationService
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient

logger = logging.getLogger(__name__)

HASHTAG_RE = re.compile(r"#(\w+)")
MENTION_RE = re.compile(r"@(\w+)")
EMBED_PATTERNS = [
    ("youtube", re.compile(r"(?:https?://)?(?:www\.)?(?:youtube\.com/watch\?v=|youtu\.be/)([a-zA-Z0-9_-]+)")),
    ("vimeo", re.compile(r"(?:https?://)?(?:www\.)?vimeo\.com/(\d+)")),
    ("instagram", re.compile(r"(?:https?://)?(?:www\.)?instagram\.com/p/([a-zA-Z0-9_-]+)")),
]


# =============================================================================
# Content Parsing
# =============================================================================

def extract_hashtags(text: str) -> list[str]:
    """Unique lowercase hashtags in order of first appearance."""
    return list(dict.fromkeys(tag.lower() for tag in HASHTAG_RE.findall(text)))


def extract_mentions(text: str) -> list[str]:
    return list(dict.fromkeys(MENTION_RE.findall(text)))


def detect_media_embeds(text: str) -> list[dict[str, str]]:
    """YouTube, Vimeo and Instagram links as {type, url, embedId}."""
    embeds = []
    for kind, pattern in EMBED_PATTERNS:
        for match in pattern.finditer(text):
            embeds.append({"type": kind, "url": match.group(0), "embedId": match.group(1)})
    return embeds


def _display_name(user_id: str) -> str:
    user = UserService.get_user(user_id) or {}
    return user.get("displayName") or user.get("handle") or "Someone"


def _post_url(post_id: str) -> str:
    return f"/message-board#post-{post_id}"


# =============================================================================
# Service
# =============================================================================

class MessageBoardService:

    @staticmethod
    def edit_post(user_id: str, post_id: str, content: str) -> None:
        """
        Replace a post's content, keeping the previous version in editHistory.

        Raises:
            ResourceNotFoundError: Unknown post
            AccessDeniedError: The caller isn't the author
            InvalidRequestError: The edit window has passed
        """
        ref = FirebaseClient.get_db().collection("messageBoardPosts").document(post_id)
        snapshot = ref.get()
        if not snapshot.exists:
            raise ResourceNotFoundError("Post", post_id)

        post = snapshot.to_dict() or {}
        if post.get("authorId") != user_id:
            raise AccessDeniedError("Only the author can edit this post")

        now = datetime.now(timezone.utc)
        created_at = post.get("createdAt")
        if isinstance(created_at, datetime) and now - created_at > timedelta(hours=EDIT_WINDOW_HOURS):
            raise InvalidRequestError(f"Post can only be edited within {EDIT_WINDOW_HOURS} hours")

        history = list(post.get("editHistory") or [])
        # Array elements can't hold SERVER_TIMESTAMP
        history.append({
            "content": post.get("content"),
            "hashtags": post.get("hashtags") or None,
            "mentions": post.get("mentions") or None,
            "editedAt": now,
        })

        hashtags = extract_hashtags(content)
        mentions = extract_mentions(content)
        embeds = detect_media_embeds(content)
        ref.update({
            "content": content.strip(),
            "hashtags": hashtags or None,
            "mentions": mentions or None,
            "mediaEmbeds": embeds or None,
            "editHistory": history,
            "edited": True,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Post {post_id} edited by {user_id} ({len(history)} revisions)")

    # -------------------------------------------------------------------------
    # Bookmarks
    # -------------------------------------------------------------------------

    @staticmethod
    def _bookmark_ref(user_id: str, post_id: str):
        return (
            FirebaseClient.get_db()
            .collection("users").document(user_id)
            .collection("bookmarkedPosts").document(post_id)
        )

    @staticmethod
    def bookmark(user_id: str, post_id: str) -> None:
        ref = MessageBoardService._bookmark_ref(user_id, post_id)
        if ref.get().exists:
            raise InvalidRequestError("Already bookmarked")
        ref.set({"bookmarkedAt": firestore.SERVER_TIMESTAMP})

    @staticmethod
    def remove_bookmark(user_id: str, post_id: str) -> None:
        MessageBoardService._bookmark_ref(user_id, post_id).delete()

    # -------------------------------------------------------------------------
    # Follows
    # -------------------------------------------------------------------------

    @staticmethod
    def follow(user_id: str, target_id: str) -> None:
        """
        Follow another user and notify them.

        Raises:
            InvalidRequestError: Following yourself, or already following
        """
        if target_id == user_id:
            raise InvalidRequestError("Cannot follow yourself")

        users = FirebaseClient.get_db().collection("users")
        following = users.document(user_id).collection("following").document(target_id)
        if following.get().exists:
            raise InvalidRequestError("Already following")

        following.set({"followedAt": firestore.SERVER_TIMESTAMP})
        users.document(target_id).collection("followers").document(user_id).set(
            {"followedAt": firestore.SERVER_TIMESTAMP}
        )

        NotificationService.create(
            target_id,
            NotificationType.MESSAGE_RECEIVED,
            "New Follower",
            f"{_display_name(user_id)} started following you",
            action_url=f"/profile/{user_id}",
            action_label="View Profile",
            metadata={"followerId": user_id, "type": "user_followed"},
        )
        logger.info(f"{user_id} followed {target_id}")

    @staticmethod
    def unfollow(user_id: str, target_id: str) -> None:
        users = FirebaseClient.get_db().collection("users")
        users.document(user_id).collection("following").document(target_id).delete()
        users.document(target_id).collection("followers").document(user_id).delete()

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    @staticmethod
    def notify_comment(user_id: str, post_id: str, comment_id: str, post_author_id: str) -> bool:
        """Tell a post's author about a new comment. Returns whether one was sent."""
        if post_author_id == user_id:
            return False
        NotificationService.create(
            post_author_id,
            NotificationType.MESSAGE_RECEIVED,
            "New Comment",
            f"{_display_name(user_id)} commented on your post",
            action_url=_post_url(post_id),
            action_label="View Post",
            metadata={"postId": post_id, "commentId": comment_id, "type": "post_comment"},
        )
        return True

    @staticmethod
    def notify_reply(
        user_id: str,
        post_id: str,
        comment_id: str,
        reply_id: str,
        comment_author_id: str,
    ) -> bool:
        if comment_author_id == user_id:
            return False
        NotificationService.create(
            comment_author_id,
            NotificationType.MESSAGE_RECEIVED,
            "New Reply",
            f"{_display_name(user_id)} replied to your comment",
            action_url=_post_url(post_id),
            action_label="View Reply",
            metadata={"postId": post_id, "commentId": comment_id, "replyId": reply_id, "type": "post_reply"},
        )
        return True

    @staticmethod
    def notify_mentions(
        user_id: str,
        post_id: str,
        mentions: list[str],
        author_name: str | None = None,
    ) -> int:
        """
        Notify mentioned users, matched case-insensitively by handle or display name.

        Returns:
            Number of users notified
        """
        wanted = {m.lower() for m in mentions if m}
        if not wanted:
            return 0

        recipients: list[str] = []
        for doc in FirebaseClient.get_db().collection("users").stream():
            data = doc.to_dict() or {}
            names = {str(data.get("handle") or "").lower(), str(data.get("displayName") or "").lower()}
            if doc.id != user_id and names & wanted:
                recipients.append(doc.id)

        if not recipients:
            return 0

        name = author_name or _display_name(user_id)
        return NotificationService.create_for_users(
            recipients,
            NotificationType.MESSAGE_RECEIVED,
            "You were mentioned",
            f"{name} mentioned you in a post",
            action_url=_post_url(post_id),
            action_label="View Post",
            metadata={"postId": post_id, "type": "post_mention"},
        )

    # -------------------------------------------------------------------------
    # Badges
    # -------------------------------------------------------------------------

    @staticmethod
    def _eligible(user_id: str, user: dict[str, Any], badge: BadgeDefinition) -> bool:
        if badge.criteria == "date":
            created_at = user.get("createdAt")
            return isinstance(created_at, datetime) and badge.before is not None and created_at < badge.before
        if badge.criteria == "count" and badge.collection and badge.field:
            query = (
                FirebaseClient.get_db()
                .collection(badge.collection)
                .where(filter=firestore.FieldFilter(badge.field, "==", user_id))
                .limit(badge.count)
            )
            return sum(1 for _ in query.stream()) >= badge.count
        return False

    @staticmethod
    def check_badges(user_id: str) -> list[str]:
        """
        Award every badge the user now qualifies for.

        Returns:
            IDs of newly awarded badges
        """
        user = UserService.get_user(user_id)
        if user is None:
            return []

        badges = FirebaseClient.get_db().collection("users").document(user_id).collection("badges")
        awarded = []
        for badge in BADGE_DEFINITIONS:
            ref = badges.document(badge.id)
            if ref.get().exists:
                continue
            if MessageBoardService._eligible(user_id, user, badge):
                ref.set({"earnedAt": firestore.SERVER_TIMESTAMP, "name": badge.name})
                awarded.append(badge.id)

        if awarded:
            logger.info(f"Badges awarded to {user_id}: {', '.join(awarded)}")
        return awarded
