# =============================================================================
# core/services/entitlement_service.py - Access Checks
# =============================================================================
# Answers "may this user see this?" for memberships, Legacy+ creator
# subscriptions and course enrollments.
#
# Every check fails closed: a lookup error is logged and treated as
# "no access" so an outage never unlocks paid content.
# =============================================================================

import logging

from firebase_admin import firestore

from app.config import settings
from core.models.subscription import ACTIVE_SUBSCRIPTION_STATUSES, NO_FEES_PLANS
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient

logger = logging.getLogger(__name__)


class EntitlementService:
    """Membership and subscription checks."""

    @staticmethod
    def _active_plan(user_id: str) -> str | None:
        """The user's membership plan when the membership is active."""
        user = UserService.get_user(user_id)
        if not user or not user.get("membershipActive"):
            return None
        return user.get("membershipPlan") or ""

    @staticmethod
    def has_global_membership(user_id: str) -> bool:
        """
        Active platform membership, or ownership of a legacy creator profile.

        Creators always see the platform's member content.
        """
        try:
            if EntitlementService._active_plan(user_id) is not None:
                return True
            owned = (
                FirebaseClient.get_db()
                .collection("legacy_creators")
                .where(filter=firestore.FieldFilter("ownerUserId", "==", user_id))
                .limit(1)
                .stream()
            )
            return any(True for _ in owned)
        except Exception as e:
            logger.warning(f"Membership check failed for {user_id}: {e}")
            return False

    @staticmethod
    def has_all_access_membership(user_id: str) -> bool:
        """Active membership on a plan that unlocks every legacy creator."""
        try:
            plan = EntitlementService._active_plan(user_id)
            return plan is not None and plan in settings.all_access_plans
        except Exception as e:
            logger.warning(f"All-access check failed for {user_id}: {e}")
            return False

    @staticmethod
    def has_no_fees_plan(user_id: str) -> bool:
        """Active membership on a plan that waives the marketplace fee."""
        try:
            plan = EntitlementService._active_plan(user_id)
            return plan is not None and plan in NO_FEES_PLANS
        except Exception as e:
            logger.warning(f"No-fees check failed for {user_id}: {e}")
            return False

    @staticmethod
    def has_creator_subscription(user_id: str, creator_id: str) -> bool:
        """Active or trialing Legacy+ subscription to one creator."""
        try:
            docs = (
                FirebaseClient.get_db()
                .collection("legacySubscriptions")
                .where(filter=firestore.FieldFilter("userId", "==", user_id))
                .where(filter=firestore.FieldFilter("creatorId", "==", creator_id))
                .where(filter=firestore.FieldFilter("status", "in", sorted(ACTIVE_SUBSCRIPTION_STATUSES)))
                .limit(1)
                .stream()
            )
            return any(True for _ in docs)
        except Exception as e:
            logger.warning(f"Creator subscription check failed for {user_id}/{creator_id}: {e}")
            return False

    @staticmethod
    def has_access_to_creator(user_id: str, creator_id: str) -> bool:
        """All-access members and the creator's own subscribers."""
        return (
            EntitlementService.has_all_access_membership(user_id)
            or EntitlementService.has_creator_subscription(user_id, creator_id)
        )

    @staticmethod
    def has_course_enrollment(user_id: str, course_id: str) -> bool:
        """Active enrollment in a course."""
        try:
            docs = (
                FirebaseClient.get_db()
                .collection("enrollments")
                .where(filter=firestore.FieldFilter("userId", "==", user_id))
                .where(filter=firestore.FieldFilter("courseId", "==", course_id))
                .where(filter=firestore.FieldFilter("active", "==", True))
                .limit(1)
                .stream()
            )
            return any(True for _ in docs)
        except Exception as e:
            logger.warning(f"Enrollment check failed for {user_id}/{course_id}: {e}")
            return False
