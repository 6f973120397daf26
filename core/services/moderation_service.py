# =============================================================================
# core/services/moderation_service.py - Reports, Strikes and Blocking
# =============================================================================
# Moderation rules:
# - Users report other users; the admin is notified of each report.
# - An admin reviews a report and may issue a strike.
# - The strike count lives on users/{uid}.strikes; each strike is also a
#   userStrikes document numbered 1..3.
# - The third strike removes the user's profile automatically. Removing a
#   strike below the threshold restores it.
# =============================================================================

import logging
from typing import Any

from firebase_admin import firestore

from app.config import settings
from app.exceptions import InvalidRequestError, ResourceNotFoundError, StrikeLimitReachedError
from core.models.moderation import MAX_STRIKES, ReportReason, ReportStatus, StrikeResult
from core.models.notification import NotificationType
from core.services.audit_service import AuditService
from core.services.notification_service import NotificationService
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient, snapshot_to_dict
from lib.utils import truncate

logger = logging.getLogger(__name__)

REPORTS = "userReports"
STRIKES = "userStrikes"
MAX_PAGE = 100


def _strike_count(user: dict[str, Any]) -> int:
    return int(user.get("strikes") or 0)


class ModerationService:
    """
    Service for user moderation.

    Provides a clean interface between API routes and Firestore.
    """

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    @staticmethod
    def submit_report(
        reporter_id: str,
        reported_user_id: str,
        reason: ReportReason,
        details: str = "",
    ) -> str:
        """
        File a report against another user.

        Args:
            reporter_id: UID of the user filing the report
            reported_user_id: UID of the user being reported
            reason: One of the fixed report reasons
            details: Free-text explanation

        Returns:
            The new report ID

        Raises:
            InvalidRequestError: If a user reports themselves
            ResourceNotFoundError: If the reported user doesn't exist
        """
        if reported_user_id == reporter_id:
            raise InvalidRequestError("Invalid user ID", suggestion="You cannot report yourself")

        reported = UserService.require_user(reported_user_id)
        reporter = UserService.get_user(reporter_id) or {}

        _, ref = FirebaseClient.get_db().collection(REPORTS).add({
            "reporterId": reporter_id,
            "reportedUserId": reported_user_id,
            "reason": reason.value,
            "details": details,
            "status": ReportStatus.PENDING.value,
            "strikeIssued": False,
            "createdAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Report {ref.id} filed by {reporter_id} against {reported_user_id} ({reason.value})")

        admin = UserService.find_by_email(settings.ADMIN_EMAIL)
        if admin:
            reporter_name = reporter.get("displayName") or reporter.get("email") or "A user"
            reported_name = reported.get("displayName") or reported.get("email") or reported_user_id
            summary = f"{reporter_name} reported {reported_name} for {reason.value.replace('_', ' ')}"
            if details:
                summary += f": {details}"
            NotificationService.create(
                admin["id"],
                NotificationType.USER_REPORTED,
                title="New user report",
                message=truncate(summary, 100),
                action_url="/admin/moderation",
                action_label="Review report",
                metadata={"reportId": ref.id, "reportedUserId": reported_user_id},
            )
        else:
            logger.warning("Admin user not found; report notification skipped")

        AuditService.record("user_reported", {"reportId": ref.id, "reporterId": reporter_id})
        return ref.id

    @staticmethod
    def is_first_report(reporter_id: str) -> bool:
        """True if the user has never filed a report."""
        docs = (
            FirebaseClient.get_db()
            .collection(REPORTS)
            .where(filter=firestore.FieldFilter("reporterId", "==", reporter_id))
            .limit(1)
            .stream()
        )
        return not any(True for _ in docs)

    @staticmethod
    def list_reports(
        status: ReportStatus | None = None,
        reported_user_id: str | None = None,
        limit: int = MAX_PAGE,
    ) -> list[dict[str, Any]]:
        """
        Newest-first reports for the moderation queue.

        Each report is enriched with reporter/reported user summaries and the
        reported user's current strike count.
        """
        query = FirebaseClient.get_db().collection(REPORTS)
        if status:
            query = query.where(filter=firestore.FieldFilter("status", "==", status.value))
        if reported_user_id:
            query = query.where(filter=firestore.FieldFilter("reportedUserId", "==", reported_user_id))
        query = query.order_by("createdAt", direction=firestore.Query.DESCENDING).limit(min(limit, MAX_PAGE))

        reports = []
        for doc in query.stream():
            report = snapshot_to_dict(doc)
            reported = UserService.get_user(report.get("reportedUserId", "")) or {}
            report["reporterInfo"] = UserService.summary(report.get("reporterId"))
            report["reportedUserInfo"] = UserService.summary(report.get("reportedUserId"))
            report["strikeCount"] = _strike_count(reported)
            reports.append(report)
        return reports

    @staticmethod
    def get_report(report_id: str) -> dict[str, Any]:
        """
        Single report.

        Raises:
            ResourceNotFoundError: If the report doesn't exist
        """
        report = snapshot_to_dict(FirebaseClient.get_db().collection(REPORTS).document(report_id).get())
        if report is None:
            raise ResourceNotFoundError("Report", report_id)
        return report

    @staticmethod
    def update_report_status(report_id: str, status: ReportStatus, admin_id: str) -> dict[str, Any]:
        """Set a report's review status and stamp the reviewer."""
        ModerationService.get_report(report_id)
        ref = FirebaseClient.get_db().collection(REPORTS).document(report_id)
        ref.update({
            "status": status.value,
            "reviewedAt": firestore.SERVER_TIMESTAMP,
            "reviewedBy": admin_id,
        })
        logger.info(f"Report {report_id} marked {status.value} by {admin_id}")
        return ModerationService.get_report(report_id)

    # -------------------------------------------------------------------------
    # Strikes
    # -------------------------------------------------------------------------

    @staticmethod
    def issue_strike(
        user_id: str,
        reason: str,
        issued_by: str,
        report_id: str | None = None,
        details: str | None = None,
    ) -> StrikeResult:
        """
        Issue a strike, removing the profile on the third.

        Returns:
            StrikeResult with the new strike ID and count

        Raises:
            ResourceNotFoundError: If the user (or given report) doesn't exist
            StrikeLimitReachedError: If the user already has MAX_STRIKES
        """
        db = FirebaseClient.get_db()
        user = UserService.require_user(user_id)
        current = _strike_count(user)

        if current >= MAX_STRIKES:
            logger.warning(f"Strike refused for {user_id}: already at {current}")
            raise StrikeLimitReachedError(user_id, current)

        if report_id:
            ModerationService.get_report(report_id)

        new_count = current + 1
        _, strike_ref = db.collection(STRIKES).add({
            "userId": user_id,
            "reportId": report_id,
            "reason": reason,
            "details": details,
            "issuedBy": issued_by,
            "issuedAt": firestore.SERVER_TIMESTAMP,
            "strikeNumber": new_count,
        })
        db.collection("users").document(user_id).update({"strikes": new_count})
        logger.info(f"Strike {new_count}/{MAX_STRIKES} issued to {user_id} by {issued_by}")

        if report_id:
            db.collection(REPORTS).document(report_id).update({
                "strikeIssued": True,
                "status": ReportStatus.REVIEWED.value,
                "reviewedAt": firestore.SERVER_TIMESTAMP,
                "reviewedBy": issued_by,
            })

        NotificationService.create(
            user_id,
            NotificationType.STRIKE_ISSUED,
            title=f"You received strike {new_count} of {MAX_STRIKES}",
            message=truncate(f"Reason: {reason}", 100),
            metadata={"strikeId": strike_ref.id, "strikeNumber": new_count},
        )

        profile_removed = False
        if new_count >= MAX_STRIKES:
            ModerationService.remove_profile(
                user_id,
                issued_by,
                f"Automatic removal after 3rd strike. Reason: {reason}",
            )
            profile_removed = True

        AuditService.record("strike_issued", {
            "userId": user_id,
            "strikeId": strike_ref.id,
            "strikeNumber": new_count,
            "issuedBy": issued_by,
        })

        return StrikeResult(strike_id=strike_ref.id, strike_count=new_count, profile_removed=profile_removed)

    @staticmethod
    def remove_strike(strike_id: str, removed_by: str) -> int:
        """
        Delete a strike and decrement the user's count.

        A removed profile is restored once the count falls below MAX_STRIKES.

        Returns:
            The user's new strike count

        Raises:
            ResourceNotFoundError: If the strike doesn't exist
        """
        db = FirebaseClient.get_db()
        strike_ref = db.collection(STRIKES).document(strike_id)
        strike = snapshot_to_dict(strike_ref.get())
        if strike is None:
            raise ResourceNotFoundError("Strike", strike_id)

        user_id = strike["userId"]
        strike_ref.delete()

        user = UserService.get_user(user_id)
        if user is None:
            logger.warning(f"Strike {strike_id} removed for missing user {user_id}")
            return 0

        new_count = max(0, _strike_count(user) - 1)
        db.collection("users").document(user_id).update({"strikes": new_count})
        logger.info(f"Strike {strike_id} removed from {user_id} by {removed_by}; now {new_count}")

        if user.get("profileRemoved") and new_count < MAX_STRIKES:
            ModerationService.restore_profile(user_id)

        AuditService.record("strike_removed", {"userId": user_id, "strikeId": strike_id, "removedBy": removed_by})
        return new_count

    @staticmethod
    def list_strikes(user_id: str | None = None, limit: int = MAX_PAGE) -> list[dict[str, Any]]:
        """Newest-first strikes with user and issuing admin summaries."""
        query = FirebaseClient.get_db().collection(STRIKES)
        if user_id:
            query = query.where(filter=firestore.FieldFilter("userId", "==", user_id))
        query = query.order_by("issuedAt", direction=firestore.Query.DESCENDING).limit(min(limit, MAX_PAGE))

        strikes = []
        for doc in query.stream():
            strike = snapshot_to_dict(doc)
            strike["userInfo"] = UserService.summary(strike.get("userId"))
            strike["adminInfo"] = UserService.summary(strike.get("issuedBy"))
            strikes.append(strike)
        return strikes

    @staticmethod
    def get_user_strikes(user_id: str) -> tuple[list[dict[str, Any]], int]:
        """
        A user's own strikes, newest first, and the stored count.

        Falls back to an unordered query sorted in memory when the composite
        index for (userId, issuedAt) is missing.
        """
        user = UserService.get_user(user_id) or {}
        count = _strike_count(user)
        if count == 0:
            return [], 0

        base = (
            FirebaseClient.get_db()
            .collection(STRIKES)
            .where(filter=firestore.FieldFilter("userId", "==", user_id))
        )
        try:
            docs = list(base.order_by("issuedAt", direction=firestore.Query.DESCENDING).stream())
            strikes = [snapshot_to_dict(doc) for doc in docs]
        except Exception as e:
            logger.warning(f"Ordered strike query failed ({e}); sorting in memory")
            strikes = [snapshot_to_dict(doc) for doc in base.stream()]
            strikes.sort(key=lambda s: s.get("strikeNumber") or 0, reverse=True)

        return strikes, count

    # -------------------------------------------------------------------------
    # Profile Removal
    # -------------------------------------------------------------------------

    @staticmethod
    def remove_profile(user_id: str, removed_by: str, reason: str) -> None:
        """Hide a user's public profile."""
        UserService.require_user(user_id)
        FirebaseClient.get_db().collection("users").document(user_id).update({
            "profileRemoved": True,
            "profileRemovedAt": firestore.SERVER_TIMESTAMP,
            "profileRemovedBy": removed_by,
            "profileRemovalReason": reason,
        })
        logger.info(f"Profile removed for {user_id} by {removed_by}")
        AuditService.record("profile_removed", {"userId": user_id, "removedBy": removed_by, "reason": reason})

    @staticmethod
    def restore_profile(user_id: str) -> None:
        """Undo a profile removal."""
        UserService.require_user(user_id)
        FirebaseClient.get_db().collection("users").document(user_id).update({
            "profileRemoved": False,
            "profileRemovedAt": None,
            "profileRemovedBy": None,
            "profileRemovalReason": None,
        })
        logger.info(f"Profile restored for {user_id}")
        AuditService.record("profile_restored", {"userId": user_id})

    # -------------------------------------------------------------------------
    # Blocking
    # -------------------------------------------------------------------------

    @staticmethod
    def _block_ref(user_id: str, target_id: str):
        return (
            FirebaseClient.get_db()
            .collection("users")
            .document(user_id)
            .collection("blocked")
            .document(target_id)
        )

    @staticmethod
    def block_user(user_id: str, target_id: str) -> None:
        """
        Block another user.

        Raises:
            InvalidRequestError: If a user tries to block themselves
            ResourceNotFoundError: If the target doesn't exist
        """
        if user_id == target_id:
            raise InvalidRequestError("Invalid user ID", suggestion="You cannot block yourself")
        UserService.require_user(target_id)
        ModerationService._block_ref(user_id, target_id).set({
            "blockedUserId": target_id,
            "blockedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"{user_id} blocked {target_id}")

    @staticmethod
    def unblock_user(user_id: str, target_id: str) -> None:
        """Remove a block (no-op if none)."""
        ModerationService._block_ref(user_id, target_id).delete()
        logger.info(f"{user_id} unblocked {target_id}")

    @staticmethod
    def is_blocked(blocker_id: str, blocked_id: str) -> bool:
        """True if blocker_id has blocked blocked_id."""
        return ModerationService._block_ref(blocker_id, blocked_id).get().exists
