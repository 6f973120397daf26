# =============================================================================
# tests/test_moderation_service.py - Moderation Tests
# =============================================================================
# Reports, the three-strike rule, profile removal/restore, blocking, and the
# notifications those actions produce.
#
# Run with: pytest tests/test_moderation_service.py -v
# =============================================================================

import pytest

from app.exceptions import InvalidRequestError, ResourceNotFoundError, StrikeLimitReachedError
from core.models import MAX_STRIKES, ReportReason, ReportStatus
from core.services.moderation_service import REPORTS, STRIKES, ModerationService
from core.services.notification_service import NotificationService

ADMIN_UID = "admin-1"


@pytest.fixture
def users(seed_user):
    """Reporter, reported user and the admin account."""
    seed_user("alice", displayName="Alice")
    seed_user("bob", displayName="Bob", strikes=0)
    seed_user(ADMIN_UID, email="admin@collective.test", displayName="Admin")


class TestReports:
    """Tests for submitting and reviewing reports."""

    def test_submit_report(self, db, users):
        """A report is stored pending and the admin is notified."""
        report_id = ModerationService.submit_report("alice", "bob", ReportReason.SPAM, "Link spam")

        report = db.data(f"{REPORTS}/{report_id}")
        assert report["status"] == "pending"
        assert report["reporterId"] == "alice"
        assert report["strikeIssued"] is False

        notifications = NotificationService.list_for_user(ADMIN_UID)
        assert len(notifications) == 1
        assert notifications[0]["type"] == "user_reported"
        assert notifications[0]["metadata"]["reportId"] == report_id
        assert notifications[0]["message"] == "Alice reported Bob for spam: Link spam"

    def test_long_details_truncated_in_notification(self, users):
        ModerationService.submit_report("alice", "bob", ReportReason.OTHER, "x" * 300)

        message = NotificationService.list_for_user(ADMIN_UID)[0]["message"]
        assert message.endswith("...")
        assert len(message) == 103

    def test_cannot_report_self(self, users):
        with pytest.raises(InvalidRequestError):
            ModerationService.submit_report("alice", "alice", ReportReason.SPAM)

    def test_reported_user_must_exist(self, users):
        with pytest.raises(ResourceNotFoundError):
            ModerationService.submit_report("alice", "ghost", ReportReason.SPAM)

    def test_first_report(self, users):
        assert ModerationService.is_first_report("alice") is True
        ModerationService.submit_report("alice", "bob", ReportReason.SPAM)
        assert ModerationService.is_first_report("alice") is False

    def test_list_reports_enriched(self, users):
        """Listing adds user summaries and the current strike count."""
        ModerationService.submit_report("alice", "bob", ReportReason.SPAM)
        ModerationService.submit_report("alice", "bob", ReportReason.HARASSMENT)

        reports = ModerationService.list_reports()

        assert [r["reason"] for r in reports] == ["harassment", "spam"]
        assert reports[0]["reporterInfo"]["displayName"] == "Alice"
        assert reports[0]["reportedUserInfo"]["id"] == "bob"
        assert reports[0]["strikeCount"] == 0

    def test_list_reports_by_status(self, users):
        first = ModerationService.submit_report("alice", "bob", ReportReason.SPAM)
        ModerationService.submit_report("alice", "bob", ReportReason.OTHER)
        ModerationService.update_report_status(first, ReportStatus.DISMISSED, ADMIN_UID)

        dismissed = ModerationService.list_reports(status=ReportStatus.DISMISSED)

        assert [r["id"] for r in dismissed] == [first]
        assert dismissed[0]["reviewedBy"] == ADMIN_UID

    def test_get_missing_report(self, users):
        with pytest.raises(ResourceNotFoundError):
            ModerationService.get_report("nope")


class TestStrikes:
    """Tests for the three-strike rule."""

    def test_issue_strike(self, db, users):
        """A strike increments the count and notifies the user."""
        result = ModerationService.issue_strike("bob", "Spam", ADMIN_UID)

        assert result.strike_count == 1
        assert result.profile_removed is False
        assert db.data("users/bob")["strikes"] == 1
        assert db.data(f"{STRIKES}/{result.strike_id}")["strikeNumber"] == 1

        notification = NotificationService.list_for_user("bob")[0]
        assert notification["type"] == "strike_issued"
        assert notification["title"] == "You received strike 1 of 3"

    def test_strike_marks_report_reviewed(self, db, users):
        report_id = ModerationService.submit_report("alice", "bob", ReportReason.SPAM)

        ModerationService.issue_strike("bob", "Spam", ADMIN_UID, report_id=report_id)

        report = db.data(f"{REPORTS}/{report_id}")
        assert report["strikeIssued"] is True
        assert report["status"] == "reviewed"

    def test_third_strike_removes_profile(self, db, users):
        """The third strike removes the profile automatically."""
        for _ in range(MAX_STRIKES - 1):
            assert ModerationService.issue_strike("bob", "Spam", ADMIN_UID).profile_removed is False

        result = ModerationService.issue_strike("bob", "Harassment", ADMIN_UID)

        bob = db.data("users/bob")
        assert result.strike_count == 3
        assert result.profile_removed is True
        assert bob["profileRemoved"] is True
        assert bob["profileRemovalReason"] == "Automatic removal after 3rd strike. Reason: Harassment"

    def test_fourth_strike_refused(self, db, users):
        db.seed("users/carol", {"email": "carol@collective.test", "strikes": 3})

        with pytest.raises(StrikeLimitReachedError) as exc_info:
            ModerationService.issue_strike("carol", "Spam", ADMIN_UID)

        assert exc_info.value.status_code == 409
        assert db.data("users/carol")["strikes"] == 3
        assert db.paths(STRIKES) == []

    def test_remove_strike_restores_profile(self, db, users):
        """Dropping below three strikes restores a removed profile."""
        strikes = [ModerationService.issue_strike("bob", "Spam", ADMIN_UID) for _ in range(3)]

        remaining = ModerationService.remove_strike(strikes[-1].strike_id, ADMIN_UID)

        bob = db.data("users/bob")
        assert remaining == 2
        assert bob["strikes"] == 2
        assert bob["profileRemoved"] is False
        assert bob["profileRemovalReason"] is None

    def test_remove_missing_strike(self, users):
        with pytest.raises(ResourceNotFoundError):
            ModerationService.remove_strike("nope", ADMIN_UID)

    def test_user_strikes_newest_first(self, users):
        ModerationService.issue_strike("bob", "First", ADMIN_UID)
        ModerationService.issue_strike("bob", "Second", ADMIN_UID)

        strikes, count = ModerationService.get_user_strikes("bob")

        assert count == 2
        assert [s["reason"] for s in strikes] == ["Second", "First"]

    def test_user_without_strikes(self, users):
        assert ModerationService.get_user_strikes("alice") == ([], 0)

    def test_list_strikes_enriched(self, users):
        ModerationService.issue_strike("bob", "Spam", ADMIN_UID)

        strikes = ModerationService.list_strikes(user_id="bob")

        assert strikes[0]["userInfo"]["displayName"] == "Bob"
        assert strikes[0]["adminInfo"]["id"] == ADMIN_UID


class TestBlocking:
    """Tests for user blocking."""

    def test_block_and_unblock(self, users):
        ModerationService.block_user("alice", "bob")
        assert ModerationService.is_blocked("alice", "bob") is True
        assert ModerationService.is_blocked("bob", "alice") is False

        ModerationService.unblock_user("alice", "bob")
        assert ModerationService.is_blocked("alice", "bob") is False

    def test_cannot_block_self(self, users):
        with pytest.raises(InvalidRequestError):
            ModerationService.block_user("alice", "alice")

    def test_block_unknown_user(self, users):
        with pytest.raises(ResourceNotFoundError):
            ModerationService.block_user("alice", "ghost")


class TestNotifications:
    """Tests for reading notifications."""

    def test_mark_read(self, users):
        ModerationService.issue_strike("bob", "One", ADMIN_UID)
        ModerationService.issue_strike("bob", "Two", ADMIN_UID)
        newest = NotificationService.list_for_user("bob")[0]

        NotificationService.mark_read("bob", newest["id"])

        unread = NotificationService.list_for_user("bob", unread_only=True)
        assert len(unread) == 1
        assert NotificationService.mark_all_read("bob") == 1
        assert NotificationService.list_for_user("bob", unread_only=True) == []

    def test_mark_missing_read(self, users):
        with pytest.raises(ResourceNotFoundError):
            NotificationService.mark_read("bob", "nope")

    def test_create_for_users_dedupes(self, db, users):
        from core.models import NotificationType

        written = NotificationService.create_for_users(
            ["alice", "bob", "alice", ""],
            NotificationType.PAYOUT_PROCESSED,
            title="Payout",
            message="Sent",
        )

        assert written == 2
        assert len(db.paths("users/alice/notifications")) == 1
