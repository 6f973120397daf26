# =============================================================================
# core/models/moderation.py - Reports, Strikes and Profile Removal
# =============================================================================
# A user can report another user. An administrator reviews the report and
# may issue a strike. The third strike removes the user's public profile.
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field

MAX_STRIKES = 3


class ReportReason(str, Enum):
    """Why a user was reported."""
    SPAM = "spam"
    HARASSMENT = "harassment"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    FAKE_ACCOUNT = "fake_account"
    OTHER = "other"


class ReportStatus(str, Enum):
    """
    Review state of a report.

    Flow: pending -> reviewed -> resolved | dismissed
    """
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ReportCreate(BaseModel):
    """Body of POST /users/report."""

    reported_user_id: str = Field(
        ...,
        min_length=1,
        description="UID of the user being reported"
    )
    reason: ReportReason
    details: str = Field(
        default="",
        max_length=2000,
        description="Free-text explanation shown to the moderator"
    )


class ReportStatusUpdate(BaseModel):
    """Body of PATCH /admin/moderation/reports/{id}."""
    status: ReportStatus


class StrikeCreate(BaseModel):
    """Body of POST /admin/moderation/strikes."""

    user_id: str = Field(..., min_length=1)
    report_id: str | None = Field(
        default=None,
        description="Report that led to this strike (marked reviewed when given)"
    )
    reason: str = Field(..., min_length=1, max_length=500)
    details: str | None = Field(default=None, max_length=2000)


class ProfileRemovalRequest(BaseModel):
    """Body of POST /admin/moderation/users/{id}/profile."""
    reason: str = Field(..., min_length=1, max_length=500)


class StrikeResult(BaseModel):
    """Outcome of issuing a strike."""
    strike_id: str
    strike_count: int
    profile_removed: bool
