# =============================================================================
# app/routers/admin_moderation.py - Moderation Console
# =============================================================================
# Admin-only review of user reports, strikes and profile removal.
# Three strikes remove a profile automatically; removing a strike that drops
# the count below three restores it.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path, Query

from app.dependencies import AdminUser
from core.models.moderation import (
    MAX_STRIKES,
    ProfileRemovalRequest,
    ReportStatus,
    ReportStatusUpdate,
    StrikeCreate,
    StrikeResult,
)
from core.services.moderation_service import MAX_PAGE, ModerationService

router = APIRouter()


# =============================================================================
# Reports
# =============================================================================

@router.get("/reports")
async def list_reports(
    admin: AdminUser,
    status: Annotated[ReportStatus | None, Query(description="Filter by report status")] = None,
    reported_user_id: Annotated[str | None, Query(description="Only reports against this user")] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE)] = 50,
):
    """
    Reports, newest first.

    Each report includes reporter and reported user summaries and the
    reported user's current strike count.
    """
    reports = ModerationService.list_reports(status=status, reported_user_id=reported_user_id, limit=limit)
    return {"reports": reports, "count": len(reports)}


@router.get("/reports/{report_id}")
async def get_report(
    report_id: Annotated[str, Path(description="Report ID")],
    admin: AdminUser,
):
    return ModerationService.get_report(report_id)


@router.patch("/reports/{report_id}")
async def update_report(
    report_id: Annotated[str, Path(description="Report ID")],
    body: ReportStatusUpdate,
    admin: AdminUser,
):
    return ModerationService.update_report_status(report_id, body.status, admin.uid)


# =============================================================================
# Strikes
# =============================================================================

@router.get("/strikes")
async def list_strikes(
    admin: AdminUser,
    user_id: Annotated[str | None, Query(description="Only strikes for this user")] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE)] = 50,
):
    strikes = ModerationService.list_strikes(user_id=user_id, limit=limit)
    return {"strikes": strikes, "count": len(strikes)}


@router.post("/strikes", response_model=StrikeResult)
async def issue_strike(body: StrikeCreate, admin: AdminUser):
    """
    Issue a strike.

    Returns 409 when the user already has the maximum number of strikes.
    """
    return ModerationService.issue_strike(
        user_id=body.user_id,
        reason=body.reason,
        issued_by=admin.uid,
        report_id=body.report_id,
        details=body.details,
    )


@router.delete("/strikes/{strike_id}")
async def remove_strike(
    strike_id: Annotated[str, Path(description="Strike ID")],
    admin: AdminUser,
):
    count = ModerationService.remove_strike(strike_id, admin.uid)
    return {"success": True, "strike_count": count, "max_strikes": MAX_STRIKES}


# =============================================================================
# Profiles
# =============================================================================

@router.post("/users/{user_id}/profile")
async def remove_profile(
    user_id: Annotated[str, Path(description="UID of the user")],
    body: ProfileRemovalRequest,
    admin: AdminUser,
):
    """Hide a user's profile from the community."""
    ModerationService.remove_profile(user_id, admin.uid, body.reason)
    return {"success": True, "profile_removed": True}


@router.delete("/users/{user_id}/profile")
async def restore_profile(
    user_id: Annotated[str, Path(description="UID of the user")],
    admin: AdminUser,
):
    ModerationService.restore_profile(user_id)
    return {"success": True, "profile_removed": False}
