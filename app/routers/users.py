# =============================================================================
# app/routers/users.py - User Reports, Strikes and Blocking
# =============================================================================
# Member-facing moderation endpoints. Admin review lives in
# admin_moderation.py.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path
from pydantic import BaseModel, Field

from app.dependencies import CurrentUser
from core.models.moderation import MAX_STRIKES, ReportCreate
from core.services.moderation_service import ModerationService

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class ReportResponse(BaseModel):
    """Response after filing a report."""
    success: bool = True
    report_id: str = Field(..., example="Fq3x9bC1")


class FirstReportResponse(BaseModel):
    is_first_report: bool


class MyStrikesResponse(BaseModel):
    """The caller's own strike history."""
    strikes: list[dict]
    strike_count: int
    max_strikes: int = MAX_STRIKES


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/report", response_model=ReportResponse)
async def report_user(body: ReportCreate, user: CurrentUser):
    """
    Report another user to the moderators.

    Reporting yourself returns 400.
    """
    report_id = ModerationService.submit_report(
        reporter_id=user.uid,
        reported_user_id=body.reported_user_id,
        reason=body.reason,
        details=body.details,
    )
    return ReportResponse(report_id=report_id)


@router.get("/report/check-first", response_model=FirstReportResponse)
async def check_first_report(user: CurrentUser):
    """Whether the caller has never filed a report (drives the first-time guidance UI)."""
    return FirstReportResponse(is_first_report=ModerationService.is_first_report(user.uid))


@router.get("/me/strikes", response_model=MyStrikesResponse)
async def my_strikes(user: CurrentUser):
    strikes, count = ModerationService.get_user_strikes(user.uid)
    return MyStrikesResponse(strikes=strikes, strike_count=count)


@router.post("/{user_id}/block")
async def block_user(
    user_id: Annotated[str, Path(description="UID of the user to block")],
    user: CurrentUser,
):
    ModerationService.block_user(user.uid, user_id)
    return {"success": True, "blocked": True}


@router.delete("/{user_id}/block")
async def unblock_user(
    user_id: Annotated[str, Path(description="UID of the user to unblock")],
    user: CurrentUser,
):
    ModerationService.unblock_user(user.uid, user_id)
    return {"success": True, "blocked": False}


@router.get("/{user_id}/block")
async def block_status(
    user_id: Annotated[str, Path(description="UID of the other user")],
    user: CurrentUser,
):
    return {"blocked": ModerationService.is_blocked(user.uid, user_id)}
