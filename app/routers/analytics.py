# =============================================================================
# app/routers/analytics.py - Seller Analytics
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Query

from app.dependencies import CurrentUser
from core.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get("/seller")
async def seller_analytics(
    user: CurrentUser,
    include_stripe_fees: Annotated[bool, Query(description="Look up Stripe processing fees per order")] = True,
):
    """Sales totals, fees and a per-month breakdown for the caller's orders."""
    return AnalyticsService.seller_summary(user.uid, include_stripe_fees=include_stripe_fees)
