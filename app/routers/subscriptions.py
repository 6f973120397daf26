# =============================================================================
# app/routers/subscriptions.py - Membership Subscription Management
# =============================================================================

from fastapi import APIRouter

from app.dependencies import CurrentUser
from core.models.subscription import ChangePlanRequest
from core.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("/details")
async def subscription_details(user: CurrentUser):
    """Current plan, status, next billing date and pending cancellation."""
    return SubscriptionService.details(user.uid)


@router.post("/cancel")
async def cancel_subscription(user: CurrentUser):
    """Cancel at the end of the current billing period."""
    return SubscriptionService.cancel(user.uid)


@router.post("/change-plan")
async def change_plan(body: ChangePlanRequest, user: CurrentUser):
    """
    Switch membership plan.

    With preview=true nothing changes; the response shows the prorated
    charge or credit. Otherwise the subscription is updated immediately and
    the difference invoiced.
    """
    return SubscriptionService.change_plan(user.uid, body.new_plan, preview=body.preview)
