# =============================================================================
# app/routers/checkout.py - Stripe Checkout Sessions
# =============================================================================
# Each endpoint returns a Checkout Session; the client redirects to its url.
# Orders and memberships are created by the Stripe webhook once payment
# completes, never here.
# =============================================================================

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.dependencies import CurrentUser, OptionalUser
from core.models.subscription import MembershipCheckoutRequest
from core.services.checkout_service import CheckoutService

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class ListingCheckoutRequest(BaseModel):
    listing_id: str = Field(..., min_length=1)


class LegacyCheckoutRequest(BaseModel):
    creator_id: str = Field(..., min_length=1, description="legacy_creators document ID")


class CheckoutResponse(BaseModel):
    """Stripe Checkout Session to redirect to."""
    id: str = Field(..., example="cs_test_a1b2c3")
    url: str | None = Field(default=None, example="https://checkout.stripe.com/c/pay/cs_test_a1b2c3")


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/listing", response_model=CheckoutResponse)
async def checkout_listing(body: ListingCheckoutRequest, user: CurrentUser):
    """
    Buy a marketplace listing.

    The payment goes to the seller's Connect account minus the platform fee
    (no fee for sellers on a no-fees plan). Returns 400 when the seller hasn't
    finished onboarding or the buyer owns the listing.
    """
    return CheckoutService.create_listing_checkout(user.uid, body.listing_id)


@router.post("/membership", response_model=CheckoutResponse)
async def checkout_membership(body: MembershipCheckoutRequest, user: OptionalUser):
    """
    Start a membership subscription.

    Signed-in buyers are attached to their Stripe customer; guests only need
    an email and are linked to an account when they sign up.
    """
    return CheckoutService.create_membership_checkout(
        plan=body.plan,
        buyer_id=user.uid if user else None,
        customer_email=body.customer_email or (user.email if user else None),
    )


@router.post("/legacy", response_model=CheckoutResponse)
async def checkout_legacy_subscription(body: LegacyCheckoutRequest, user: CurrentUser):
    """Subscribe to a single legacy creator's channel."""
    return CheckoutService.create_legacy_subscription_checkout(user.uid, body.creator_id)
