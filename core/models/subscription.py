# =============================================================================
# core/models/subscription.py - Membership Plans
# =============================================================================
# Platform memberships are Stripe subscriptions on the platform account.
# The plan is identified by `planType` metadata on the subscription/price.
# =============================================================================

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel


class PlanType(str, Enum):
    """Membership plans sold by the platform."""
    MONTHLY_37 = "cca_monthly_37"
    NO_FEES_60 = "cca_no_fees_60"
    MEMBERSHIP_87 = "cca_membership_87"


@dataclass(frozen=True)
class PlanConfig:
    """Price and display name of a plan."""
    amount: int  # cents per month
    name: str


PLAN_CONFIG: dict[str, PlanConfig] = {
    PlanType.MONTHLY_37.value: PlanConfig(amount=3700, name="Monthly Membership"),
    PlanType.NO_FEES_60.value: PlanConfig(amount=6000, name="No-Fees Membership"),
    PlanType.MEMBERSHIP_87.value: PlanConfig(amount=8700, name="All-Access Membership"),
}

# Plans whose sellers pay no marketplace platform fee
NO_FEES_PLANS = {PlanType.NO_FEES_60.value, PlanType.MEMBERSHIP_87.value}

MEMBERSHIP_PRODUCT_NAME = "CCA Membership"

# Legacy+ creator subscriptions
LEGACY_SUBSCRIPTION_AMOUNT = 1000  # cents per month
LEGACY_CREATOR_SHARE = 700  # cents transferred to the creator per invoice
ALL_ACCESS_CREATOR_SHARE = 300  # cents per creator per all-access invoice

ACTIVE_SUBSCRIPTION_STATUSES = {"active", "trialing"}


def plan_prices() -> dict[str, int]:
    """Plan type -> monthly price in cents."""
    return {plan: config.amount for plan, config in PLAN_CONFIG.items()}


class ChangePlanRequest(BaseModel):
    """Body of POST /subscriptions/change-plan."""
    new_plan: PlanType
    preview: bool = False


class MembershipCheckoutRequest(BaseModel):
    """Body of POST /checkout/membership."""
    plan: PlanType = PlanType.MEMBERSHIP_87
    customer_email: str | None = None
