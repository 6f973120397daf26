# =============================================================================
# core/services/subscription_service.py - Membership Subscriptions
# =============================================================================
# Reads and changes a member's platform subscription in Stripe and keeps the
# users/{uid} membership fields in step.
#
# Plan changes are prorated with always_invoice, so Stripe bills (upgrade) or
# credits (downgrade) the difference right away. Credit invoices are later
# recognised by classify_plan_change_invoice() to backfill order history.
# =============================================================================

import logging
import time
from typing import Any

from firebase_admin import firestore

from app.exceptions import (
    InvalidRequestError,
    PaymentProviderError,
    ResourceNotFoundError,
    SubscriptionStateError,
)
from core.models.marketplace import OrderStatus
from core.models.notification import NotificationType
from core.models.subscription import MEMBERSHIP_PRODUCT_NAME, PLAN_CONFIG, PlanType, plan_prices
from core.services.notification_service import NotificationService
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient
from lib.stripe_client import get_stripe
from lib.utils import days_until

logger = logging.getLogger(__name__)

SUBSCRIPTION_CHANGE = "subscription_change"
# Max distance (cents) between a proration line and a plan price for the line
# to be attributed to that plan
PRICE_MATCH_TOLERANCE = 1000


def plan_name(plan_type: str | None) -> str:
    config = PLAN_CONFIG.get(plan_type or "")
    return config.name if config else (plan_type or "Unknown plan")


def _period_end(subscription: Any) -> int | None:
    """current_period_end, which newer API versions only set on items."""
    end = subscription.get("current_period_end")
    if end:
        return int(end)
    items = (subscription.get("items") or {}).get("data") or []
    if items and items[0].get("current_period_end"):
        return int(items[0]["current_period_end"])
    return None


def _line_plan_type(line: Any) -> str | None:
    for key in ("price", "plan"):
        obj = line.get(key) or {}
        if isinstance(obj, str):
            continue
        plan_type = (obj.get("metadata") or {}).get("planType")
        if plan_type:
            return plan_type
    return None


# =============================================================================
# Invoice Classification
# =============================================================================

def classify_plan_change_invoice(
    invoice: Any,
    prices: dict[str, int] | None = None,
) -> dict[str, Any] | None:
    """
    Recognise a downgrade credit invoice and work out which plans it moved between.

    An invoice is a plan change when its total (or amount due) is negative
    and it has proration lines, "remaining time on"/"unused time on" line
    descriptions, or both positive and negative lines.

    Args:
        invoice: Stripe Invoice (object or dict) with expanded lines
        prices: Plan type -> monthly price in cents (defaults to the plan table)

    Returns:
        None if the invoice isn't a plan change, else
        {"invoiceId", "creditAmount", "currentPlanType", "newPlanType", "title"}

    Example:
        classify_plan_change_invoice({
            "id": "in_1", "total": -2700, "amount_due": 0,
            "lines": {"data": [
                {"amount": -8700, "description": "Unused time on All-Access", "proration": True},
                {"amount": 6000, "description": "Remaining time on No-Fees", "proration": True},
            ]},
        })
        # -> currentPlanType cca_membership_87, newPlanType cca_no_fees_60
    """
    prices = prices if prices is not None else plan_prices()
    total = invoice.get("total") or 0
    amount_due = invoice.get("amount_due") or 0
    if total >= 0 and amount_due >= 0:
        return None

    lines = (invoice.get("lines") or {}).get("data") or []

    def description(line: Any) -> str:
        return (line.get("description") or "").lower()

    has_proration = any(line.get("proration") for line in lines)
    has_pattern = any(
        "remaining time on" in description(line) or "unused time on" in description(line)
        for line in lines
    )
    has_mixed = any((line.get("amount") or 0) > 0 for line in lines) and any(
        (line.get("amount") or 0) < 0 for line in lines
    )
    if not (has_proration or has_pattern or has_mixed):
        return None

    old_price = new_price = 0
    current_plan = new_plan = None
    for line in lines:
        desc = description(line)
        pattern = "remaining time on" in desc or "unused time on" in desc
        if not line.get("proration") and not pattern:
            continue

        amount = line.get("amount") or 0
        line_plan = _line_plan_type(line)
        if amount < 0 or "unused time" in desc:
            old_price = abs(amount)
            current_plan = current_plan or line_plan
        elif amount > 0 or "remaining time" in desc:
            new_price = amount
            new_plan = new_plan or line_plan

    for plan, price in prices.items():
        if not current_plan and old_price and abs(old_price - price) < PRICE_MATCH_TOLERANCE:
            current_plan = plan
        if not new_plan and new_price and abs(new_price - price) < PRICE_MATCH_TOLERANCE:
            new_plan = plan

    if current_plan and new_plan:
        title = f"Subscription Downgrade: {plan_name(current_plan)} → {plan_name(new_plan)}"
    else:
        title = "Subscription Downgrade (Credit)"

    return {
        "invoiceId": invoice.get("id"),
        "creditAmount": abs(total or amount_due),
        "currentPlanType": current_plan,
        "newPlanType": new_plan,
        "title": title,
    }


class SubscriptionService:
    """Membership subscription management."""

    @staticmethod
    def details(user_id: str) -> dict[str, Any]:
        """
        Current membership and its next billing date.

        Stripe failures degrade to the stored plan with status "unknown".
        """
        stripe = get_stripe()
        user = UserService.require_user(user_id)
        plan = user.get("membershipPlan")
        subscription_id = user.get("membershipSubscriptionId")

        if not user.get("membershipActive") or not plan or not subscription_id:
            return {"hasSubscription": False, "membershipActive": False}

        status = "unknown"
        period_end = None
        cancel_at_period_end = bool(user.get("subscriptionCancelAtPeriodEnd"))
        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
            status = subscription.get("status") or "unknown"
            period_end = _period_end(subscription)
            cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
        except stripe.StripeError as e:
            logger.warning(f"Could not fetch subscription {subscription_id}: {e}")

        return {
            "hasSubscription": True,
            "membershipActive": True,
            "plan": plan,
            "planName": plan_name(plan),
            "subscriptionId": subscription_id,
            "status": status,
            "currentPeriodEnd": period_end,
            "nextBillingDate": (
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(period_end)) if period_end else None
            ),
            "cancelAtPeriodEnd": cancel_at_period_end,
        }

    @staticmethod
    def cancel(user_id: str) -> dict[str, Any]:
        """
        Cancel at period end (no refund).

        Raises:
            ResourceNotFoundError: If the user has no subscription
            SubscriptionStateError: If the subscription isn't active
        """
        stripe = get_stripe()
        user = UserService.require_user(user_id)
        subscription_id = user.get("membershipSubscriptionId")
        if not subscription_id:
            raise ResourceNotFoundError("Subscription", user_id)

        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
            if subscription.get("status") != "active":
                raise SubscriptionStateError("Subscription is not active", {"status": subscription.get("status")})
            stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
        except stripe.StripeError as e:
            logger.error(f"Cancel failed for {subscription_id}: {e}")
            raise PaymentProviderError("subscription.cancel", str(e))

        UserService.update(user_id, {
            "subscriptionCancelAtPeriodEnd": True,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Subscription {subscription_id} of {user_id} set to cancel at period end")
        return {
            "success": True,
            "cancelAtPeriodEnd": True,
            "message": "Subscription will be canceled at the end of the billing period",
        }

    # -------------------------------------------------------------------------
    # Plan Changes
    # -------------------------------------------------------------------------

    @staticmethod
    def _membership_price(new_plan: str) -> str:
        """Create a monthly price for the plan on the membership product."""
        stripe = get_stripe()
        products = stripe.Product.list(limit=100)
        product = next(
            (p for p in products.get("data") or [] if p.get("name") == MEMBERSHIP_PRODUCT_NAME),
            None,
        )
        if product is None:
            product = stripe.Product.create(
                name=MEMBERSHIP_PRODUCT_NAME,
                description="Course Creator Academy membership plans",
            )

        price = stripe.Price.create(
            currency="usd",
            unit_amount=PLAN_CONFIG[new_plan].amount,
            recurring={"interval": "month"},
            product=product.id,
            metadata={"planType": new_plan},
        )
        return price.id

    @staticmethod
    def _proration(invoice: Any, is_upgrade: bool, subscription: Any, current_price: int) -> tuple[int, int, int]:
        """
        (proration_amount, credit_amount, days_remaining) from a preview invoice.

        Without proration lines, upgrades fall back to amount_due and
        downgrades to a day-rate estimate over the remaining period.
        """
        proration = credit = 0
        for line in (invoice.get("lines") or {}).get("data") or []:
            is_proration = line.get("proration") or (
                (line.get("parent") or {}).get("subscription_item_details") or {}
            ).get("proration")
            if not is_proration:
                continue
            amount = line.get("amount") or 0
            if amount > 0:
                proration += amount
            elif amount < 0:
                credit += abs(amount)

        period_end = _period_end(subscription)
        days_remaining = days_until(period_end, time.time()) if period_end else 0

        if proration == 0 and credit == 0:
            amount_due = invoice.get("amount_due") or 0
            if is_upgrade and amount_due > 0:
                proration = amount_due
            elif not is_upgrade:
                if amount_due < 0:
                    credit = abs(amount_due)
                elif days_remaining:
                    credit = round(current_price / 30 * days_remaining)

        return proration, credit, days_remaining

    @staticmethod
    def change_plan(user_id: str, new_plan: PlanType, preview: bool = False) -> dict[str, Any]:
        """
        Switch a member to another plan with immediate proration.

        Args:
            user_id: Member UID
            new_plan: Target plan
            preview: Only compute the charge/credit, change nothing

        Raises:
            InvalidRequestError: Unknown plan or already on it
            ResourceNotFoundError: The user has no subscription
            SubscriptionStateError: The subscription isn't active or has no items
            PaymentProviderError: Stripe rejected a request
        """
        stripe = get_stripe()
        new_plan_type = new_plan.value if isinstance(new_plan, PlanType) else str(new_plan)
        if new_plan_type not in PLAN_CONFIG:
            raise InvalidRequestError("Invalid plan type", details={"plan": new_plan_type})

        user = UserService.require_user(user_id)
        current_plan = user.get("membershipPlan")
        subscription_id = user.get("membershipSubscriptionId")
        if not subscription_id:
            raise ResourceNotFoundError("Subscription", user_id)
        if current_plan == new_plan_type:
            raise InvalidRequestError("Already on this plan")

        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
        except stripe.StripeError as e:
            raise PaymentProviderError("subscription.retrieve", str(e))

        if subscription.get("status") != "active":
            raise SubscriptionStateError("Subscription is not active", {"status": subscription.get("status")})
        items = (subscription.get("items") or {}).get("data") or []
        if not items:
            raise SubscriptionStateError("Subscription has no items")
        current_item = items[0]

        current_price = PLAN_CONFIG[current_plan].amount if current_plan in PLAN_CONFIG else 0
        new_price = PLAN_CONFIG[new_plan_type].amount
        is_upgrade = new_price > current_price

        try:
            price_id = SubscriptionService._membership_price(new_plan_type)
            upcoming = stripe.Invoice.create_preview(
                customer=subscription.get("customer"),
                subscription=subscription_id,
                subscription_details={
                    "items": [{"id": current_item.get("id"), "price": price_id}],
                    "proration_behavior": "always_invoice",
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Plan change preview failed for {user_id}: {e}")
            raise PaymentProviderError("invoice.preview", str(e))

        proration, credit, days_remaining = SubscriptionService._proration(
            upcoming, is_upgrade, subscription, current_price
        )
        display_amount = proration if is_upgrade else credit
        logger.info(
            f"Plan change {current_plan} -> {new_plan_type} for {user_id}: "
            f"upgrade={is_upgrade} proration={proration} credit={credit} days={days_remaining}"
        )

        if preview:
            return {
                "success": True,
                "preview": True,
                "isUpgrade": is_upgrade,
                "prorationAmount": display_amount,
                "creditAmount": credit,
                "daysRemaining": days_remaining,
                "message": (
                    f"You'll be charged ${proration / 100:.2f} for the prorated upgrade."
                    if is_upgrade
                    else f"You'll receive a credit of ${credit / 100:.2f} for the unused portion."
                ),
            }

        try:
            updated = stripe.Subscription.modify(
                subscription_id,
                items=[{"id": current_item.get("id"), "price": price_id}],
                proration_behavior="always_invoice",
                metadata={"planType": new_plan_type, "buyerId": user_id},
            )
        except stripe.StripeError as e:
            logger.error(f"Plan change failed for {user_id}: {e}")
            raise PaymentProviderError("subscription.update", str(e))

        UserService.update(user_id, {
            "membershipPlan": new_plan_type,
            "membershipActive": True,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })

        direction = "Upgrade" if is_upgrade else "Downgrade"
        NotificationService.create(
            user_id,
            NotificationType.SUBSCRIPTION_UPGRADED if is_upgrade else NotificationType.SUBSCRIPTION_DOWNGRADED,
            title=f"Subscription {direction.lower()}d",
            message=f"You're now on the {plan_name(new_plan_type)}.",
            action_url="/dashboard?tab=subscription",
            metadata={"subscriptionId": subscription_id, "planType": new_plan_type},
        )

        FirebaseClient.get_db().collection("orders").add({
            "orderType": SUBSCRIPTION_CHANGE,
            "paymentIntentId": None,
            "amount": display_amount,
            "currency": "usd",
            "buyerId": user_id,
            "sellerId": None,
            "sellerAccountId": None,
            "subscriptionId": subscription_id,
            "currentPlanType": current_plan,
            "newPlanType": new_plan_type,
            "listingTitle": f"Subscription {direction}: {plan_name(current_plan)} → {plan_name(new_plan_type)}",
            "status": OrderStatus.COMPLETED.value,
            "customerId": subscription.get("customer"),
            "customerEmail": user.get("email"),
            "createdAt": firestore.SERVER_TIMESTAMP,
        })

        return {
            "success": True,
            "subscriptionId": updated.get("id") or subscription_id,
            "newPlanType": new_plan_type,
            "isUpgrade": is_upgrade,
            "prorationAmount": display_amount,
            "creditAmount": credit,
            "message": (
                f"Plan upgraded! You've been charged ${proration / 100:.2f} for the prorated upgrade."
                if is_upgrade
                else f"Plan downgraded! You'll receive a credit of ${credit / 100:.2f} for the unused portion."
            ),
        }
