# =============================================================================
# tests/test_subscription_service.py - Membership Subscription Tests
# =============================================================================
# Plan-change invoice classification, subscription details, cancellation
# and prorated plan changes against patched Stripe calls.
#
# Run with: pytest tests/test_subscription_service.py -v
# =============================================================================

import time
from unittest.mock import MagicMock, patch

import pytest
import stripe

from app.exceptions import (
    InvalidRequestError,
    PaymentProviderError,
    ResourceNotFoundError,
    SubscriptionStateError,
)
from core.models import PlanType
from core.services.subscription_service import (
    SUBSCRIPTION_CHANGE,
    SubscriptionService,
    classify_plan_change_invoice,
)


def active_subscription(**extra):
    return {
        "id": "sub_1",
        "status": "active",
        "customer": "cus_1",
        "items": {"data": [{"id": "si_1", "current_period_end": int(time.time()) + 10 * 86400}]},
        **extra,
    }


@pytest.fixture
def member(seed_user):
    return seed_user(
        "member",
        membershipActive=True,
        membershipPlan="cca_membership_87",
        membershipSubscriptionId="sub_1",
    )


# =============================================================================
# Classification
# =============================================================================

class TestClassifyPlanChangeInvoice:
    """Tests for classify_plan_change_invoice."""

    def test_downgrade_from_line_amounts(self):
        """Plans are matched by price when lines carry no metadata."""
        invoice = {
            "id": "in_1",
            "total": -2700,
            "amount_due": 0,
            "lines": {"data": [
                {"amount": -8700, "description": "Unused time on All-Access", "proration": True},
                {"amount": 6000, "description": "Remaining time on No-Fees", "proration": True},
            ]},
        }

        change = classify_plan_change_invoice(invoice)

        assert change["invoiceId"] == "in_1"
        assert change["creditAmount"] == 2700
        assert change["currentPlanType"] == "cca_membership_87"
        assert change["newPlanType"] == "cca_no_fees_60"
        assert change["title"] == "Subscription Downgrade: All-Access Membership → No-Fees Membership"

    def test_metadata_wins_over_price(self):
        invoice = {
            "id": "in_2",
            "total": -500,
            "lines": {"data": [
                {"amount": -3000, "proration": True, "price": {"metadata": {"planType": "cca_no_fees_60"}}},
                {"amount": 2500, "proration": True, "price": {"metadata": {"planType": "cca_monthly_37"}}},
            ]},
        }

        change = classify_plan_change_invoice(invoice)

        assert change["currentPlanType"] == "cca_no_fees_60"
        assert change["newPlanType"] == "cca_monthly_37"

    def test_unmatched_plans_get_generic_title(self):
        invoice = {"id": "in_3", "total": -100, "lines": {"data": [{"amount": -100, "proration": True}]}}

        change = classify_plan_change_invoice(invoice, prices={})

        assert change["title"] == "Subscription Downgrade (Credit)"
        assert change["currentPlanType"] is None

    def test_positive_invoice_ignored(self):
        assert classify_plan_change_invoice({"id": "in_4", "total": 8700, "amount_due": 8700}) is None

    def test_negative_without_proration_ignored(self):
        invoice = {"id": "in_5", "total": -100, "lines": {"data": [{"amount": -100, "description": "Refund"}]}}
        assert classify_plan_change_invoice(invoice) is None


# =============================================================================
# Details & Cancel
# =============================================================================

class TestDetails:
    """Tests for SubscriptionService.details."""

    def test_no_subscription(self, seed_user):
        seed_user("u1")
        assert SubscriptionService.details("u1") == {"hasSubscription": False, "membershipActive": False}

    def test_active_subscription(self, member):
        subscription = active_subscription(current_period_end=1_735_689_600, cancel_at_period_end=True)
        with patch("stripe.Subscription.retrieve", return_value=subscription):
            details = SubscriptionService.details("member")

        assert details["planName"] == "All-Access Membership"
        assert details["status"] == "active"
        assert details["nextBillingDate"] == "2025-01-01T00:00:00Z"
        assert details["cancelAtPeriodEnd"] is True

    def test_stripe_failure_degrades(self, member):
        with patch("stripe.Subscription.retrieve", side_effect=stripe.APIConnectionError("offline")):
            details = SubscriptionService.details("member")

        assert details["hasSubscription"] is True
        assert details["status"] == "unknown"
        assert details["nextBillingDate"] is None


class TestCancel:
    """Tests for SubscriptionService.cancel."""

    def test_cancel_at_period_end(self, db, member):
        with patch("stripe.Subscription.retrieve", return_value=active_subscription()), \
                patch("stripe.Subscription.modify") as modify:
            result = SubscriptionService.cancel("member")

        modify.assert_called_once_with("sub_1", cancel_at_period_end=True)
        assert result["cancelAtPeriodEnd"] is True
        assert db.data("users/member")["subscriptionCancelAtPeriodEnd"] is True

    def test_inactive_subscription(self, member):
        with patch("stripe.Subscription.retrieve", return_value=active_subscription(status="canceled")):
            with pytest.raises(SubscriptionStateError):
                SubscriptionService.cancel("member")

    def test_no_subscription(self, seed_user):
        seed_user("u1")
        with pytest.raises(ResourceNotFoundError):
            SubscriptionService.cancel("u1")

    def test_stripe_error(self, member):
        with patch("stripe.Subscription.retrieve", side_effect=stripe.InvalidRequestError("gone", "id")):
            with pytest.raises(PaymentProviderError):
                SubscriptionService.cancel("member")


# =============================================================================
# Plan Changes
# =============================================================================

@pytest.fixture
def plan_change_stripe():
    """Patch every Stripe call change_plan makes."""
    with patch.object(SubscriptionService, "_membership_price", return_value="price_new"), \
            patch("stripe.Subscription.retrieve", return_value=active_subscription()) as retrieve, \
            patch("stripe.Invoice.create_preview") as preview, \
            patch("stripe.Subscription.modify", return_value={"id": "sub_1"}) as modify:
        yield {"retrieve": retrieve, "preview": preview, "modify": modify}


class TestChangePlan:
    """Tests for SubscriptionService.change_plan."""

    def test_downgrade_preview(self, db, member, plan_change_stripe):
        """Preview reports the credit and writes nothing."""
        plan_change_stripe["preview"].return_value = {
            "amount_due": 0,
            "lines": {"data": [
                {"amount": -2900, "proration": True},
                {"amount": 2000, "proration": True},
            ]},
        }

        result = SubscriptionService.change_plan("member", PlanType.NO_FEES_60, preview=True)

        assert result["preview"] is True
        assert result["isUpgrade"] is False
        assert result["creditAmount"] == 2900
        assert result["prorationAmount"] == 2900
        assert result["daysRemaining"] == 10
        plan_change_stripe["modify"].assert_not_called()
        assert db.data("users/member")["membershipPlan"] == "cca_membership_87"

    def test_upgrade(self, db, seed_user, plan_change_stripe):
        seed_user("u2", membershipActive=True, membershipPlan="cca_monthly_37", membershipSubscriptionId="sub_1")
        plan_change_stripe["preview"].return_value = {"amount_due": 1650, "lines": {"data": []}}

        result = SubscriptionService.change_plan("u2", PlanType.MEMBERSHIP_87)

        assert result["isUpgrade"] is True
        assert result["prorationAmount"] == 1650
        modify_kwargs = plan_change_stripe["modify"].call_args.kwargs
        assert modify_kwargs["proration_behavior"] == "always_invoice"
        assert modify_kwargs["items"] == [{"id": "si_1", "price": "price_new"}]
        assert modify_kwargs["metadata"] == {"planType": "cca_membership_87", "buyerId": "u2"}

        assert db.data("users/u2")["membershipPlan"] == "cca_membership_87"
        order = db.data(db.paths("orders")[0])
        assert order["orderType"] == SUBSCRIPTION_CHANGE
        assert order["amount"] == 1650
        assert order["status"] == "completed"
        notification = db.data(db.paths("users/u2/notifications")[0])
        assert notification["type"] == "subscription_upgraded"

    def test_downgrade_estimates_credit_without_lines(self, member, plan_change_stripe):
        """No proration lines: credit is the day rate over the remaining period."""
        plan_change_stripe["preview"].return_value = {"amount_due": 0, "lines": {"data": []}}

        result = SubscriptionService.change_plan("member", PlanType.MONTHLY_37, preview=True)

        assert result["creditAmount"] == round(8700 / 30 * 10)

    def test_same_plan_rejected(self, member, plan_change_stripe):
        with pytest.raises(InvalidRequestError):
            SubscriptionService.change_plan("member", PlanType.MEMBERSHIP_87)

    def test_inactive_subscription(self, member, plan_change_stripe):
        plan_change_stripe["retrieve"].return_value = active_subscription(status="past_due")
        with pytest.raises(SubscriptionStateError):
            SubscriptionService.change_plan("member", PlanType.MONTHLY_37)

    def test_membership_price_reuses_product(self):
        product = MagicMock(id="prod_1")
        product.get.return_value = "CCA Membership"
        with patch("stripe.Product.list", return_value={"data": [product]}), \
                patch("stripe.Product.create") as create_product, \
                patch("stripe.Price.create", return_value=MagicMock(id="price_1")) as create_price:
            assert SubscriptionService._membership_price("cca_no_fees_60") == "price_1"

        create_product.assert_not_called()
        assert create_price.call_args.kwargs["unit_amount"] == 6000
        assert create_price.call_args.kwargs["product"] == "prod_1"
