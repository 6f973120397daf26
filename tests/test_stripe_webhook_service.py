# =============================================================================
# tests/test_stripe_webhook_service.py - Stripe Webhook Tests
# =============================================================================
# Events are passed as plain dicts; every handler reads Stripe objects via
# .get(), so dicts and StripeObjects behave the same. Outbound Stripe calls
# are patched.
#
# Run with: pytest tests/test_stripe_webhook_service.py -v
# =============================================================================

from unittest.mock import patch

import pytest
import stripe

from app.config import settings
from app.exceptions import WebhookSignatureError
from core.services import stripe_webhook_service as webhooks


def event(event_type: str, obj: dict, event_id: str = "evt_1", account: str | None = None) -> dict:
    return {"id": event_id, "type": event_type, "account": account, "data": {"object": obj}}


@pytest.fixture
def transfers():
    with patch("stripe.Transfer.create") as create:
        create.return_value = {"id": "tr_1"}
        yield create


class TestVerification:
    """Tests for verify_event and claim_event."""

    def test_no_secret_configured(self):
        """Without secrets the event is acknowledged but not parsed."""
        with patch.object(settings, "STRIPE_WEBHOOK_SECRET", ""), \
                patch.object(settings, "STRIPE_CONNECT_WEBHOOK_SECRET", ""):
            assert webhooks.verify_event(b"{}", "sig") is None

    def test_missing_signature(self):
        with pytest.raises(WebhookSignatureError):
            webhooks.verify_event(b"{}", None)

    def test_falls_back_to_connect_secret(self):
        """The Connect secret is tried when the platform secret fails."""
        parsed = {"id": "evt_1"}

        def construct(payload, signature, secret):
            if secret != "whsec_connect":
                raise stripe.SignatureVerificationError("bad", signature)
            return parsed

        with patch.object(settings, "STRIPE_CONNECT_WEBHOOK_SECRET", "whsec_connect"), \
                patch("stripe.Webhook.construct_event", side_effect=construct):
            assert webhooks.verify_event(b"{}", "t=1,v1=abc") is parsed

    def test_bad_signature(self):
        with patch("stripe.Webhook.construct_event", side_effect=ValueError("bad payload")):
            with pytest.raises(WebhookSignatureError):
                webhooks.verify_event(b"{}", "t=1,v1=abc")

    def test_duplicate_event(self, db):
        """The second delivery of an event ID is not processed again."""
        first = webhooks.handle_event(event("charge.refunded", {"id": "ch_1"}))
        second = webhooks.handle_event(event("charge.refunded", {"id": "ch_1"}))

        assert first == {"received": True}
        assert second == {"received": True, "duplicate": True}
        assert db.data("webhookEventsProcessed/evt_1")["type"] == "charge.refunded"

    def test_unhandled_type(self):
        assert webhooks.handle_event(event("customer.created", {"id": "cus_1"})) == {"received": True}

    def test_handler_errors_are_swallowed(self):
        """A failing handler still acknowledges the event."""
        with patch.object(webhooks, "handle_invoice_paid", side_effect=RuntimeError("boom")):
            result = webhooks.handle_event(event("invoice.paid", {"id": "in_1"}))
        assert result == {"received": True}


class TestCheckoutCompleted:
    """Tests for checkout.session.completed."""

    def test_listing_purchase_creates_order(self, db, seed_user):
        seed_user("buyer", displayName="Buyer")
        seed_user("seller")
        session = {
            "id": "cs_1",
            "mode": "payment",
            "payment_intent": "pi_1",
            "amount_total": 10500,
            "currency": "usd",
            "customer_details": {"email": "buyer@collective.test"},
            "metadata": {
                "listingId": "l1",
                "listingTitle": "Sony FX3",
                "buyerId": "buyer",
                "sellerId": "seller",
                "sellerAccountId": "acct_seller",
                "applicationFeeAmount": "315",
            },
        }

        webhooks.handle_event(event("checkout.session.completed", session))

        orders = [db.data(path) for path in db.paths("orders")]
        assert len(orders) == 1
        order = orders[0]
        assert order["status"] == "awaiting_tracking"
        assert order["amount"] == 10500
        assert order["application_fee_amount"] == 315
        assert order["sellerAccountId"] == "acct_seller"
        assert order["trackingDeadlineAtMs"] > 0

        notification = db.data(db.paths("users/seller/notifications")[0])
        assert notification["type"] == "order_placed"
        assert "Buyer purchased Sony FX3 for $105.00" in notification["message"]

    def test_event_account_wins(self, db):
        session = {"id": "cs_1", "mode": "payment", "metadata": {"sellerAccountId": "acct_meta"}}

        webhooks.handle_event(event("checkout.session.completed", session, account="acct_event"))

        order = db.data(db.paths("orders")[0])
        assert order["sellerAccountId"] == "acct_event"

    def test_membership_activation(self, db, seed_user):
        seed_user("member")
        session = {
            "id": "cs_2",
            "mode": "subscription",
            "subscription": "sub_1",
            "customer": "cus_1",
            "metadata": {"planType": "cca_membership_87", "buyerId": "member"},
        }

        webhooks.handle_event(event("checkout.session.completed", session))

        user = db.data("users/member")
        assert user["membershipActive"] is True
        assert user["membershipPlan"] == "cca_membership_87"
        assert user["membershipSubscriptionId"] == "sub_1"
        assert user["stripeCustomerId"] == "cus_1"

    def test_guest_membership_links_by_email(self, db, seed_user):
        seed_user("member", email="guest@collective.test")
        session = {
            "id": "cs_3",
            "mode": "subscription",
            "subscription": "sub_2",
            "customer_details": {"email": "guest@collective.test"},
            "metadata": {"planType": "cca_monthly_37"},
        }

        webhooks.handle_event(event("checkout.session.completed", session))

        assert db.data("users/member")["membershipPlan"] == "cca_monthly_37"

    def test_unknown_guest_parks_membership(self, db):
        session = {
            "id": "cs_4",
            "mode": "subscription",
            "subscription": "sub_3",
            "customer_email": "new@collective.test",
            "metadata": {"planType": "cca_no_fees_60"},
        }

        webhooks.handle_event(event("checkout.session.completed", session))

        pending = db.data("pendingMemberships/cs_4")
        assert pending["email"] == "new@collective.test"
        assert pending["claimed"] is False

    def test_legacy_subscription_recorded(self, db):
        session = {
            "id": "cs_5",
            "mode": "subscription",
            "subscription": "sub_legacy",
            "amount_total": 1000,
            "metadata": {"legacyCreatorId": "cr1", "buyerId": "fan", "sellerAccountId": "acct_creator"},
        }

        webhooks.handle_event(event("checkout.session.completed", session))

        sub = db.data(db.paths("legacySubscriptions")[0])
        assert sub["status"] == "active"
        assert sub["creatorId"] == "cr1"
        assert sub["sellerAccountId"] == "acct_creator"
        assert db.data(db.paths("users/fan/notifications")[0])["type"] == "legacy_subscription_active"


class TestInvoicePaid:
    """Tests for creator payouts on paid invoices."""

    def test_legacy_payout(self, db, transfers):
        """A Legacy+ invoice transfers the creator share once."""
        db.seed("legacySubscriptions/s1", {
            "subscriptionId": "sub_legacy",
            "creatorId": "cr1",
            "sellerAccountId": "acct_creator",
        })
        db.seed("legacy_creators/cr1", {"ownerUserId": "creator-owner"})
        invoice = {"id": "in_1", "subscription": "sub_legacy", "charge": "ch_1", "currency": "usd"}

        webhooks.handle_event(event("invoice.paid", invoice, event_id="evt_a"))
        webhooks.handle_event(event("invoice.payment_succeeded", invoice, event_id="evt_b"))

        transfers.assert_called_once()
        kwargs = transfers.call_args.kwargs
        assert kwargs["amount"] == 700
        assert kwargs["destination"] == "acct_creator"
        assert kwargs["source_transaction"] == "ch_1"
        assert kwargs["idempotency_key"] == "payout-in_1-legacy"
        assert db.data("legacyPayouts/in_1")["amount"] == 700
        assert db.paths("users/creator-owner/notifications")

    def test_all_access_payout(self, db, transfers):
        """An all-access invoice pays every creator with a Connect account."""
        db.seed("legacy_creators/cr1", {"connectAccountId": "acct_1"})
        db.seed("legacy_creators/cr2", {"connectAccountId": "acct_2"})
        db.seed("legacy_creators/cr3", {})
        invoice = {"id": "in_2", "subscription": "sub_member", "charge": "ch_2"}

        with patch("stripe.Subscription.retrieve", return_value={"id": "sub_member", "metadata": {"planType": "cca_membership_87"}}):
            webhooks.handle_invoice_paid(invoice)

        assert transfers.call_count == 2
        assert {c.kwargs["destination"] for c in transfers.call_args_list} == {"acct_1", "acct_2"}
        assert db.data("legacyPayouts/in_2")["totalAmount"] == 600

    def test_partial_fan_out_is_not_paid_twice(self, db):
        """A transfer failure mid fan-out only retries the unpaid creators."""
        db.seed("legacy_creators/cr1", {"connectAccountId": "acct_1"})
        db.seed("legacy_creators/cr2", {"connectAccountId": "acct_2"})
        invoice = {"id": "in_9", "subscription": "sub_member", "charge": "ch_9"}
        failed = []

        def create(**kwargs):
            if kwargs["destination"] == "acct_2" and not failed:
                failed.append(kwargs)
                raise stripe.APIConnectionError("network down")
            return {"id": f"tr_{kwargs['destination']}"}

        with patch("stripe.Transfer.create", side_effect=create) as transfer, \
                patch("stripe.Subscription.retrieve", return_value={"metadata": {"planType": "cca_membership_87"}}):
            webhooks.handle_event(event("invoice.payment_succeeded", invoice, event_id="evt_a"))
            assert db.data("legacyPayouts/in_9") is None
            webhooks.handle_event(event("invoice.paid", invoice, event_id="evt_b"))

        destinations = [c.kwargs["destination"] for c in transfer.call_args_list]
        assert destinations == ["acct_1", "acct_2", "acct_2"]
        keys = {c.kwargs["idempotency_key"] for c in transfer.call_args_list}
        assert keys == {"payout-in_9-cr1", "payout-in_9-cr2"}
        assert db.data("legacyPayouts/in_9/transfers/cr1")["transferId"] == "tr_acct_1"
        assert db.data("legacyPayouts/in_9")["totalAmount"] == 600

    def test_other_plans_pay_nothing(self, db, transfers):
        db.seed("legacy_creators/cr1", {"connectAccountId": "acct_1"})

        with patch("stripe.Subscription.retrieve", return_value={"metadata": {"planType": "cca_monthly_37"}}):
            webhooks.handle_invoice_paid({"id": "in_3", "subscription": "sub_x"})

        transfers.assert_not_called()
        assert db.data("legacyPayouts/in_3") is None

    def test_charge_from_payment_intent(self):
        with patch("stripe.PaymentIntent.retrieve", return_value={"latest_charge": "ch_9"}):
            assert webhooks.resolve_charge_id({"payment_intent": "pi_9"}) == "ch_9"
        assert webhooks.resolve_charge_id({}) is None


class TestSubscriptionSync:
    """Tests for customer.subscription.updated/deleted."""

    def test_membership_deactivated(self, db, seed_user):
        seed_user("member", membershipActive=True, membershipSubscriptionId="sub_1")
        subscription = {"id": "sub_1", "status": "active", "metadata": {"planType": "cca_monthly_37"}}

        webhooks.handle_event(event("customer.subscription.deleted", subscription))

        assert db.data("users/member")["membershipActive"] is False

    def test_past_due_is_inactive(self, db, seed_user):
        seed_user("member")
        subscription = {"id": "sub_1", "status": "past_due", "metadata": {"planType": "cca_monthly_37", "buyerId": "member"}}

        webhooks.handle_subscription_updated(subscription)

        assert db.data("users/member")["membershipActive"] is False

    def test_legacy_subscription_canceled(self, db):
        db.seed("legacySubscriptions/s1", {"subscriptionId": "sub_legacy", "userId": "fan", "status": "active"})

        webhooks.handle_subscription_deleted({"id": "sub_legacy", "metadata": {}})

        assert db.data("legacySubscriptions/s1")["status"] == "canceled"
        assert db.data(db.paths("users/fan/notifications")[0])["type"] == "legacy_subscription_canceled"
