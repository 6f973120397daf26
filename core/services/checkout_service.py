# =============================================================================
# core/services/checkout_service.py - Stripe Checkout Sessions
# =============================================================================
# Three kinds of checkout:
# - Marketplace listing: one-off payment routed to the seller's Connect
#   account, with the platform fee taken as the application fee.
# - Platform membership: monthly subscription on the platform account.
# - Legacy+ creator subscription: monthly subscription whose creator share is
#   transferred to the creator when each invoice is paid.
# =============================================================================

import logging
from typing import Any

from app.config import settings
from app.exceptions import (
    InvalidRequestError,
    PaymentProviderError,
    ResourceNotFoundError,
    SellerNotOnboardedError,
)
from core.models.subscription import (
    LEGACY_SUBSCRIPTION_AMOUNT,
    MEMBERSHIP_PRODUCT_NAME,
    PLAN_CONFIG,
    PlanType,
)
from core.services.entitlement_service import EntitlementService
from core.services.fee_service import compute_application_fee
from core.services.listing_service import ListingService
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient, snapshot_to_dict
from lib.stripe_client import get_stripe

logger = logging.getLogger(__name__)


def _to_cents(dollars: float | int | None) -> int:
    return int(round(float(dollars or 0) * 100))


class CheckoutService:
    """Create Stripe Checkout Sessions."""

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    @staticmethod
    def get_or_create_customer(user_id: str, email: str | None = None) -> str:
        """
        Stripe customer ID for a user, creating and storing one if needed.

        Raises:
            PaymentProviderError: If Stripe rejects the request
        """
        stripe = get_stripe()
        user = UserService.get_user(user_id) or {}
        customer_id = user.get("stripeCustomerId")
        if customer_id:
            return customer_id

        try:
            customer = stripe.Customer.create(
                email=email or user.get("email") or None,
                metadata={"userId": user_id},
            )
        except stripe.StripeError as e:
            logger.error(f"Customer creation failed for {user_id}: {e}")
            raise PaymentProviderError("customer.create", str(e))

        UserService.update(user_id, {"stripeCustomerId": customer.id})
        logger.info(f"Created Stripe customer {customer.id} for {user_id}")
        return customer.id

    # -------------------------------------------------------------------------
    # Marketplace
    # -------------------------------------------------------------------------

    @staticmethod
    def create_listing_checkout(buyer_id: str, listing_id: str) -> dict[str, Any]:
        """
        Checkout for a marketplace listing.

        The charge is a destination charge: funds go to the seller's Connect
        account minus the application fee (waived for no-fees members).

        Returns:
            {"id": session_id, "url": checkout_url}

        Raises:
            ResourceNotFoundError: If the listing doesn't exist
            InvalidRequestError: If the buyer is the seller
            SellerNotOnboardedError: If the seller can't accept charges yet
            PaymentProviderError: If Stripe rejects the request
        """
        stripe = get_stripe()
        listing = ListingService.get_listing(listing_id)
        seller_id = str(listing.get("creatorId") or "")

        if seller_id == buyer_id:
            raise InvalidRequestError("You cannot buy your own listing")

        seller = UserService.get_user(seller_id) or {}
        account_id = seller.get("connectAccountId")
        if not account_id:
            raise SellerNotOnboardedError(seller_id)

        try:
            account = stripe.Account.retrieve(account_id)
        except stripe.StripeError as e:
            logger.error(f"Could not retrieve Connect account {account_id}: {e}")
            raise PaymentProviderError("account.retrieve", str(e))
        if not account.get("charges_enabled"):
            raise SellerNotOnboardedError(seller_id)

        price = _to_cents(listing.get("price"))
        shipping = _to_cents(listing.get("shipping"))
        amount = price + shipping
        if amount <= 0:
            raise InvalidRequestError("Listing has no price", details={"listing_id": listing_id})

        fee = 0 if EntitlementService.has_no_fees_plan(seller_id) else compute_application_fee(amount)
        title = listing.get("title") or "Marketplace item"

        line_items = [{
            "price_data": {
                "currency": "usd",
                "unit_amount": price,
                "product_data": {"name": title},
            },
            "quantity": 1,
        }]
        if shipping:
            line_items.append({
                "price_data": {
                    "currency": "usd",
                    "unit_amount": shipping,
                    "product_data": {"name": "Shipping"},
                },
                "quantity": 1,
            })

        metadata = {
            "listingId": listing_id,
            "listingTitle": title,
            "buyerId": buyer_id,
            "sellerId": seller_id,
            "sellerAccountId": account_id,
            "applicationFeeAmount": str(fee),
        }

        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=line_items,
                payment_intent_data={
                    "transfer_data": {"destination": account_id},
                    "application_fee_amount": fee,
                    "metadata": metadata,
                },
                shipping_address_collection={"allowed_countries": ["US"]},
                success_url=f"{settings.BASE_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{settings.BASE_URL}/marketplace/{listing_id}?canceled=1",
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"Listing checkout failed for {listing_id}: {e}")
            raise PaymentProviderError("checkout.create", str(e))

        logger.info(f"Checkout {session.id} for listing {listing_id}: amount={amount} fee={fee}")
        return {"id": session.id, "url": session.url}

    # -------------------------------------------------------------------------
    # Memberships
    # -------------------------------------------------------------------------

    @staticmethod
    def create_membership_checkout(
        plan: PlanType,
        buyer_id: str | None = None,
        customer_email: str | None = None,
    ) -> dict[str, Any]:
        """
        Subscription checkout for a platform membership.

        Guests may check out with only an email; the webhook links the
        membership to their account later.
        """
        stripe = get_stripe()
        config = PLAN_CONFIG[plan.value]

        metadata = {"planType": plan.value}
        if buyer_id:
            metadata["buyerId"] = buyer_id

        params: dict[str, Any] = {
            "mode": "subscription",
            "line_items": [{
                "price_data": {
                    "currency": "usd",
                    "unit_amount": config.amount,
                    "recurring": {"interval": "month"},
                    "product_data": {"name": MEMBERSHIP_PRODUCT_NAME, "description": config.name},
                },
                "quantity": 1,
            }],
            "subscription_data": {"metadata": metadata},
            "metadata": metadata,
            "success_url": f"{settings.BASE_URL}/home",
            "cancel_url": f"{settings.BASE_URL}/checkout/canceled?plan={plan.value}",
        }
        if buyer_id:
            params["client_reference_id"] = buyer_id
            params["customer"] = CheckoutService.get_or_create_customer(buyer_id, customer_email)
        elif customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Membership checkout failed ({plan.value}): {e}")
            raise PaymentProviderError("checkout.create", str(e))

        logger.info(f"Membership checkout {session.id} ({plan.value}) for {buyer_id or customer_email or 'guest'}")
        return {"id": session.id, "url": session.url}

    @staticmethod
    def create_legacy_subscription_checkout(buyer_id: str, creator_id: str) -> dict[str, Any]:
        """
        Legacy+ subscription checkout for one creator.

        Raises:
            ResourceNotFoundError: If the creator doesn't exist
            InvalidRequestError: If the creator can't receive payouts yet
        """
        stripe = get_stripe()
        creator = snapshot_to_dict(
            FirebaseClient.get_db().collection("legacy_creators").document(creator_id).get()
        )
        if creator is None:
            raise ResourceNotFoundError("Creator", creator_id)

        account_id = creator.get("connectAccountId")
        if not account_id:
            raise InvalidRequestError("Creator is not ready to accept subscriptions")

        creator_name = creator.get("displayName") or creator.get("handle") or "Creator"
        buyer = UserService.get_user(buyer_id) or {}
        metadata = {
            "legacyCreatorId": creator_id,
            "buyerId": buyer_id,
            "sellerAccountId": account_id,
        }

        try:
            session = stripe.checkout.Session.create(
                mode="subscription",
                customer_email=buyer.get("email") or None,
                line_items=[{
                    "price_data": {
                        "currency": "usd",
                        "unit_amount": LEGACY_SUBSCRIPTION_AMOUNT,
                        "recurring": {"interval": "month"},
                        "product_data": {"name": f"Legacy+ Support for {creator_name}"},
                    },
                    "quantity": 1,
                }],
                subscription_data={"metadata": metadata},
                metadata=metadata,
                success_url=f"{settings.BASE_URL}/legacy/success?creatorId={creator_id}",
                cancel_url=f"{settings.BASE_URL}/legacy/canceled?creatorId={creator_id}",
            )
        except stripe.StripeError as e:
            logger.error(f"Legacy subscription checkout failed for {creator_id}: {e}")
            raise PaymentProviderError("checkout.create", str(e))

        logger.info(f"Legacy+ checkout {session.id}: {buyer_id} -> {creator_id}")
        return {"id": session.id, "url": session.url}
