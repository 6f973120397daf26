# =============================================================================
# core/services/order_service.py - Marketplace Orders
# =============================================================================
# Orders are created by the Stripe webhook when a listing checkout completes
# and then move through the shipping lifecycle:
#
#   awaiting_tracking --(seller adds tracking)--> shipped
#   shipped           --(buyer confirms)--------> delivered
#
# The seller has 72 hours to add tracking (trackingDeadlineAtMs).
# =============================================================================

import logging
import time
from typing import Any

from firebase_admin import firestore

from app.exceptions import AccessDeniedError, InvalidRequestError, ResourceNotFoundError
from core.models.marketplace import TRACKING_DEADLINE_HOURS, OrderStatus
from core.models.notification import NotificationType
from core.services.notification_service import NotificationService
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient, snapshot_to_dict
from lib.stripe_client import get_stripe

logger = logging.getLogger(__name__)


def _display_name(user_id: str | None, fallback: str) -> str:
    user = UserService.get_user(user_id) if user_id else None
    if not user:
        return fallback
    return user.get("displayName") or user.get("handle") or fallback


def _format_amount(cents: int | None) -> str:
    return f"${(cents or 0) / 100:.2f}"


class OrderService:
    """Service for marketplace orders."""

    @staticmethod
    def _get(order_id: str) -> dict[str, Any]:
        order = snapshot_to_dict(FirebaseClient.get_db().collection("orders").document(order_id).get())
        if order is None:
            raise ResourceNotFoundError("Order", order_id)
        return order

    @staticmethod
    def resolve_seller_account(session: Any, event_account: str | None = None) -> str | None:
        """
        Connect account that received the funds.

        Checked in order: the event's account, the session metadata, then the
        PaymentIntent's transfer destination.
        """
        metadata = session.get("metadata") or {}
        account = event_account or metadata.get("sellerAccountId")
        if account or not session.get("payment_intent"):
            return account

        stripe = get_stripe()
        try:
            intent = stripe.PaymentIntent.retrieve(session["payment_intent"])
            return (intent.get("transfer_data") or {}).get("destination")
        except stripe.StripeError as e:
            logger.warning(f"Could not resolve seller account for {session.get('id')}: {e}")
            return None

    @staticmethod
    def create_order_from_checkout(session: Any, event_account: str | None = None) -> str:
        """
        Record a completed listing checkout as an order and notify the seller.

        Args:
            session: Stripe Checkout Session (object or plain dict)
            event_account: Connect account on the webhook event, if any

        Returns:
            The new order ID
        """
        metadata = session.get("metadata") or {}
        customer_details = session.get("customer_details") or {}
        now_ms = int(time.time() * 1000)

        order = {
            "checkoutSessionId": session.get("id"),
            "paymentIntentId": session.get("payment_intent"),
            "amount": session.get("amount_total") or 0,
            "currency": session.get("currency") or "usd",
            "application_fee_amount": int(metadata.get("applicationFeeAmount") or 0),
            "listingId": metadata.get("listingId"),
            "listingTitle": metadata.get("listingTitle"),
            "buyerId": metadata.get("buyerId"),
            "sellerId": metadata.get("sellerId"),
            "customerId": session.get("customer"),
            "customerEmail": customer_details.get("email") or session.get("customer_email"),
            "sellerAccountId": OrderService.resolve_seller_account(session, event_account),
            "shippingDetails": session.get("shipping_details") or (session.get("collected_information") or {}).get("shipping_details"),
            "status": OrderStatus.AWAITING_TRACKING.value,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "trackingDeadlineAtMs": now_ms + TRACKING_DEADLINE_HOURS * 60 * 60 * 1000,
        }
        _, ref = FirebaseClient.get_db().collection("orders").add(order)
        logger.info(f"Order {ref.id} created from checkout {order['checkoutSessionId']} (amount={order['amount']})")

        if order["sellerId"]:
            buyer_name = _display_name(order["buyerId"], "A buyer")
            title = order["listingTitle"] or "your listing"
            NotificationService.create(
                order["sellerId"],
                NotificationType.ORDER_PLACED,
                title="New order",
                message=f"{buyer_name} purchased {title} for {_format_amount(order['amount'])}. Add tracking within {TRACKING_DEADLINE_HOURS} hours.",
                action_url="/dashboard?tab=orders",
                action_label="View order",
                metadata={"orderId": ref.id},
            )
        return ref.id

    @staticmethod
    def update_tracking(
        seller_id: str,
        order_id: str,
        tracking_number: str,
        carrier: str | None = None,
        tracking_url: str | None = None,
    ) -> None:
        """
        Add tracking and mark the order shipped.

        Raises:
            ResourceNotFoundError: If the order doesn't exist
            AccessDeniedError: If the caller isn't the seller
        """
        order = OrderService._get(order_id)
        if order.get("sellerId") != seller_id:
            raise AccessDeniedError("Only the seller can update tracking")

        FirebaseClient.get_db().collection("orders").document(order_id).update({
            "trackingNumber": tracking_number,
            "trackingCarrier": carrier,
            "trackingUrl": tracking_url,
            "status": OrderStatus.SHIPPED.value,
            "shippedAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Order {order_id} shipped ({carrier or 'carrier n/a'} {tracking_number})")

        if order.get("buyerId"):
            seller_name = _display_name(seller_id, "The seller")
            NotificationService.create(
                order["buyerId"],
                NotificationType.ORDER_SHIPPED,
                title="Your order has shipped",
                message=f"{seller_name} shipped {order.get('listingTitle') or 'your order'}. Tracking: {tracking_number}",
                action_url=tracking_url or "/orders",
                action_label="Track package",
                metadata={"orderId": order_id},
            )

    @staticmethod
    def mark_delivered(buyer_id: str, order_id: str) -> None:
        """
        Buyer confirms delivery.

        Raises:
            ResourceNotFoundError: If the order doesn't exist
            AccessDeniedError: If the caller isn't the buyer
            InvalidRequestError: If the order is already delivered
        """
        order = OrderService._get(order_id)
        if order.get("buyerId") != buyer_id:
            raise AccessDeniedError("Only the buyer can mark order as delivered")
        if order.get("status") == OrderStatus.DELIVERED.value:
            raise InvalidRequestError("Order is already marked as delivered")

        FirebaseClient.get_db().collection("orders").document(order_id).update({
            "status": OrderStatus.DELIVERED.value,
            "deliveredAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Order {order_id} delivered")

        if order.get("sellerId"):
            buyer_name = _display_name(buyer_id, "The buyer")
            NotificationService.create(
                order["sellerId"],
                NotificationType.ORDER_DELIVERED,
                title="Order delivered",
                message=f"{buyer_name} confirmed delivery of {order.get('listingTitle') or 'your item'}.",
                action_url="/dashboard?tab=orders",
                metadata={"orderId": order_id},
            )

    @staticmethod
    def list_orders(user_id: str, role: str = "buyer", limit: int = 100) -> list[dict[str, Any]]:
        """Newest-first orders where the user is the buyer or the seller."""
        field = "sellerId" if role == "seller" else "buyerId"
        query = (
            FirebaseClient.get_db()
            .collection("orders")
            .where(filter=firestore.FieldFilter(field, "==", user_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return [snapshot_to_dict(doc) for doc in query.stream()]
