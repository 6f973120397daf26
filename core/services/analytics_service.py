# =============================================================================
# core/services/analytics_service.py - Seller Earnings
# =============================================================================
# Aggregates a seller's orders into gross revenue, platform fees, Stripe
# processing fees and net payout, overall and per calendar month.
# =============================================================================

import logging
from typing import Any

import pandas as pd
from firebase_admin import firestore

from lib.firebase_client import FirebaseClient, to_millis
from lib.stripe_client import get_stripe

logger = logging.getLogger(__name__)

COLUMNS = ["amount", "application_fee_amount", "stripe_fee", "created_ms"]


def stripe_fee_for_payment_intent(payment_intent_id: str) -> int:
    """
    Stripe processing fee (cents) of a PaymentIntent's latest charge.

    Returns 0 when the fee can't be determined.
    """
    stripe = get_stripe()
    try:
        intent = stripe.PaymentIntent.retrieve(
            payment_intent_id,
            expand=["latest_charge.balance_transaction"],
        )
        charge = intent.get("latest_charge")
        if not charge or isinstance(charge, str):
            return 0
        balance_tx = charge.get("balance_transaction")
        if isinstance(balance_tx, str):
            balance_tx = stripe.BalanceTransaction.retrieve(balance_tx)
        return int((balance_tx or {}).get("fee") or 0)
    except stripe.StripeError as e:
        logger.debug(f"Fee lookup failed for {payment_intent_id}: {e}")
        return 0


def summarize_orders(frame: pd.DataFrame) -> dict[str, Any]:
    """
    Totals and per-month breakdown of an orders frame.

    The frame has the COLUMNS above; created_ms may be missing (NaN), in
    which case the order is grouped under "unknown".
    """
    if frame.empty:
        return {
            "ordersCount": 0,
            "gross": 0,
            "applicationFees": 0,
            "stripeFees": 0,
            "netAfterPlatform": 0,
            "netAfterStripe": 0,
            "monthly": [],
        }

    gross = int(frame["amount"].sum())
    application_fees = int(frame["application_fee_amount"].sum())
    stripe_fees = int(frame["stripe_fee"].sum())

    created = pd.to_numeric(frame["created_ms"], errors="coerce")
    months = pd.to_datetime(created, unit="ms", utc=True)
    frame = frame.assign(month=months.dt.strftime("%Y-%m").fillna("unknown"))
    grouped = frame.groupby("month", sort=True).agg(
        orders=("amount", "size"),
        gross=("amount", "sum"),
        applicationFees=("application_fee_amount", "sum"),
        stripeFees=("stripe_fee", "sum"),
    )

    monthly = [
        {
            "month": month,
            "orders": int(row["orders"]),
            "gross": int(row["gross"]),
            "applicationFees": int(row["applicationFees"]),
            "stripeFees": int(row["stripeFees"]),
            "net": max(int(row["gross"] - row["applicationFees"] - row["stripeFees"]), 0),
        }
        for month, row in grouped.iterrows()
    ]

    return {
        "ordersCount": int(len(frame)),
        "gross": gross,
        "applicationFees": application_fees,
        "stripeFees": stripe_fees,
        "netAfterPlatform": max(gross - application_fees, 0),
        "netAfterStripe": max(gross - application_fees - stripe_fees, 0),
        "monthly": monthly,
    }


class AnalyticsService:
    """Seller-facing analytics."""

    @staticmethod
    def seller_summary(seller_id: str, include_stripe_fees: bool = True) -> dict[str, Any]:
        """
        Earnings summary for one seller.

        Args:
            seller_id: Seller UID
            include_stripe_fees: Look up each order's processing fee in Stripe
        """
        docs = (
            FirebaseClient.get_db()
            .collection("orders")
            .where(filter=firestore.FieldFilter("sellerId", "==", seller_id))
            .stream()
        )

        rows = []
        for doc in docs:
            order = doc.to_dict() or {}
            if order.get("orderType") == "subscription_change":
                continue
            payment_intent = order.get("paymentIntentId")
            rows.append({
                "amount": int(order.get("amount") or 0),
                "application_fee_amount": int(order.get("application_fee_amount") or 0),
                "stripe_fee": stripe_fee_for_payment_intent(payment_intent) if include_stripe_fees and payment_intent else 0,
                "created_ms": to_millis(order.get("createdAt")),
            })

        summary = summarize_orders(pd.DataFrame(rows, columns=COLUMNS))
        logger.info(f"Seller analytics for {seller_id}: {summary['ordersCount']} orders, gross={summary['gross']}")
        return summary
