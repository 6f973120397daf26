# =============================================================================
# core/services/stripe_webhook_service.py - Stripe Event Handling
# =============================================================================
# Verifies and dispatches Stripe webhook events.
#
# Flow:
#   1. verify_event()  - platform secret first, then the Connect secret
#   2. claim_event()   - webhookEventsProcessed/{event.id} makes delivery
#                        at-most-once per event
#   3. handle_event()  - per-type handler; handler errors are logged so Stripe
#                        doesn't retry an event that was already claimed
# =============================================================================

import logging
from typing import Any, Callable

from firebase_admin import firestore

from app.config import settings
from app.exceptions import WebhookSignatureError
from core.models.notification import NotificationType
from core.models.subscription import (
    ACTIVE_SUBSCRIPTION_STATUSES,
    ALL_ACCESS_CREATOR_SHARE,
    LEGACY_CREATOR_SHARE,
    LEGACY_SUBSCRIPTION_AMOUNT,
    PLAN_CONFIG,
    PlanType,
)
from core.services.notification_service import NotificationService
from core.services.order_service import OrderService
from core.services.user_service import UserService
from lib.firebase_client import FirebaseClient, snapshot_to_dict
from lib.stripe_client import get_stripe

logger = logging.getLogger(__name__)

MEMBERSHIP_PLANS = set(PLAN_CONFIG)


def _metadata(obj: Any) -> dict[str, Any]:
    return dict(obj.get("metadata") or {})


def _find_one(collection: str, field: str, value: Any):
    """First document snapshot where field == value, or None."""
    docs = (
        FirebaseClient.get_db()
        .collection(collection)
        .where(filter=firestore.FieldFilter(field, "==", value))
        .limit(1)
        .stream()
    )
    return next(iter(docs), None)


# =============================================================================
# Verification and Idempotency
# =============================================================================

def verify_event(payload: bytes, signature: str | None) -> Any | None:
    """
    Verify the Stripe-Signature header against the configured secrets.

    Returns:
        The parsed event, or None when no webhook secret is configured
        (events are then acknowledged without processing)

    Raises:
        WebhookSignatureError: If no configured secret validates the payload
    """
    secrets = [s for s in (settings.STRIPE_WEBHOOK_SECRET, settings.STRIPE_CONNECT_WEBHOOK_SECRET) if s]
    if not secrets:
        logger.warning("Stripe webhook received but no webhook secret is configured")
        return None
    if not signature:
        logger.warning("Stripe webhook without Stripe-Signature header")
        raise WebhookSignatureError("Stripe")

    stripe = get_stripe()
    for secret in secrets:
        try:
            return stripe.Webhook.construct_event(payload, signature, secret)
        except (stripe.SignatureVerificationError, ValueError):
            continue

    logger.warning("Stripe webhook signature verification failed")
    raise WebhookSignatureError("Stripe")


def claim_event(event: Any) -> bool:
    """
    Record the event as processed.

    Returns:
        False if it had already been processed
    """
    event_id = event.get("id")
    if not event_id:
        return True
    ref = FirebaseClient.get_db().collection("webhookEventsProcessed").document(str(event_id))
    if ref.get().exists:
        logger.info(f"Duplicate Stripe event {event_id} ignored")
        return False
    ref.set({
        "source": "stripe",
        "type": str(event.get("type") or ""),
        "created": firestore.SERVER_TIMESTAMP,
    }, merge=True)
    return True


# =============================================================================
# checkout.session.completed
# =============================================================================

def _activate_membership(user_id: str, plan_type: str, session: Any) -> None:
    fields = {
        "membershipActive": True,
        "membershipPlan": plan_type,
        "membershipSubscriptionId": str(session.get("subscription") or ""),
        "updatedAt": firestore.SERVER_TIMESTAMP,
    }
    if session.get("customer"):
        fields["stripeCustomerId"] = session["customer"]
    UserService.update(user_id, fields)
    logger.info(f"Membership {plan_type} activated for {user_id}")


def handle_checkout_completed(session: Any, event_account: str | None = None) -> None:
    metadata = _metadata(session)
    is_subscription = session.get("mode") == "subscription" or bool(session.get("subscription"))

    if not is_subscription:
        OrderService.create_order_from_checkout(session, event_account)
        return

    creator_id = metadata.get("legacyCreatorId")
    buyer_id = metadata.get("buyerId")
    if creator_id and buyer_id:
        FirebaseClient.get_db().collection("legacySubscriptions").add({
            "userId": buyer_id,
            "creatorId": creator_id,
            "subscriptionId": session.get("subscription"),
            "checkoutSessionId": session.get("id"),
            "currency": session.get("currency") or "usd",
            "amount": session.get("amount_total") or LEGACY_SUBSCRIPTION_AMOUNT,
            "status": "active",
            "sellerAccountId": metadata.get("sellerAccountId") or metadata.get("connectAccountId"),
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"Legacy+ subscription {session.get('subscription')} recorded: {buyer_id} -> {creator_id}")
        NotificationService.create(
            buyer_id,
            NotificationType.LEGACY_SUBSCRIPTION_ACTIVE,
            title="Legacy+ subscription active",
            message="Thanks for supporting this creator! Their full library is now unlocked.",
            action_url=f"/legacy/{creator_id}",
            metadata={"creatorId": creator_id},
        )

    plan_type = metadata.get("planType")
    if plan_type not in MEMBERSHIP_PLANS:
        return

    member_id = buyer_id or session.get("client_reference_id")
    if member_id:
        _activate_membership(member_id, plan_type, session)
        return

    # Guest checkout: link by email, else park it until the user signs up
    email = (session.get("customer_details") or {}).get("email") or session.get("customer_email")
    if not email:
        logger.warning(f"Membership checkout {session.get('id')} has no buyer and no email")
        return

    user = UserService.find_by_email(email)
    if user:
        _activate_membership(user["id"], plan_type, session)
        return

    FirebaseClient.get_db().collection("pendingMemberships").document(str(session.get("id"))).set({
        "email": email,
        "planType": plan_type,
        "subscriptionId": str(session.get("subscription") or ""),
        "sessionId": session.get("id"),
        "claimed": False,
        "createdAt": firestore.SERVER_TIMESTAMP,
    })
    logger.info(f"Pending membership recorded for {email}")


# =============================================================================
# invoice.paid / invoice.payment_succeeded
# =============================================================================

def resolve_charge_id(invoice: Any) -> str | None:
    """
    Charge backing an invoice, for use as a transfer source_transaction.

    Older API versions put the charge on the invoice; otherwise it's the
    PaymentIntent's latest charge.
    """
    charge = invoice.get("charge")
    if isinstance(charge, str) and charge.startswith("ch_"):
        return charge

    payment_intent = invoice.get("payment_intent")
    if not payment_intent:
        return None

    stripe = get_stripe()
    try:
        intent = stripe.PaymentIntent.retrieve(str(payment_intent))
    except stripe.StripeError as e:
        logger.warning(f"Could not resolve charge for invoice {invoice.get('id')}: {e}")
        return None
    latest = intent.get("latest_charge")
    return latest if isinstance(latest, str) else None


def _transfer(
    payout_ref,
    recipient_id: str,
    amount: int,
    currency: str,
    destination: str,
    charge_id: str | None,
    metadata: dict[str, str],
) -> bool:
    """
    Send one creator share of an invoice payout.

    Each completed transfer is recorded under legacyPayouts/{invoice}/transfers,
    and the Stripe idempotency key is derived from the invoice and recipient,
    so a retried invoice event never pays the same creator twice.

    Returns:
        True if a transfer was created, False if it had already been sent
    """
    transfer_ref = payout_ref.collection("transfers").document(recipient_id)
    if transfer_ref.get().exists:
        logger.info(f"Transfer to {recipient_id} for invoice {payout_ref.id} already sent")
        return False

    stripe = get_stripe()
    params: dict[str, Any] = {
        "amount": amount,
        "currency": currency,
        "destination": destination,
        "metadata": metadata,
        "idempotency_key": f"payout-{payout_ref.id}-{recipient_id}",
    }
    if charge_id:
        params["source_transaction"] = charge_id
    transfer = stripe.Transfer.create(**params)

    transfer_ref.set({
        "transferId": transfer.get("id"),
        "destination": destination,
        "amount": amount,
        "createdAt": firestore.SERVER_TIMESTAMP,
    })
    return True


def _notify_creator_owner(creator_id: str, amount: int, reason: str) -> None:
    creator = snapshot_to_dict(
        FirebaseClient.get_db().collection("legacy_creators").document(creator_id).get()
    )
    owner = (creator or {}).get("ownerUserId")
    if not owner:
        return
    NotificationService.create(
        owner,
        NotificationType.PAYOUT_PROCESSED,
        title="Payout on its way",
        message=f"${amount / 100:.2f} {reason} has been transferred to your account.",
        action_url="/creator/dashboard",
        metadata={"creatorId": creator_id, "amount": amount},
    )


def handle_invoice_paid(invoice: Any) -> None:
    """
    Pay out creator shares for a paid subscription invoice.

    A Legacy+ subscription pays its creator; an all-access membership pays
    every legacy creator with a Connect account. legacyPayouts/{invoice.id}
    prevents paying the same invoice twice.
    """
    subscription_id = invoice.get("subscription") or (
        ((invoice.get("parent") or {}).get("subscription_details") or {}).get("subscription")
    )
    invoice_id = invoice.get("id")
    currency = invoice.get("currency") or "usd"
    if not subscription_id or not invoice_id:
        return

    db = FirebaseClient.get_db()
    payout_ref = db.collection("legacyPayouts").document(str(invoice_id))
    if payout_ref.get().exists:
        logger.info(f"Payout for invoice {invoice_id} already processed")
        return

    legacy_doc = _find_one("legacySubscriptions", "subscriptionId", str(subscription_id))
    if legacy_doc is not None:
        sub = legacy_doc.to_dict() or {}
        destination = sub.get("sellerAccountId")
        creator_id = str(sub.get("creatorId") or "")
        if destination:
            _transfer(
                payout_ref,
                "legacy",
                LEGACY_CREATOR_SHARE,
                currency,
                str(destination),
                resolve_charge_id(invoice),
                {
                    "reason": "Legacy+ monthly payout",
                    "subscriptionId": str(subscription_id),
                    "invoiceId": str(invoice_id),
                    "creatorId": creator_id,
                },
            )
            payout_ref.set({
                "subscriptionId": str(subscription_id),
                "creatorId": creator_id,
                "destination": str(destination),
                "amount": LEGACY_CREATOR_SHARE,
                "currency": currency,
                "createdAt": firestore.SERVER_TIMESTAMP,
            })
            logger.info(f"Legacy+ payout {LEGACY_CREATOR_SHARE} -> {destination} for invoice {invoice_id}")
            if creator_id:
                _notify_creator_owner(creator_id, LEGACY_CREATOR_SHARE, "Legacy+ subscription payout")
            return

    stripe = get_stripe()
    try:
        subscription = stripe.Subscription.retrieve(str(subscription_id))
        plan_type = _metadata(subscription).get("planType")
    except stripe.StripeError as e:
        logger.warning(f"Could not retrieve subscription {subscription_id}: {e}")
        return

    if plan_type != PlanType.MEMBERSHIP_87.value:
        return

    recipients = []
    for doc in db.collection("legacy_creators").stream():
        account = (doc.to_dict() or {}).get("connectAccountId")
        if account:
            recipients.append({"id": doc.id, "destination": str(account)})

    charge_id = resolve_charge_id(invoice)
    for recipient in recipients:
        _transfer(
            payout_ref,
            recipient["id"],
            ALL_ACCESS_CREATOR_SHARE,
            currency,
            recipient["destination"],
            charge_id,
            {
                "reason": "CCA Membership monthly payout",
                "subscriptionId": str(subscription_id),
                "invoiceId": str(invoice_id),
                "legacyCreatorId": recipient["id"],
            },
        )

    payout_ref.set({
        "subscriptionId": str(subscription_id),
        "planType": plan_type,
        "recipients": recipients,
        "perCreatorAmount": ALL_ACCESS_CREATOR_SHARE,
        "totalAmount": ALL_ACCESS_CREATOR_SHARE * len(recipients),
        "currency": currency,
        "createdAt": firestore.SERVER_TIMESTAMP,
    })
    logger.info(f"All-access payout to {len(recipients)} creators for invoice {invoice_id}")

    for recipient in recipients:
        _notify_creator_owner(recipient["id"], ALL_ACCESS_CREATOR_SHARE, "All-Access membership payout")


# =============================================================================
# customer.subscription.updated / deleted
# =============================================================================

def _membership_user_id(subscription: Any) -> str | None:
    buyer_id = _metadata(subscription).get("buyerId")
    if buyer_id:
        return str(buyer_id)
    doc = _find_one("users", "membershipSubscriptionId", str(subscription.get("id")))
    return doc.id if doc is not None else None


def _sync_subscription(subscription: Any, deleted: bool) -> None:
    status = "canceled" if deleted else (subscription.get("status") or "active")

    legacy_doc = _find_one("legacySubscriptions", "subscriptionId", subscription.get("id"))
    if legacy_doc is not None:
        legacy_doc.reference.set({"status": status, "updatedAt": firestore.SERVER_TIMESTAMP}, merge=True)
        logger.info(f"Legacy+ subscription {subscription.get('id')} -> {status}")
        if deleted:
            user_id = (legacy_doc.to_dict() or {}).get("userId")
            if user_id:
                NotificationService.create(
                    user_id,
                    NotificationType.LEGACY_SUBSCRIPTION_CANCELED,
                    title="Legacy+ subscription ended",
                    message="Your Legacy+ subscription has been canceled.",
                    metadata={"subscriptionId": subscription.get("id")},
                )

    plan_type = _metadata(subscription).get("planType")
    if plan_type not in MEMBERSHIP_PLANS:
        return

    user_id = _membership_user_id(subscription)
    if not user_id:
        logger.warning(f"No user found for membership subscription {subscription.get('id')}")
        return

    active = False if deleted else status in ACTIVE_SUBSCRIPTION_STATUSES
    UserService.update(user_id, {
        "membershipActive": active,
        "membershipPlan": plan_type,
        "membershipSubscriptionId": str(subscription.get("id")),
        "updatedAt": firestore.SERVER_TIMESTAMP,
    })
    logger.info(f"Membership for {user_id} synced: active={active} ({status})")


def handle_subscription_updated(subscription: Any) -> None:
    _sync_subscription(subscription, deleted=False)


def handle_subscription_deleted(subscription: Any) -> None:
    _sync_subscription(subscription, deleted=True)


# =============================================================================
# Dispatch
# =============================================================================

def _log_only(level: int) -> Callable[[Any, Any], None]:
    def handler(obj: Any, event: Any) -> None:
        logger.log(level, f"{event.get('type')}: {obj.get('id')} (account={event.get('account')})")
    return handler


HANDLERS: dict[str, Callable[[Any, Any], None]] = {
    "checkout.session.completed": lambda obj, event: handle_checkout_completed(obj, event.get("account")),
    "invoice.payment_succeeded": lambda obj, event: handle_invoice_paid(obj),
    "invoice.paid": lambda obj, event: handle_invoice_paid(obj),
    "customer.subscription.updated": lambda obj, event: handle_subscription_updated(obj),
    "customer.subscription.deleted": lambda obj, event: handle_subscription_deleted(obj),
    "payment_intent.payment_failed": _log_only(logging.WARNING),
    "charge.dispute.created": _log_only(logging.WARNING),
    "charge.refunded": _log_only(logging.INFO),
}


def handle_event(event: Any) -> dict[str, Any]:
    """
    Process a verified event.

    Returns:
        The webhook response body
    """
    if not claim_event(event):
        return {"received": True, "duplicate": True}

    event_type = event.get("type")
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.debug(f"Unhandled Stripe event type {event_type}")
        return {"received": True}

    obj = (event.get("data") or {}).get("object") or {}
    try:
        handler(obj, event)
    except Exception as e:
        logger.error(f"Stripe webhook handler failed for {event_type} ({event.get('id')}): {e}", exc_info=True)

    return {"received": True}
