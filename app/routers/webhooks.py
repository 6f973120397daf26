# =============================================================================
# app/routers/webhooks.py - Stripe and Mux Webhooks
# =============================================================================
# Both providers sign the raw request body, so these handlers read bytes
# rather than a parsed model.
# =============================================================================

import json
import logging

from fastapi import APIRouter, Header, Request

from app.exceptions import InvalidRequestError
from core.services import mux_webhook_service, stripe_webhook_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
):
    """
    Stripe events for the platform and connected accounts.

    Duplicate deliveries are acknowledged with {"duplicate": true} and not
    processed again.
    """
    payload = await request.body()
    event = stripe_webhook_service.verify_event(payload, stripe_signature)
    if event is None:
        return {"ok": True}
    return stripe_webhook_service.handle_event(event)


@router.post("/mux")
async def mux_webhook(
    request: Request,
    mux_signature: str | None = Header(default=None, alias="Mux-Signature"),
):
    """Mux asset events; links finished uploads to their lessons."""
    raw_body = await request.body()
    mux_webhook_service.verify_signature(raw_body, mux_signature)
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        raise InvalidRequestError("Webhook body is not valid JSON")
    if not isinstance(payload, dict):
        raise InvalidRequestError("Webhook body must be a JSON object")
    return mux_webhook_service.handle_event(payload)
