# =============================================================================
# lib/stripe_client.py - Stripe SDK Setup
# =============================================================================
# Configures the global stripe module once and exposes it to services.
#
# Usage:
#   from lib.stripe_client import get_stripe
#   stripe = get_stripe()
#   stripe.checkout.Session.create(...)
# =============================================================================

import logging

import stripe

from app.config import settings
from app.exceptions import CollectiveException

logger = logging.getLogger(__name__)

_configured = False


def get_stripe():
    """
    Return the configured stripe module.

    Raises:
        CollectiveException: If STRIPE_SECRET_KEY is not set
    """
    global _configured

    if not _configured:
        if not settings.STRIPE_SECRET_KEY:
            raise CollectiveException(
                message="Stripe is not configured",
                code="STRIPE_NOT_CONFIGURED",
                status_code=500,
                suggestion="Set STRIPE_SECRET_KEY in your .env file",
            )
        stripe.api_key = settings.STRIPE_SECRET_KEY
        _configured = True
        logger.info("Stripe client configured")

    return stripe
