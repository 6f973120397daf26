# =============================================================================
# core/services/connect_service.py - Stripe Connect Onboarding
# =============================================================================
# Sellers receive marketplace payouts through Express Connect accounts.
# =============================================================================

import logging
from typing import Any

from app.config import settings
from app.exceptions import PaymentProviderError
from core.services.user_service import UserService
from lib.stripe_client import get_stripe

logger = logging.getLogger(__name__)


class ConnectService:
    """Create Connect accounts, onboarding links and status summaries."""

    @staticmethod
    def onboard(user_id: str, account_id: str | None = None) -> dict[str, str]:
        """
        Onboarding link for the user's Connect account.

        Uses the given account, else the one stored on the user, else creates
        a new Express account and stores it as connectAccountId.

        Returns:
            {"url": onboarding_url, "accountId": account_id}
        """
        stripe = get_stripe()
        account_id = account_id or (UserService.get_user(user_id) or {}).get("connectAccountId")

        try:
            if account_id:
                account = stripe.Account.retrieve(account_id)
            else:
                account = stripe.Account.create(
                    type="express",
                    country="US",
                    capabilities={
                        "card_payments": {"requested": True},
                        "transfers": {"requested": True},
                    },
                    metadata={"userId": user_id},
                )
                logger.info(f"Created Connect account {account.id} for {user_id}")

            UserService.update(user_id, {"connectAccountId": account.id})

            link = stripe.AccountLink.create(
                account=account.id,
                refresh_url=f"{settings.BASE_URL}/creator/onboarding?refresh=1",
                return_url=f"{settings.BASE_URL}/creator/onboarding?return=1",
                type="account_onboarding",
            )
        except stripe.StripeError as e:
            logger.error(f"Connect onboarding failed for {user_id}: {e}")
            raise PaymentProviderError("connect.onboard", str(e))

        return {"url": link.url, "accountId": account.id}

    @staticmethod
    def status(account_id: str) -> dict[str, Any]:
        """
        Payout readiness of a Connect account.

        The Express dashboard login link is None when Stripe refuses to
        create one (e.g. onboarding not finished).
        """
        stripe = get_stripe()
        try:
            account = stripe.Account.retrieve(account_id)
        except stripe.StripeError as e:
            logger.error(f"Connect status failed for {account_id}: {e}")
            raise PaymentProviderError("account.retrieve", str(e))

        try:
            login_link_url = stripe.Account.create_login_link(account_id).url
        except stripe.StripeError as e:
            logger.debug(f"No login link for {account_id}: {e}")
            login_link_url = None

        account_settings = account.get("settings") or {}
        schedule = (account_settings.get("payouts") or {}).get("schedule") or {}

        return {
            "id": account.id,
            "charges_enabled": bool(account.get("charges_enabled")),
            "payouts_enabled": bool(account.get("payouts_enabled")),
            "details_submitted": bool(account.get("details_submitted")),
            "requirements": account.get("requirements"),
            "capabilities": account.get("capabilities"),
            "payoutSchedule": {
                "interval": schedule.get("interval"),
                "weekly_anchor": schedule.get("weekly_anchor"),
                "monthly_anchor": schedule.get("monthly_anchor"),
                "delay_days": schedule.get("delay_days"),
            },
            "statementDescriptor": (account_settings.get("payments") or {}).get("statement_descriptor"),
            "loginLinkUrl": login_link_url,
        }
