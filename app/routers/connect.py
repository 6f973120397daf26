# =============================================================================
# app/routers/connect.py - Stripe Connect Onboarding
# =============================================================================
# Sellers and creators need an Express account before they can be paid.
# =============================================================================

from fastapi import APIRouter, Query
from pydantic import BaseModel

from app.dependencies import CurrentUser
from app.exceptions import InvalidRequestError
from core.services.connect_service import ConnectService
from core.services.user_service import UserService

router = APIRouter()


class OnboardRequest(BaseModel):
    account_id: str | None = None


@router.post("/onboard")
async def onboard(user: CurrentUser, body: OnboardRequest | None = None):
    """
    Onboarding link for the caller's Connect account.

    Creates the account on first use. Returns {url, accountId}.
    """
    return ConnectService.onboard(user.uid, account_id=body.account_id if body else None)


@router.get("/status")
async def status(user: CurrentUser, account_id: str | None = Query(default=None)):
    """Charges/payouts capability and requirements for the caller's account."""
    if not account_id:
        account_id = (UserService.get_user(user.uid) or {}).get("connectAccountId")
    if not account_id:
        raise InvalidRequestError(
            "No Connect account",
            suggestion="Start onboarding with POST /api/v1/connect/onboard",
        )
    return ConnectService.status(account_id)
