# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Sign-up and sign-in happen client-side with Firebase Authentication.
# These routes report who the token belongs to.
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_user, is_admin_user
from app.auth.models import AuthUser, UserResponse
from lib.firebase_client import FirebaseClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user)
) -> UserResponse:
    """
    Get the current user's profile summary.

    Combines token claims with the users document (display name,
    strike count, profile removal flag) and the admin check.
    """
    snapshot = FirebaseClient.get_db().collection("users").document(user.uid).get()
    data = (snapshot.to_dict() or {}) if snapshot.exists else {}

    return UserResponse(
        uid=user.uid,
        email=user.email or data.get("email"),
        display_name=data.get("displayName"),
        is_admin=is_admin_user(user),
        strikes=int(data.get("strikes") or 0),
        profile_removed=bool(data.get("profileRemoved")),
    )


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """Confirm the token is valid and return its uid."""
    return {
        "valid": True,
        "uid": user.uid,
        "email": user.email,
    }
