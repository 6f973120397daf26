# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuthUser(BaseModel):
    """
    Authenticated user extracted from a Firebase ID token.

    This is the minimal user info available from the token itself,
    without reading the users collection.
    """
    model_config = ConfigDict(frozen=True)

    uid: str
    email: Optional[str] = None
    email_verified: bool = False


class UserResponse(BaseModel):
    """Response for GET /auth/me."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    is_admin: bool = False
    strikes: int = 0
    profile_removed: bool = False


class TokenPayload(BaseModel):
    """
    Decoded Firebase ID token claims.

    Firebase puts the uid in both `sub` and `user_id`.
    """
    sub: str
    aud: str
    iss: str
    exp: int
    iat: int
    email: Optional[str] = None
    email_verified: bool = False
