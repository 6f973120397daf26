# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Firebase ID token authentication and admin authorization.
#
# Usage:
#   from app.auth import get_current_user, require_admin, AuthUser
# =============================================================================

from app.auth.dependencies import (
    get_current_user,
    get_current_user_optional,
    is_admin_user,
    require_admin,
)
from app.auth.models import AuthUser, UserResponse

__all__ = [
    "get_current_user",
    "get_current_user_optional",
    "is_admin_user",
    "require_admin",
    "AuthUser",
    "UserResponse",
]
