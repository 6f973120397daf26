# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# Annotated aliases for the user dependencies injected into route handlers.
# =============================================================================

from typing import Annotated

from fastapi import Depends

from app.auth import AuthUser, get_current_user, get_current_user_optional, require_admin


# Type aliases for dependency injection
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
OptionalUser = Annotated[AuthUser | None, Depends(get_current_user_optional)]
AdminUser = Annotated[AuthUser, Depends(require_admin)]
